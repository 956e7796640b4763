from .member import Member

# tables that depend on Member
from .member_note import MemberNote
from .match_record import MatchRecord
