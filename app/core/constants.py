from enum import Enum


class MemberType(str, Enum):
    NORMAL = "NORMAL"
    ONE_TIME = "ONE_TIME"
    ANNUAL = "ANNUAL"


class MemberStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"


class MemberAction(str, Enum):
    REVOKE = "REVOKE"
    ACTIVATE = "ACTIVATE"
    DELETE = "DELETE"
    UPGRADE = "UPGRADE"


class NoteAction(str, Enum):
    CREATE = "CREATE"
    REVOKE = "REVOKE"
    ACTIVATE = "ACTIVATE"
    UPGRADE = "UPGRADE"
    MATCH = "MATCH"


MEMBER_TYPES = {
    MemberType.NORMAL.value: "Normal member",
    MemberType.ONE_TIME.value: "One-time member",
    MemberType.ANNUAL.value: "Annual member",
}

MEMBER_STATUSES = {
    MemberStatus.ACTIVE.value: "Active",
    MemberStatus.REVOKED.value: "Revoked",
}

# --------------------------------
# TIER RULES
# --------------------------------

# NORMAL -> ONE_TIME -> ANNUAL, or NORMAL -> ANNUAL. No downgrades.
UPGRADE_TARGETS = {
    MemberType.NORMAL: (MemberType.ONE_TIME, MemberType.ANNUAL),
    MemberType.ONE_TIME: (MemberType.ANNUAL,),
    MemberType.ANNUAL: (),
}
