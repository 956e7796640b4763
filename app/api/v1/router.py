from fastapi import APIRouter
from app.api.v1.routes import (
    health,
    members,
)

v1_router = APIRouter(prefix="/v1")

v1_router.include_router(health.router, tags=["Health"])
v1_router.include_router(members.router, prefix="/members", tags=["Members"])
