from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import v1_router
from app.core.config import settings
from app.core.errors import InvalidInput, MembershipError
from app.db.base import Base
from app.db.session import engine
from app.db import models  # noqa: F401  registers tables on Base.metadata


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MembershipError)
async def membership_error_handler(request: Request, exc: MembershipError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [
        {
            "loc": ".".join(str(part) for part in e.get("loc", ())),
            "msg": e.get("msg", ""),
        }
        for e in exc.errors()
    ]
    message = "; ".join(f"{f['loc']}: {f['msg']}" for f in fields) or "Invalid request"
    error = InvalidInput(message, details={"fields": fields})
    return await membership_error_handler(request, error)


app.include_router(v1_router)
