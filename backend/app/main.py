import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import activity, classrooms, health, members, organisations, teachers
from app.core.config import get_settings
from app.core.exceptions import AppError
from app.db.bootstrap import ensure_runtime_schema_compatibility

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_runtime_schema_compatibility()
    yield


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("Unhandled application error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(teachers.router, prefix=f"{settings.api_prefix}/teachers", tags=["teachers"])
app.include_router(organisations.router, prefix=f"{settings.api_prefix}/organisations", tags=["organisations"])
app.include_router(classrooms.router, prefix=settings.api_prefix, tags=["classrooms"])
app.include_router(members.router, prefix=settings.api_prefix, tags=["members"])
app.include_router(activity.router, prefix=settings.api_prefix, tags=["activity"])
