# backend/app/main.py

import logging
import os
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import TimeoutError as SA_TimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  registers tables on Base.metadata
from .api import api_external_calendar
from .core.config import settings
from .core.observability import setup_logging, setup_tracer
from .database import Base, engine

setup_logging()
logger = logging.getLogger(__name__)

_BOOT_TS = time.time()

# Local/dev convenience; production schemas are managed by Alembic.
if os.getenv("AUTO_CREATE_TABLES", "1").strip().lower() in ("1", "true", "yes"):
    Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="ContentFlow Calendar Sync API",
    version="1.0.0",
    description="Connect Google and Outlook calendars and mirror scheduled publications into them.",
    default_response_class=ORJSONResponse,
)
setup_tracer(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Return JSON responses for HTTP errors and log them."""
    try:
        response = await call_next(request)
    except StarletteHTTPException as exc:
        logger.error(
            "HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail
        )
        response = ORJSONResponse(
            status_code=exc.status_code, content={"detail": exc.detail}
        )
    except SA_TimeoutError as exc:  # DB pool timeout -> 503 to reduce retry storms
        logger.error("DB timeout at %s: %s", request.url.path, str(exc))
        response = ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Database busy, please retry"},
        )
    except Exception as exc:  # pragma: no cover - generic handler
        logger.exception("Unhandled error: %s", exc)
        response = ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )
    return response


@app.get("/healthz", tags=["health"])
async def healthz():
    return {"status": "ok", "uptime_s": round(time.time() - _BOOT_TS, 1), "pid": os.getpid()}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


api_prefix = settings.API_V1_STR  # usually "/api/v1"

app.include_router(api_external_calendar.router, prefix=api_prefix)
