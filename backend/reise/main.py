import re
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import structlog
from prometheus_fastapi_instrumentator import Instrumentator

from reise.api import episodes, trips
from reise.core.errors import MalformedInput, PreconditionViolation, UpstreamFailure
from reise.core.settings import Settings
from reise.db.session import db_manager
from reise.middleware.logging import RequestLoggingMiddleware

settings = Settings()

GENERATION_FAILED_MESSAGE = "Kunne ikke lage reise akkurat nå. Prøv igjen om litt."

_SECRET_PATTERNS = [
    # Mapbox / generic token query params
    (re.compile(r'([?&](?:access_token|key|api_key)=)[^&\s"]+'), r'\1REDACTED'),
    # OpenAI keys
    (re.compile(r'sk-[A-Za-z0-9_\-]{16,}'), 'REDACTED'),
    # Bearer tokens in headers
    (re.compile(r'(Bearer\s+)[A-Za-z0-9_\-\.=]+'), r'\1REDACTED'),
]


def redact_secrets(logger, method_name, event_dict):
    """structlog processor that scrubs API keys and tokens from all values"""

    def scrub(v):
        if isinstance(v, str):
            for pattern, replacement in _SECRET_PATTERNS:
                v = pattern.sub(replacement, v)
            return v
        if isinstance(v, list):
            return [scrub(x) for x in v]
        if isinstance(v, dict):
            return {k: scrub(vv) for k, vv in v.items()}
        return v

    for k, v in list(event_dict.items()):
        event_dict[k] = scrub(v)
    return event_dict


structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

_handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    _handlers.append(logging.FileHandler(settings.LOG_FILE))

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(message)s',  # structlog handles formatting
    handlers=_handlers,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    try:
        await db_manager.initialize()
    except Exception:
        logger.exception("Failed to initialize database manager")
        raise

    yield

    logger.info("Shutting down application...")
    try:
        await episodes.get_geocoder().close()
    except Exception as e:
        logger.error("geocoder_cleanup_failed", error=str(e))
    try:
        await db_manager.close()
    except Exception as e:
        logger.error("database_cleanup_failed", error=str(e))


app = FastAPI(
    title="Grenseløs Reise API",
    description="Trip normalization, episode trips and entitlement-gated trip views",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = trips.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.exception_handler(PreconditionViolation)
async def precondition_violation_handler(request: Request, exc: PreconditionViolation):
    logger.warning("precondition_violation", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)}
    )


@app.exception_handler(UpstreamFailure)
async def upstream_failure_handler(request: Request, exc: UpstreamFailure):
    logger.error("upstream_failure", provider=exc.provider, error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": GENERATION_FAILED_MESSAGE}
    )


@app.exception_handler(MalformedInput)
async def malformed_input_handler(request: Request, exc: MalformedInput):
    logger.error("malformed_ai_output", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": GENERATION_FAILED_MESSAGE}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


@app.get("/")
def health_check():
    return {"status": "API active", "version": "1.0.0"}


@app.get("/health")
async def health_check_detailed():
    """Detailed health check endpoint"""
    db_health = await db_manager.health_check() if db_manager.engine else {"status": "uninitialized"}
    db_status = db_health["status"]
    return JSONResponse(
        status_code=status.HTTP_200_OK if db_status == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if db_status == "healthy" else "degraded",
            "version": "1.0.0",
            "components": {"database": db_status, "api": "healthy"},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


prefix = "/api/v1"

app.include_router(trips.router, prefix=prefix)
app.include_router(episodes.router, prefix=prefix)
