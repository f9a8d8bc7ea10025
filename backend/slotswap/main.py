import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import engine, get_db, init_db
from .dependencies import get_cache
from .errors import ErrorCategory, SwapError
from .redis_client import redis_client
from .routers import internal, slots, swaps, users
from .services.swaps import AvailabilityCache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level)
    init_db()
    logger.info("Slot swap API started")
    yield
    logger.info("Slot swap API shutting down")
    redis_client.close()
    engine.dispose()


app = FastAPI(title="Slot Swap API", lifespan=lifespan)

app.include_router(users.router)
app.include_router(slots.router)
app.include_router(swaps.router)
app.include_router(internal.router)


# ===== Error handlers =====

@app.exception_handler(SwapError)
async def swap_error_handler(request: Request, exc: SwapError):
    if exc.category in (ErrorCategory.INTEGRITY, ErrorCategory.UNAVAILABLE):
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request data",
            "code": "invalid_request",
            "retryable": False,
            "errors": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                }
                for e in exc.errors()
            ],
        },
    )


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "code": "internal_error", "retryable": False},
    )


@app.get("/health")
def health(
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    db_ok = True
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        db_ok = False

    try:
        redis_ok = bool(cache.redis.ping())
    except RedisError as e:
        logger.warning(f"Health check: redis unreachable: {e}")
        redis_ok = False

    return {
        "status": "ok" if db_ok and redis_ok else "degraded",
        "database": db_ok,
        "redis": redis_ok,
    }
