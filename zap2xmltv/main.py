from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from zap2xmltv import __version__
from zap2xmltv.config import get_settings, setup_logging
from zap2xmltv.routers import main_router
from zap2xmltv.services.scheduler_service import guide_scheduler


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting zap2xmltv service...")

    try:
        settings = get_settings()
        logging.getLogger().setLevel(settings.log_level)
        guide_scheduler.start(settings)
        logger.info("zap2xmltv service started successfully")
    except Exception as e:
        logger.error(f"Failed to start zap2xmltv service: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down zap2xmltv service...")
    try:
        guide_scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)
    logger.info("zap2xmltv service stopped")


app = FastAPI(
    title="zap2xmltv",
    version=__version__,
    lifespan=lifespan
)

app.include_router(main_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with details"""
    logger.error(f"Validation error for {request.method} {request.url.path}")
    logger.error(f"Validation details: {exc.errors()}")

    errors = []
    for error in exc.errors():
        errors.append({
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": str(error.get("input", ""))[:100]
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": errors
        }
    )
