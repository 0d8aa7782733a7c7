import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.exceptions import BookingError, InvalidTransitionError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="SlotBook API",
    description="Availability slots and appointment booking for service providers",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Render domain errors with the status code they map to."""
    body = {"detail": exc.detail, "error": exc.kind}
    if isinstance(exc, InvalidTransitionError) and exc.current_status:
        body["current_status"] = exc.current_status
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content={"detail": "Database error", "error": "infrastructure_error"},
    )


@app.get("/health")
async def health():
    return {"status": "ok", "service": "slotbook-api", "version": "0.1.0"}
