# backend/staffbook/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import BookingError
from .redis_client import redis_client
from .routers import availability, bookings, slots

logger = logging.getLogger(__name__)

app = FastAPI(title="Staff Booking API")

app.include_router(slots.router)
app.include_router(availability.router)
app.include_router(bookings.router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": list(exc.reasons)},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request.", "details": details},
    )


@app.get("/health")
def health():
    if redis_client is None:
        return {"status": "ok", "redis": "disabled"}
    try:
        return {"status": "ok", "redis": redis_client.ping()}
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
        return {"status": "ok", "redis": False}
