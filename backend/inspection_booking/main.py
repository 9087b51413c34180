# backend/inspection_booking/main.py

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .errors import BookingError
from .redis_client import get_redis
from .routers import appointments, centers, reports, service_types, slots

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Inspection Booking API")

app.include_router(centers.router)
app.include_router(service_types.router)
app.include_router(appointments.router)
app.include_router(slots.router)
app.include_router(reports.router)


@app.exception_handler(BookingError)
def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
def health(db: Session = Depends(get_db), redis: Redis = Depends(get_redis)):
    db.execute(text("SELECT 1"))
    try:
        redis_ok = bool(redis.ping())
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        redis_ok = False
    return {"database": True, "redis": redis_ok}
