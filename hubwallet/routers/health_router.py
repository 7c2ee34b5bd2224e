import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from hubwallet.config import settings
from hubwallet.database.session import get_db
from hubwallet.schemas.health import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""

    return HealthCheckResponse(service=settings.APP_NAME)


@router.get("/health/db", response_model=HealthCheckResponse)
def database_health_check(db: Session = Depends(get_db)):
    """Readiness check - 원장 저장소 연결 확인"""
    try:
        db.execute(text("SELECT 1"))
    except DBAPIError as e:
        logger.error(f"Database health check failed: {e}")
        body = HealthCheckResponse(
            status="unhealthy",
            service=settings.APP_NAME,
            database="unreachable",
            error=type(e).__name__,
        )
        return JSONResponse(status_code=503, content=body.model_dump())
    return HealthCheckResponse(service=settings.APP_NAME, database="ok")
