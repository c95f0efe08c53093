import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from consultapi.config import settings
from consultapi.database.session import get_db
from consultapi.schemas.health import HealthCheckResponse
from consultapi.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheckResponse)
def health_check(db: Session = Depends(get_db)) -> HealthCheckResponse:
    """DB 왕복 한 번으로 상태 확인. 실패해도 200으로 degraded를 돌려준다"""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Health check database probe failed: {e}")
        return HealthCheckResponse(
            status="degraded",
            environment=settings.ENVIRONMENT,
            database="unavailable",
            checked_at=utc_now(),
            error=type(e).__name__,
        )
    return HealthCheckResponse(environment=settings.ENVIRONMENT, checked_at=utc_now())
