from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    """서비스 상태. DB 연결이 안 되면 status=degraded"""

    status: str = "healthy"
    environment: str
    database: str = "ok"
    checked_at: datetime
    error: Optional[str] = Field(None, description="DB 점검 실패 사유")
