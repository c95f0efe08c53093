from pydantic import BaseModel, Field
from typing import Optional


class UsageResult(BaseModel):
    """사용량 체크 결과 (limit/remaining이 None이면 무제한)"""

    allowed: bool = Field(..., description="허용 여부")
    limit: Optional[int] = Field(None, description="일일 한도")
    used: int = Field(..., description="오늘 사용량")
    remaining: Optional[int] = Field(None, description="남은 횟수")


class UsageEnforceRequest(BaseModel):
    amount: int = Field(1, ge=1, le=100)


class TierLimit(BaseModel):
    """등급별 한도 및 혜택"""

    tier: str
    general_chat_daily_limit: Optional[int] = None
    advisor_chat_daily_limit: Optional[int] = None
    contract_access_level: str = "locked"
    discount_rate_bps: int = 0
    priority_weight: int = 0

    @property
    def contract_access(self) -> bool:
        return self.contract_access_level == "full"

    class Config:
        from_attributes = True


class TierLimitUpdateRequest(BaseModel):
    """관리자 등급 한도 수정 (보낸 필드만 반영, null은 무제한)"""

    general_chat_daily_limit: Optional[int] = Field(None, ge=0)
    advisor_chat_daily_limit: Optional[int] = Field(None, ge=0)
    contract_access_level: Optional[str] = Field(
        None, pattern="^(locked|partial|full)$"
    )
    discount_rate_bps: Optional[int] = Field(None, ge=0, le=10000)
    priority_weight: Optional[int] = Field(None, ge=0)
