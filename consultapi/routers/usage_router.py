"""
사용량 한도 API 라우터

- POST /usage/{action}/enforce: 한도 확인 후 사용량 증가 (초과 시 429)
- GET /usage/{action}: 증가 없이 현재 사용량 조회

action: general-chat | advisor-chat
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path

from consultapi.core.security import get_current_user
from consultapi.deps import get_quota_service
from consultapi.schemas.usage import UsageEnforceRequest, UsageResult
from consultapi.schemas.user import User
from consultapi.services.quota_service import QuotaService

router = APIRouter(prefix="/usage", tags=["usage"])


@router.post("/{action}/enforce", response_model=UsageResult)
def enforce_usage(
    body: Optional[UsageEnforceRequest] = None,
    action: str = Path(...),
    current_user: User = Depends(get_current_user),
    service: QuotaService = Depends(get_quota_service),
) -> UsageResult:
    amount = body.amount if body else 1
    return service.enforce(current_user.id, current_user.tier, action, amount=amount)


@router.get("/{action}", response_model=UsageResult)
def peek_usage(
    action: str = Path(...),
    current_user: User = Depends(get_current_user),
    service: QuotaService = Depends(get_quota_service),
) -> UsageResult:
    return service.peek(current_user.id, current_user.tier, action)
