"""
관리자 API 라우터

- GET /admin/withdrawals: 출금 요청 목록 (status 필터)
- POST /admin/withdrawals/{id}/approve: 승인
- POST /admin/withdrawals/{id}/reject: 거절
- POST /admin/withdrawals/{id}/complete: 지급 처리 (게이트웨이 미연동 - 501)
- GET /admin/tier-limits/{tier}: 등급 한도 조회
- PUT /admin/tier-limits/{tier}: 등급 한도 수정
- POST /admin/users/{user_id}/anonymize-financials: 결제 기록 익명화

권한: 관리자
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from consultapi.core.security import admin_required
from consultapi.deps import get_account_service, get_tier_service, get_withdrawal_service
from consultapi.schemas.usage import TierLimit, TierLimitUpdateRequest
from consultapi.schemas.user import AnonymizeResponse, User
from consultapi.schemas.withdrawal import WithdrawalRejectRequest, WithdrawalRequest
from consultapi.services.account_service import AccountService
from consultapi.services.tier_service import TierService
from consultapi.services.withdrawal_service import WithdrawalService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/withdrawals", response_model=List[WithdrawalRequest])
def list_withdrawals(
    status: Optional[str] = Query(None),
    admin: User = Depends(admin_required),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> List[WithdrawalRequest]:
    return service.list_withdrawals(admin, status=status)


@router.post("/withdrawals/{withdrawal_id}/approve", response_model=WithdrawalRequest)
def approve_withdrawal(
    withdrawal_id: int = Path(..., ge=1),
    admin: User = Depends(admin_required),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalRequest:
    return service.approve_withdrawal(withdrawal_id, admin)


@router.post("/withdrawals/{withdrawal_id}/reject", response_model=WithdrawalRequest)
def reject_withdrawal(
    withdrawal_id: int = Path(..., ge=1),
    body: Optional[WithdrawalRejectRequest] = None,
    admin: User = Depends(admin_required),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalRequest:
    return service.reject_withdrawal(
        withdrawal_id, admin, body.reason if body is not None else None
    )


@router.post("/withdrawals/{withdrawal_id}/complete", response_model=WithdrawalRequest)
def complete_withdrawal(
    withdrawal_id: int = Path(..., ge=1),
    admin: User = Depends(admin_required),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalRequest:
    return service.complete_withdrawal(withdrawal_id, admin)


@router.get("/tier-limits/{tier}", response_model=TierLimit)
def get_tier_limit(
    tier: str = Path(...),
    admin: User = Depends(admin_required),
    service: TierService = Depends(get_tier_service),
) -> TierLimit:
    return service.get_tier_limit(tier)


@router.put("/tier-limits/{tier}", response_model=TierLimit)
def update_tier_limit(
    body: TierLimitUpdateRequest,
    tier: str = Path(...),
    admin: User = Depends(admin_required),
    service: TierService = Depends(get_tier_service),
) -> TierLimit:
    return service.update_tier_limit(tier, **body.model_dump(exclude_unset=True))


@router.post(
    "/users/{user_id}/anonymize-financials", response_model=AnonymizeResponse
)
def anonymize_financials(
    user_id: int = Path(..., ge=1),
    admin: User = Depends(admin_required),
    service: AccountService = Depends(get_account_service),
) -> AnonymizeResponse:
    return service.anonymize_financial_records(user_id)
