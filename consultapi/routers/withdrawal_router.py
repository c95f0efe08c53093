"""
상담사 출금 API 라우터

- GET /withdrawals/balance: 출금 가능 잔액
- GET /withdrawals/metrics: 내 실적 요약
- GET /withdrawals/mine: 내 출금 요청 목록
- POST /withdrawals: 출금 요청 (잔액 초과 시 400)
"""

from typing import List

from fastapi import APIRouter, Depends

from consultapi.core.security import get_current_user
from consultapi.deps import get_withdrawal_service
from consultapi.schemas.consultant import AdvisorMetrics
from consultapi.schemas.user import User
from consultapi.schemas.withdrawal import (
    BalanceResponse,
    WithdrawalCreateRequest,
    WithdrawalRequest,
)
from consultapi.services.withdrawal_service import WithdrawalService

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])


@router.get("/balance", response_model=BalanceResponse)
def get_my_balance(
    current_user: User = Depends(get_current_user),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> BalanceResponse:
    advisor = service.advisor_for_actor(current_user)
    return BalanceResponse(
        advisor_id=advisor.id,
        available_balance=service.get_balance(advisor.id),
        currency=service.settings.DEFAULT_CURRENCY,
    )


@router.get("/metrics", response_model=AdvisorMetrics)
def get_my_metrics(
    current_user: User = Depends(get_current_user),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> AdvisorMetrics:
    advisor = service.advisor_for_actor(current_user)
    return service.get_advisor_metrics(advisor.id)


@router.get("/mine", response_model=List[WithdrawalRequest])
def list_my_withdrawals(
    current_user: User = Depends(get_current_user),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> List[WithdrawalRequest]:
    advisor = service.advisor_for_actor(current_user)
    return service.list_advisor_withdrawals(advisor.id)


@router.post("", response_model=WithdrawalRequest, status_code=201)
def request_withdrawal(
    body: WithdrawalCreateRequest,
    current_user: User = Depends(get_current_user),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalRequest:
    advisor = service.advisor_for_actor(current_user)
    return service.request_withdrawal(
        advisor.id,
        amount=body.amount,
        bank_details=body.bank_details,
        notes=body.notes,
    )
