"""
상담사 출금 서비스

잔액 = released 상담의 완료 주문 지급액 합계 - (pending + approved + processing 출금 합계)
잔액은 저장하지 않고 매번 원장에서 계산한다 (0 미만이면 0).
"""

import logging
from typing import Any, Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from consultapi.config import Settings, settings as default_settings
from consultapi.core.capabilities import Capability, authorize
from consultapi.core.exceptions import (
    ForbiddenError,
    GatewayNotImplementedError,
    InsufficientBalanceError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from consultapi.database.session import transactional
from consultapi.models.consultation import RequestStatus
from consultapi.models.withdrawal import WithdrawalStatus
from consultapi.repositories.consultant_repository import ConsultantRepository
from consultapi.repositories.consultation_repository import ConsultationRepository
from consultapi.repositories.order_repository import OrderRepository
from consultapi.repositories.withdrawal_repository import WithdrawalRepository
from consultapi.schemas.consultant import AdvisorMetrics, Consultant
from consultapi.schemas.user import User
from consultapi.schemas.withdrawal import WithdrawalRequest
from consultapi.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)

WITHDRAWALS_NOT_CONNECTED_TO_GATEWAY = "WITHDRAWALS_NOT_CONNECTED_TO_GATEWAY"

W = WithdrawalStatus

WITHDRAWAL_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    W.PENDING.value: frozenset({W.APPROVED.value, W.REJECTED.value}),
    W.APPROVED.value: frozenset({W.PROCESSING.value}),
    W.PROCESSING.value: frozenset({W.COMPLETED.value, W.FAILED.value}),
    W.REJECTED.value: frozenset(),
    W.COMPLETED.value: frozenset(),
    W.FAILED.value: frozenset(),
}

# 실적 집계용 요청 상태 묶음
COMPLETED_REQUEST_STATUSES = frozenset({RequestStatus.RELEASED.value})
ACTIVE_REQUEST_STATUSES = frozenset(
    {
        RequestStatus.ACCEPTED.value,
        RequestStatus.PAYMENT_RESERVED.value,
        RequestStatus.IN_PROGRESS.value,
    }
)


class WithdrawalService:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.withdrawal_repo = WithdrawalRepository(db)
        self.order_repo = OrderRepository(db)
        self.consultant_repo = ConsultantRepository(db)
        self.request_repo = ConsultationRepository(db)

    def get_balance(self, advisor_id: int) -> int:
        """출금 가능 잔액 (원장에서 매번 재계산)"""
        earned = self.order_repo.sum_released_payouts(advisor_id)
        reserved = self.withdrawal_repo.sum_reserved(advisor_id)
        return max(earned - reserved, 0)

    def get_advisor_metrics(self, advisor_id: int) -> AdvisorMetrics:
        """
        상담사 실적 요약

        completed = released 상담, active = accepted/payment_reserved/in_progress.
        하나라도 있으면 status "active", 아니면 "new".
        """
        consultant = self.consultant_repo.get_by_id(advisor_id)
        if consultant is None:
            raise NotFoundError(
                f"Advisor {advisor_id} not found", details={"advisor_id": advisor_id}
            )

        counts = self.request_repo.count_by_status_for_advisor(advisor_id)
        completed = sum(counts.get(s, 0) for s in COMPLETED_REQUEST_STATUSES)
        active = sum(counts.get(s, 0) for s in ACTIVE_REQUEST_STATUSES)

        return AdvisorMetrics(
            advisor_id=advisor_id,
            total_consultations=sum(counts.values()),
            completed_consultations=completed,
            active_consultations=active,
            rating_avg=consultant.rating_avg,
            rating_count=consultant.rating_count,
            status="active" if completed or active else "new",
        )

    def advisor_for_actor(self, actor: User) -> Consultant:
        """호출자의 상담사 프로필 (없으면 ForbiddenError)"""
        consultant = self.consultant_repo.get_by_user_id(actor.id)
        if consultant is None:
            raise ForbiddenError(
                "Caller has no advisor profile",
                required=[Capability.IS_ACCOUNT_ADVISOR.value],
            )
        return consultant

    def request_withdrawal(
        self,
        advisor_id: int,
        amount: int,
        bank_details: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> WithdrawalRequest:
        """
        출금 요청 생성 (pending)

        상담사 행을 잠근 상태에서 잔액을 확인해 동시 요청이 잔액을 넘지 않게 한다.

        Raises:
            ValidationError: 금액이 0 이하
            InsufficientBalanceError: 금액이 잔액 초과
        """
        if amount <= 0:
            raise ValidationError("Amount must be positive", details={"amount": amount})

        with transactional(self.db):
            consultant = self.consultant_repo.lock(advisor_id)
            if consultant is None:
                raise NotFoundError(
                    f"Advisor {advisor_id} not found", details={"advisor_id": advisor_id}
                )
            available = self.get_balance(advisor_id)
            if amount > available:
                raise InsufficientBalanceError(available=available, requested=amount)

            withdrawal = self.withdrawal_repo.create(
                commit=False,
                advisor_id=advisor_id,
                amount=amount,
                status=W.PENDING.value,
                bank_details=bank_details,
                notes=notes,
            )

        assert withdrawal is not None
        logger.info(
            f"Withdrawal {withdrawal.id} requested by advisor {advisor_id}: amount={amount} (available={available})"
        )
        return withdrawal

    def _transition(
        self,
        withdrawal_id: int,
        target: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> WithdrawalRequest:
        with transactional(self.db):
            withdrawal = self.withdrawal_repo.lock(withdrawal_id)
            if withdrawal is None:
                raise NotFoundError(
                    f"Withdrawal {withdrawal_id} not found",
                    details={"withdrawal_id": withdrawal_id},
                )
            current = withdrawal.status
            if target not in WITHDRAWAL_TRANSITIONS.get(current, frozenset()):
                raise InvalidTransitionError(current, target)
            if not self.withdrawal_repo.compare_and_set_status(
                withdrawal_id, current, target, extra=extra
            ):
                raise InvalidStateError(
                    f"Withdrawal {withdrawal_id} changed concurrently", current=current
                )

        updated = self.withdrawal_repo.get_by_id(withdrawal_id)
        assert updated is not None
        logger.info(f"Withdrawal {withdrawal_id}: {current} -> {target}")
        return updated

    def approve_withdrawal(self, withdrawal_id: int, admin: User) -> WithdrawalRequest:
        """승인 (pending -> approved). 자금 이동 없음"""
        authorize(admin, [Capability.IS_ADMIN])
        return self._transition(
            withdrawal_id,
            W.APPROVED.value,
            extra={"approved_by": admin.id, "approved_at": utc_now()},
        )

    def reject_withdrawal(
        self, withdrawal_id: int, admin: User, reason: Optional[str] = None
    ) -> WithdrawalRequest:
        """거절 (pending -> rejected). 예약 금액이 잔액으로 돌아온다. 사유는 선택"""
        authorize(admin, [Capability.IS_ADMIN])
        reason = reason.strip() if reason else None
        return self._transition(
            withdrawal_id,
            W.REJECTED.value,
            extra={
                "rejected_by": admin.id,
                "rejected_at": utc_now(),
                "rejection_reason": reason or None,
            },
        )

    def complete_withdrawal(self, withdrawal_id: int, admin: User) -> WithdrawalRequest:
        """지급 처리 - 게이트웨이 연동 전까지 항상 실패"""
        authorize(admin, [Capability.IS_ADMIN])
        raise GatewayNotImplementedError(
            WITHDRAWALS_NOT_CONNECTED_TO_GATEWAY,
            details={"withdrawal_id": withdrawal_id},
        )

    def list_advisor_withdrawals(self, advisor_id: int) -> List[WithdrawalRequest]:
        return self.withdrawal_repo.list_for_advisor(advisor_id)

    def list_withdrawals(
        self, admin: User, status: Optional[str] = None
    ) -> List[WithdrawalRequest]:
        authorize(admin, [Capability.IS_ADMIN])
        if status is not None and status not in WITHDRAWAL_TRANSITIONS:
            raise ValidationError(f"Unknown withdrawal status '{status}'")
        return self.withdrawal_repo.list_all(status=status)
