"""
상담 요청 상태 머신

상담 요청의 status를 바꾸는 유일한 경로. 전이표에 없는 (from, to) 쌍은
InvalidTransitionError로 거부한다. 상태 변경은 compare-and-set UPDATE로
적용되며, 같은 트랜잭션 안에서 감사 로그(request_transitions)가 추가된다.

커밋하지 않는다. 호출 서비스가 원장 쓰기와 함께 하나의 트랜잭션으로 커밋한다.
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, Optional

from sqlalchemy.orm import Session

from consultapi.core.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
)
from consultapi.models.consultation import RequestStatus
from consultapi.repositories.consultation_repository import (
    ConsultationRepository,
    TransitionRepository,
)
from consultapi.schemas.consultation import ConsultationRequest as ConsultationRequestSchema

logger = logging.getLogger(__name__)

S = RequestStatus

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.DRAFT.value: frozenset({S.SUBMITTED.value}),
    S.SUBMITTED.value: frozenset({S.PENDING_ADVISOR.value}),
    S.PENDING_ADVISOR.value: frozenset({S.ACCEPTED.value, S.CANCELLED.value}),
    S.ACCEPTED.value: frozenset({S.PAYMENT_RESERVED.value, S.CANCELLED.value}),
    S.PAYMENT_RESERVED.value: frozenset({S.IN_PROGRESS.value, S.CANCELLED.value}),
    S.IN_PROGRESS.value: frozenset({S.COMPLETED.value, S.CANCELLED.value}),
    S.COMPLETED.value: frozenset({S.RELEASED.value}),
    S.RELEASED.value: frozenset(),
    S.CANCELLED.value: frozenset(),
    S.REJECTED.value: frozenset(),
}

TERMINAL_STATUSES = frozenset(k for k, v in TRANSITIONS.items() if not v)

# 상태 진입 시 기록하는 마일스톤 컬럼
MILESTONES: Dict[str, str] = {
    S.PAYMENT_RESERVED.value: "awaiting_payment_at",
    S.IN_PROGRESS.value: "paid_at",
    S.RELEASED.value: "closed_at",
    S.CANCELLED.value: "closed_at",
}


def _value(status: Any) -> str:
    return status.value if isinstance(status, RequestStatus) else str(status)


def can_transition(current: Any, target: Any) -> bool:
    return _value(target) in TRANSITIONS.get(_value(current), frozenset())


def assert_transition(current: Any, target: Any) -> None:
    """전이표에 없는 쌍이면 InvalidTransitionError"""
    if not can_transition(current, target):
        raise InvalidTransitionError(_value(current), _value(target))


class ConsultationStateMachine:
    def __init__(self, db: Session):
        self.db = db
        self.request_repo = ConsultationRepository(db)
        self.transition_repo = TransitionRepository(db)

    def load(self, request_id: int, lock: bool = False) -> ConsultationRequestSchema:
        request = (
            self.request_repo.lock(request_id)
            if lock
            else self.request_repo.get_by_id(request_id)
        )
        if request is None:
            raise NotFoundError(
                f"Consultation request {request_id} not found",
                details={"request_id": request_id},
            )
        return request

    def record_creation(
        self, request_id: int, status: str, actor_user_id: Optional[int]
    ) -> None:
        """생성 감사 로그 (from_status = NULL)"""
        self.transition_repo.append(request_id, None, status, actor_user_id)

    def transition(
        self,
        request_id: int,
        target: Any,
        actor_user_id: Optional[int],
        expected_from: Optional[Iterable[Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> ConsultationRequestSchema:
        """
        요청 상태를 target으로 전이.

        Args:
            expected_from: 연산이 요구하는 현재 상태들. 아니면 InvalidStateError
            extra: 같은 UPDATE에 함께 기록할 컬럼 (예: advisor_id)

        Raises:
            NotFoundError, InvalidStateError, InvalidTransitionError
        """
        target = _value(target)
        request = self.load(request_id, lock=True)
        current = request.status

        if expected_from is not None:
            expected = [_value(s) for s in expected_from]
            if current not in expected:
                raise InvalidStateError(
                    f"Request {request_id} is '{current}'",
                    current=current,
                    expected=expected,
                )

        assert_transition(current, target)

        applied = self.request_repo.compare_and_set_status(
            request_id,
            expected=current,
            target=target,
            milestone=MILESTONES.get(target),
            extra=extra,
        )
        if not applied:
            # 잠금 이후에도 다른 트랜잭션이 먼저 바꾼 경우
            latest = self.load(request_id)
            raise InvalidStateError(
                f"Request {request_id} changed concurrently",
                current=latest.status,
                expected=[current],
            )

        self.transition_repo.append(request_id, current, target, actor_user_id)
        logger.info(
            f"Consultation {request_id}: {current} -> {target} (actor={actor_user_id})"
        )
        return self.load(request_id)
