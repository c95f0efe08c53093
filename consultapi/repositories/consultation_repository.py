from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from consultapi.models.consultation import (
    AdvisorRating as AdvisorRatingModel,
    AssignmentStatus,
    ConsultationRequest as ConsultationRequestModel,
    RequestAssignment as RequestAssignmentModel,
    RequestTransition as RequestTransitionModel,
)
from consultapi.repositories.base import BaseRepository
from consultapi.schemas.consultation import (
    AdvisorRating as AdvisorRatingSchema,
    ConsultationRequest as ConsultationRequestSchema,
    RequestAssignment as RequestAssignmentSchema,
    RequestTransition as RequestTransitionSchema,
)


class ConsultationRepository(
    BaseRepository[ConsultationRequestModel, ConsultationRequestSchema]
):
    """상담 요청 리포지토리 - status 컬럼은 compare_and_set_status로만 변경"""

    def __init__(self, db: Session):
        super().__init__(ConsultationRequestModel, ConsultationRequestSchema, db)

    def lock(self, request_id: int) -> Optional[ConsultationRequestSchema]:
        """요청 행을 잠그고 조회 (SELECT ... FOR UPDATE)"""
        return self._to_schema(self._get_model(request_id, for_update=True))

    def list_for_user(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> List[ConsultationRequestSchema]:
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .order_by(self.model_class.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return self._to_schemas(rows)

    def exists_in_status(self, user_id: int, status: str) -> bool:
        return self.exists(user_id=user_id, status=status)

    def count_by_status_for_advisor(self, advisor_id: int) -> Dict[str, int]:
        """상담사에게 배정된 요청 수 (status별)"""
        rows = (
            self.db.query(self.model_class.status, func.count(self.model_class.id))
            .filter(self.model_class.advisor_id == advisor_id)
            .group_by(self.model_class.status)
            .all()
        )
        return {status: int(count) for status, count in rows}

    def compare_and_set_status(
        self,
        request_id: int,
        expected: str,
        target: str,
        milestone: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        status가 expected일 때만 target으로 변경 (원자적 UPDATE).

        milestone 컬럼은 비어 있을 때만 기록된다. 커밋하지 않는다.
        Returns: 변경 여부 (동시 변경이 먼저 일어났으면 False)
        """
        now = datetime.now(timezone.utc)
        values: Dict[Any, Any] = {
            self.model_class.status: target,
            self.model_class.updated_at: now,
        }
        if milestone:
            column = getattr(self.model_class, milestone)
            values[column] = func.coalesce(column, now)
        for key, value in (extra or {}).items():
            values[getattr(self.model_class, key)] = value

        updated = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.id == request_id,
                    self.model_class.status == expected,
                )
            )
            .update(values, synchronize_session="fetch")
        )
        return updated == 1

    def set_milestone(self, request_id: int, milestone: str) -> None:
        """상태 변경 없이 마일스톤만 기록 (이미 있으면 유지)"""
        column = getattr(self.model_class, milestone)
        self.db.query(self.model_class).filter(
            self.model_class.id == request_id
        ).update(
            {column: func.coalesce(column, datetime.now(timezone.utc))},
            synchronize_session="fetch",
        )

    def set_pricing(
        self,
        request_id: int,
        gross_amount: int,
        discount_amount: int,
        net_amount: int,
        currency: str,
    ) -> bool:
        """가격 미정인 요청에만 금액을 기록"""
        updated = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.id == request_id,
                    self.model_class.gross_amount.is_(None),
                )
            )
            .update(
                {
                    self.model_class.gross_amount: gross_amount,
                    self.model_class.discount_amount: discount_amount,
                    self.model_class.net_amount: net_amount,
                    self.model_class.currency: currency,
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1


class AssignmentRepository(
    BaseRepository[RequestAssignmentModel, RequestAssignmentSchema]
):
    def __init__(self, db: Session):
        super().__init__(RequestAssignmentModel, RequestAssignmentSchema, db)

    def lock(self, assignment_id: int) -> Optional[RequestAssignmentSchema]:
        return self._to_schema(self._get_model(assignment_id, for_update=True))

    def replace_for_request(
        self, request_id: int, ranked_advisor_ids: Iterable[int]
    ) -> List[RequestAssignmentSchema]:
        """기존 배정을 지우고 순위대로 offered 행을 다시 만든다 (커밋하지 않음)"""
        self.db.query(self.model_class).filter(
            self.model_class.request_id == request_id
        ).delete(synchronize_session="fetch")
        self.db.flush()

        rows = [
            self.model_class(
                request_id=request_id,
                advisor_id=advisor_id,
                rank=rank,
                status=AssignmentStatus.OFFERED.value,
            )
            for rank, advisor_id in enumerate(ranked_advisor_ids, start=1)
        ]
        self.db.add_all(rows)
        self.db.flush()
        return self._to_schemas(rows)

    def list_for_request(self, request_id: int) -> List[RequestAssignmentSchema]:
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.request_id == request_id)
            .order_by(self.model_class.rank.asc())
            .all()
        )
        return self._to_schemas(rows)

    def list_for_advisor(
        self, advisor_id: int, status: Optional[str] = None
    ) -> List[RequestAssignmentSchema]:
        query = self.db.query(self.model_class).filter(
            self.model_class.advisor_id == advisor_id
        )
        if status:
            query = query.filter(self.model_class.status == status)
        return self._to_schemas(query.order_by(self.model_class.id.desc()).all())

    def respond(self, assignment_id: int, status: str) -> bool:
        """offered 상태인 배정만 응답 처리"""
        updated = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.id == assignment_id,
                    self.model_class.status == AssignmentStatus.OFFERED.value,
                )
            )
            .update(
                {
                    self.model_class.status: status,
                    self.model_class.responded_at: datetime.now(timezone.utc),
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def expire_open_offers(self, request_id: int) -> int:
        """요청에 남은 offered 배정을 expired로 변경"""
        return (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.request_id == request_id,
                    self.model_class.status == AssignmentStatus.OFFERED.value,
                )
            )
            .update(
                {self.model_class.status: AssignmentStatus.EXPIRED.value},
                synchronize_session="fetch",
            )
        )


class TransitionRepository(
    BaseRepository[RequestTransitionModel, RequestTransitionSchema]
):
    """상태 전이 감사 로그 - append-only"""

    def __init__(self, db: Session):
        super().__init__(RequestTransitionModel, RequestTransitionSchema, db)

    def append(
        self,
        request_id: int,
        from_status: Optional[str],
        to_status: str,
        actor_user_id: Optional[int],
    ) -> Optional[RequestTransitionSchema]:
        return self.create(
            commit=False,
            request_id=request_id,
            from_status=from_status,
            to_status=to_status,
            actor_user_id=actor_user_id,
        )

    def list_for_request(self, request_id: int) -> List[RequestTransitionSchema]:
        rows = (
            self.db.query(self.model_class)
            .filter(self.model_class.request_id == request_id)
            .order_by(self.model_class.id.asc())
            .all()
        )
        return self._to_schemas(rows)


class RatingRepository(BaseRepository[AdvisorRatingModel, AdvisorRatingSchema]):
    def __init__(self, db: Session):
        super().__init__(AdvisorRatingModel, AdvisorRatingSchema, db)

    def get_for_request(self, request_id: int) -> Optional[AdvisorRatingSchema]:
        return self.get_by_field("request_id", request_id)
