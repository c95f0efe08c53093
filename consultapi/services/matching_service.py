"""
상담사 매칭 엔진

점수 = 요청의 우선순위 가중치 × 1000 + 평점(0~500) + 경력 연수 × 10
점수 내림차순, 동점이면 상담사 id 오름차순. 순위는 1부터.
재매칭은 기존 배정을 모두 지우고 다시 만든다.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from consultapi.core.capabilities import Capability, authorize
from consultapi.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from consultapi.database.session import transactional
from consultapi.models.consultation import AssignmentStatus, RequestStatus
from consultapi.repositories.consultant_repository import ConsultantRepository
from consultapi.repositories.consultation_repository import AssignmentRepository
from consultapi.schemas.consultant import Consultant
from consultapi.schemas.consultation import (
    MatchFilters,
    MatchResult,
    RankedAdvisor,
    RequestAssignment,
)
from consultapi.schemas.user import User
from consultapi.services.state_machine import ConsultationStateMachine

logger = logging.getLogger(__name__)

DECISIONS = ("accept", "decline")


def rating_stars(rating_avg: int) -> float:
    """저장 평점(별점 × 100)을 별점으로 변환. 5 이하 값은 이미 별점으로 본다"""
    return rating_avg / 100 if rating_avg > 5 else float(rating_avg)


def passes_filters(consultant: Consultant, filters: MatchFilters) -> bool:
    if filters.specialty:
        specialties = consultant.specialties or []
        if (
            consultant.specialty != filters.specialty
            and filters.specialty not in specialties
        ):
            return False
    # 언어 목록이 있는 경우에만 제외
    if filters.language and consultant.languages is not None:
        if filters.language not in consultant.languages:
            return False
    if filters.min_rating:
        if rating_stars(consultant.rating_avg or 0) < filters.min_rating:
            return False
    # 명시적으로 비어 있는 가용 시간 목록만 제외
    if filters.require_availability and consultant.availability is not None:
        if len(consultant.availability) == 0:
            return False
    return True


def score_consultant(consultant: Consultant, priority_weight: int) -> int:
    return (
        priority_weight * 1000
        + (consultant.rating_avg or 0)
        + (consultant.experience_years or 0) * 10
    )


def rank_consultants(
    consultants: List[Consultant], filters: MatchFilters, priority_weight: int
) -> List[RankedAdvisor]:
    """필터 적용 후 결정적 순서로 정렬"""
    scored = [
        (score_consultant(c, priority_weight), c)
        for c in consultants
        if c.status == "active" and passes_filters(c, filters)
    ]
    scored.sort(key=lambda item: (-item[0], item[1].id))
    return [
        RankedAdvisor(
            advisor_id=c.id,
            name=c.name,
            specialty=c.specialty,
            score=score,
            rank=rank,
        )
        for rank, (score, c) in enumerate(scored, start=1)
    ]


class MatchingService:
    def __init__(self, db: Session):
        self.db = db
        self.consultant_repo = ConsultantRepository(db)
        self.assignment_repo = AssignmentRepository(db)
        self.state_machine = ConsultationStateMachine(db)

    def match_advisors(
        self,
        request_id: int,
        actor: User,
        filters: Optional[MatchFilters] = None,
    ) -> MatchResult:
        """
        후보 상담사 순위 계산 및 offered 배정 생성 (재실행해도 같은 결과)

        Raises:
            NotFoundError, ForbiddenError, InvalidStateError
        """
        filters = filters or MatchFilters()
        request = self.state_machine.load(request_id)
        authorize(actor, [Capability.OWNS_REQUEST], request=request)
        if request.status != RequestStatus.PENDING_ADVISOR.value:
            raise InvalidStateError(
                "Matching is only possible while waiting for an advisor",
                current=request.status,
                expected=[RequestStatus.PENDING_ADVISOR.value],
            )

        ranked = rank_consultants(
            self.consultant_repo.list_active(), filters, request.priority_weight
        )
        with transactional(self.db):
            # 잠금 후 상태 재확인
            locked = self.state_machine.load(request_id, lock=True)
            if locked.status != RequestStatus.PENDING_ADVISOR.value:
                raise InvalidStateError(
                    "Matching is only possible while waiting for an advisor",
                    current=locked.status,
                    expected=[RequestStatus.PENDING_ADVISOR.value],
                )
            self.assignment_repo.replace_for_request(
                request_id, [r.advisor_id for r in ranked]
            )

        logger.info(f"Consultation {request_id} matched {len(ranked)} advisors")
        return MatchResult(request_id=request_id, results=ranked)

    def respond_to_assignment(
        self, assignment_id: int, actor: User, decision: str
    ) -> RequestAssignment:
        """
        상담사의 배정 응답

        accept: 요청에 상담사 확정 + accepted 전이, 나머지 제안은 expired
        decline: 해당 배정만 declined
        """
        if decision not in DECISIONS:
            raise ValidationError(
                "Decision must be 'accept' or 'decline'",
                details={"decision": decision},
            )

        assignment = self.assignment_repo.get_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError(
                f"Assignment {assignment_id} not found",
                details={"assignment_id": assignment_id},
            )
        consultant = self.consultant_repo.get_by_user_id(actor.id)
        authorize(
            actor,
            [Capability.IS_OFFERED_ADVISOR],
            assignment=assignment,
            consultant=consultant,
        )

        with transactional(self.db):
            assignment = self.assignment_repo.lock(assignment_id)
            request = self.state_machine.load(assignment.request_id, lock=True)
            if assignment.status != AssignmentStatus.OFFERED.value:
                raise InvalidStateError(
                    "Assignment is no longer open",
                    current=assignment.status,
                    expected=[AssignmentStatus.OFFERED.value],
                )
            if request.status != RequestStatus.PENDING_ADVISOR.value:
                raise InvalidStateError(
                    "Consultation is not waiting for an advisor",
                    current=request.status,
                    expected=[RequestStatus.PENDING_ADVISOR.value],
                )

            if decision == "accept":
                self.state_machine.transition(
                    request.id,
                    RequestStatus.ACCEPTED,
                    actor.id,
                    expected_from=[RequestStatus.PENDING_ADVISOR],
                    extra={"advisor_id": assignment.advisor_id},
                )
                self.assignment_repo.respond(
                    assignment_id, AssignmentStatus.ACCEPTED.value
                )
                self.assignment_repo.expire_open_offers(request.id)
            else:
                self.assignment_repo.respond(
                    assignment_id, AssignmentStatus.DECLINED.value
                )

        logger.info(
            f"Assignment {assignment_id} decision={decision} by advisor {assignment.advisor_id} "
            f"(request={assignment.request_id})"
        )
        result = self.assignment_repo.get_by_id(assignment_id)
        assert result is not None
        return result

    def list_assignments_for_advisor(
        self, actor: User, status: Optional[str] = None
    ) -> List[RequestAssignment]:
        """호출자(상담사)에게 온 배정 목록"""
        consultant = self.consultant_repo.get_by_user_id(actor.id)
        if consultant is None:
            raise ForbiddenError(
                "Caller has no advisor profile",
                required=[Capability.IS_ACCOUNT_ADVISOR.value],
            )
        return self.assignment_repo.list_for_advisor(consultant.id, status=status)
