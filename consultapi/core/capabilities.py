"""
호출자 권한(capability) 판정

각 연산은 허용하는 capability 집합을 선언하고 authorize()로 검사한다.
집합 중 하나라도 만족하면 통과, 아니면 ForbiddenError.
"""

from enum import Enum
from typing import Iterable, Optional

from consultapi.core.exceptions import ForbiddenError
from consultapi.schemas.consultant import Consultant
from consultapi.schemas.consultation import ConsultationRequest, RequestAssignment
from consultapi.schemas.user import User


class Capability(str, Enum):
    OWNS_REQUEST = "owns_request"  # 요청 작성자
    IS_ASSIGNED_ADVISOR = "is_assigned_advisor"  # 요청에 확정된 상담사
    IS_OFFERED_ADVISOR = "is_offered_advisor"  # 배정 제안을 받은 상담사
    IS_ACCOUNT_ADVISOR = "is_account_advisor"  # 해당 상담사 계정 본인
    IS_ADMIN = "is_admin"


def _holds(
    capability: Capability,
    actor: User,
    request: Optional[ConsultationRequest],
    assignment: Optional[RequestAssignment],
    consultant: Optional[Consultant],
    advisor_id: Optional[int],
) -> bool:
    if capability == Capability.IS_ADMIN:
        return actor.is_admin
    if capability == Capability.OWNS_REQUEST:
        return request is not None and request.user_id == actor.id
    # 이하 상담사 관련: 호출자의 상담사 프로필이 필요
    if consultant is None or consultant.user_id != actor.id:
        return False
    if capability == Capability.IS_ASSIGNED_ADVISOR:
        return request is not None and request.advisor_id == consultant.id
    if capability == Capability.IS_OFFERED_ADVISOR:
        return assignment is not None and assignment.advisor_id == consultant.id
    if capability == Capability.IS_ACCOUNT_ADVISOR:
        return advisor_id is not None and advisor_id == consultant.id
    return False


def holds_any(
    actor: User,
    required: Iterable[Capability],
    request: Optional[ConsultationRequest] = None,
    assignment: Optional[RequestAssignment] = None,
    consultant: Optional[Consultant] = None,
    advisor_id: Optional[int] = None,
) -> bool:
    return any(
        _holds(cap, actor, request, assignment, consultant, advisor_id)
        for cap in required
    )


def authorize(
    actor: User,
    required: Iterable[Capability],
    request: Optional[ConsultationRequest] = None,
    assignment: Optional[RequestAssignment] = None,
    consultant: Optional[Consultant] = None,
    advisor_id: Optional[int] = None,
) -> None:
    """required 중 하나도 만족하지 못하면 ForbiddenError"""
    required = list(required)
    if not holds_any(actor, required, request, assignment, consultant, advisor_id):
        raise ForbiddenError(
            message="Caller is not allowed to perform this operation",
            required=[cap.value for cap in required],
        )
