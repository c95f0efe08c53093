"""
상담 요청 API 라우터

요청자 엔드포인트:
- POST /consultations: 상담 요청 생성
- GET /consultations: 내 상담 요청 목록
- GET /consultations/{id}: 상담 요청 조회
- GET /consultations/{id}/transitions: 상태 전이 이력
- POST /consultations/{id}/submit: 초안 제출
- POST /consultations/{id}/match: 상담사 매칭
- POST /consultations/{id}/reserve: 결제 예약
- POST /consultations/{id}/start: 상담 시작 (결제 확인 후)
- POST /consultations/{id}/complete: 상담 종료
- POST /consultations/{id}/release: 정산
- POST /consultations/{id}/cancel: 취소
- POST /consultations/{id}/rating: 상담사 평가

상담사 엔드포인트:
- GET /assignments/mine: 받은 배정 목록
- POST /assignments/{id}/respond: 배정 수락/거절

인증: 모든 엔드포인트는 Bearer 토큰 필요
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from consultapi.core.security import get_current_user
from consultapi.deps import (
    get_consultation_service,
    get_escrow_service,
    get_matching_service,
)
from consultapi.schemas.consultation import (
    AdvisorRating,
    AssignmentDecisionRequest,
    CancelRequest,
    ConsultationCreateRequest,
    ConsultationRequest,
    MatchFilters,
    MatchResult,
    RatingCreateRequest,
    RequestAssignment,
    RequestTransition,
)
from consultapi.schemas.ledger import (
    ReleasePaymentRequest,
    ReleaseResponse,
    ReservationResponse,
    ReservePaymentRequest,
)
from consultapi.schemas.user import User
from consultapi.services.consultation_service import ConsultationService
from consultapi.services.escrow_service import EscrowService
from consultapi.services.matching_service import MatchingService

router = APIRouter(prefix="/consultations", tags=["consultations"])
assignment_router = APIRouter(prefix="/assignments", tags=["assignments"])


@router.post("", response_model=ConsultationRequest, status_code=201)
def create_consultation(
    body: ConsultationCreateRequest,
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
) -> ConsultationRequest:
    """
    상담 요청 생성 - 호출자의 현재 등급을 스냅샷으로 저장

    HTTP Status:
        201: 생성 (pending_advisor 또는 draft)
        422: 입력 오류
    """
    return service.create_consultation(
        user_id=current_user.id,
        tier=current_user.tier,
        summary=body.summary,
        files=body.files,
        gross_amount=body.gross_amount,
        as_draft=body.as_draft,
    )


@router.get("", response_model=List[ConsultationRequest])
def list_my_consultations(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
) -> List[ConsultationRequest]:
    return service.list_consultations_for_user(current_user, limit=limit, offset=offset)


@router.get("/{request_id}", response_model=ConsultationRequest)
def get_consultation(
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
) -> ConsultationRequest:
    return service.get_consultation(request_id, current_user)


@router.get("/{request_id}/transitions", response_model=List[RequestTransition])
def get_transition_history(
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
) -> List[RequestTransition]:
    return service.get_transition_history(request_id, current_user)


@router.post("/{request_id}/submit", response_model=ConsultationRequest)
def submit_draft(
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
) -> ConsultationRequest:
    return service.submit_draft(request_id, current_user)


@router.post("/{request_id}/match", response_model=MatchResult)
def match_advisors(
    filters: Optional[MatchFilters] = None,
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: MatchingService = Depends(get_matching_service),
) -> MatchResult:
    """
    상담사 매칭 - 기존 배정을 지우고 순위대로 다시 제안

    HTTP Status:
        200: 매칭 결과 (후보가 없으면 빈 목록)
        403: 요청자가 아님
        409: pending_advisor 상태가 아님
    """
    return service.match_advisors(request_id, current_user, filters)


@router.post("/{request_id}/reserve", response_model=ReservationResponse)
def reserve_payment(
    body: ReservePaymentRequest,
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: EscrowService = Depends(get_escrow_service),
) -> ReservationResponse:
    return service.reserve_payment(
        request_id, current_user, amount=body.amount, currency=body.currency
    )


@router.post("/{request_id}/start", response_model=ConsultationRequest)
def start_session(
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: EscrowService = Depends(get_escrow_service),
) -> ConsultationRequest:
    """
    상담 시작 - 결제가 게이트웨이에서 확인된 경우에만

    HTTP Status:
        402: 결제 미확인
        409: payment_reserved 상태가 아님
    """
    return service.start_session(request_id, current_user)


@router.post("/{request_id}/complete", response_model=ConsultationRequest)
def complete_session(
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: EscrowService = Depends(get_escrow_service),
) -> ConsultationRequest:
    return service.complete_session(request_id, current_user)


@router.post("/{request_id}/release", response_model=ReleaseResponse)
def release_payment(
    body: Optional[ReleasePaymentRequest] = None,
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: EscrowService = Depends(get_escrow_service),
) -> ReleaseResponse:
    bps = body.platform_fee_bps if body else None
    return service.release_payment(request_id, current_user, platform_fee_bps=bps)


@router.post("/{request_id}/cancel", response_model=ConsultationRequest)
def cancel_consultation(
    body: Optional[CancelRequest] = None,
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
) -> ConsultationRequest:
    reason = body.reason if body else None
    return service.cancel_consultation(request_id, current_user, reason=reason)


@router.post("/{request_id}/rating", response_model=AdvisorRating, status_code=201)
def rate_advisor(
    body: RatingCreateRequest,
    request_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: ConsultationService = Depends(get_consultation_service),
) -> AdvisorRating:
    return service.rate_advisor(
        request_id, current_user, score=body.score, comment=body.comment
    )


@assignment_router.get("/mine", response_model=List[RequestAssignment])
def list_my_assignments(
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: MatchingService = Depends(get_matching_service),
) -> List[RequestAssignment]:
    return service.list_assignments_for_advisor(current_user, status=status)


@assignment_router.post("/{assignment_id}/respond", response_model=RequestAssignment)
def respond_to_assignment(
    body: AssignmentDecisionRequest,
    assignment_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: MatchingService = Depends(get_matching_service),
) -> RequestAssignment:
    """
    배정 응답 - 제안받은 상담사만 가능

    HTTP Status:
        200: 처리된 배정
        403: 제안받은 상담사가 아님
        409: 이미 응답했거나 요청이 pending_advisor가 아님
    """
    return service.respond_to_assignment(assignment_id, current_user, body.decision)
