from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime


class FileReference(BaseModel):
    """외부 저장소 파일 참조"""

    file_id: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)


class ConsultationRequest(BaseModel):
    """상담 요청"""

    id: int
    user_id: int
    advisor_id: Optional[int] = None
    user_tier_snapshot: str
    priority_weight: int
    discount_rate_bps: int
    gross_amount: Optional[int] = None
    discount_amount: Optional[int] = None
    net_amount: Optional[int] = None
    currency: Optional[str] = None
    status: str
    summary: str
    files: Optional[List[FileReference]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    awaiting_payment_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    rated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConsultationCreateRequest(BaseModel):
    """상담 요청 생성"""

    summary: str = Field(..., min_length=1, max_length=5000, description="상담 요약")
    files: Optional[List[FileReference]] = Field(None, description="첨부 파일 참조")
    gross_amount: Optional[int] = Field(
        None, ge=0, description="상담 가격 (fils). 없으면 결제 예약 시 확정"
    )
    as_draft: bool = Field(False, description="초안으로 저장 여부")


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class RequestTransition(BaseModel):
    """상태 전이 감사 로그"""

    id: int
    request_id: int
    from_status: Optional[str] = None
    to_status: str
    actor_user_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RequestAssignment(BaseModel):
    id: int
    request_id: int
    advisor_id: int
    rank: int
    status: str
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchFilters(BaseModel):
    """매칭 필터 (모두 선택)"""

    specialty: Optional[str] = Field(None, max_length=100)
    min_rating: Optional[float] = Field(None, ge=1, le=5, description="최소 별점 (1~5)")
    language: Optional[str] = Field(None, max_length=20)
    require_availability: bool = False


class RankedAdvisor(BaseModel):
    advisor_id: int
    name: str
    specialty: str
    score: int
    rank: int


class MatchResult(BaseModel):
    request_id: int
    results: List[RankedAdvisor]


class AssignmentDecisionRequest(BaseModel):
    decision: Literal["accept", "decline"]


class RatingCreateRequest(BaseModel):
    score: int = Field(..., ge=1, le=5, description="별점 1~5")
    comment: Optional[str] = Field(None, max_length=2000)


class AdvisorRating(BaseModel):
    id: int
    request_id: int
    advisor_id: int
    user_id: int
    score: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
