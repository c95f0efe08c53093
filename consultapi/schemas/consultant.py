from pydantic import BaseModel
from typing import List, Optional


class Consultant(BaseModel):
    id: int
    user_id: Optional[int] = None
    name: str
    specialty: str
    specialties: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    availability: Optional[List[str]] = None
    experience_years: int = 0
    rating_avg: int = 0
    rating_count: int = 0
    status: str = "active"

    class Config:
        from_attributes = True


class AdvisorMetrics(BaseModel):
    """상담사 실적 요약"""

    advisor_id: int
    total_consultations: int
    completed_consultations: int
    active_consultations: int
    rating_avg: int = 0  # 별점 평균 × 100
    rating_count: int = 0
    status: str  # new | active
