"""
상담사 풀 데이터 모델

매칭 엔진이 읽는 필드만 보관한다. 평점은 별점 × 100 정수(0~500)로 저장.
"""

from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, BigInteger, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from consultapi.models.base import BaseModel, BigIntPK


class ConsultantStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Consultant(BaseModel):
    __tablename__ = "consultants"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    # 상담사 로그인 계정 (없을 수 있음)
    user_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id"), unique=True, nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    specialty: Mapped[str] = mapped_column(String(100), nullable=False)
    specialties: Mapped[Optional[List[str]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    # NULL이면 언어 제한 없음
    languages: Mapped[Optional[List[str]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    availability: Mapped[Optional[List[str]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    experience_years: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_avg: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ConsultantStatus.ACTIVE.value, nullable=False
    )

    def __repr__(self):
        return f"<Consultant(id={self.id}, name={self.name}, status={self.status})>"
