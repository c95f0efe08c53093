from enum import Enum
from typing import Union

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from consultapi.models.base import BaseModel, BigIntPK

"""User role / tier enumeration."""

# 계정 삭제 시 결제 원장의 payer를 대체하는 예약 사용자
ANONYMIZED_PAYER_EMAIL = "anonymized-payer@system.invalid"


class UserRole(str, Enum):
    """사용자 역할 정의"""

    USER = "user"  # 일반 사용자 (상담 요청자)
    ADVISOR = "advisor"  # 상담사
    ADMIN = "admin"  # 관리자
    SYSTEM = "system"  # 시스템 예약 계정

    @classmethod
    def is_admin(cls, role: Union[str, "UserRole"]) -> bool:
        """관리자 권한 확인"""
        if isinstance(role, cls):
            role = role.value
        return role == cls.ADMIN.value


class UserTier(str, Enum):
    """구독 등급"""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class User(BaseModel):
    __tablename__ = "users"
    __table_args__ = (Index("idx_users_email", "email"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.USER.value, nullable=False
    )
    tier: Mapped[str] = mapped_column(
        String(20), default=UserTier.FREE.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(str(self.role))
