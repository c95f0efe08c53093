from typing import Optional

from sqlalchemy.orm import Session

from consultapi.models.user import ANONYMIZED_PAYER_EMAIL, User as UserModel, UserRole, UserTier
from consultapi.repositories.base import BaseRepository
from consultapi.schemas.user import User as UserSchema


class UserRepository(BaseRepository[UserModel, UserSchema]):
    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def get_by_email(self, email: str) -> Optional[UserSchema]:
        return self.get_by_field("email", email)

    def get_anonymized_payer(self) -> Optional[UserSchema]:
        """익명 결제자 예약 계정 조회"""
        return self.get_by_email(ANONYMIZED_PAYER_EMAIL)

    def ensure_anonymized_payer(self, commit: bool = True) -> UserSchema:
        """익명 결제자 예약 계정이 없으면 생성"""
        existing = self.get_anonymized_payer()
        if existing:
            return existing
        created = self.create(
            commit=commit,
            email=ANONYMIZED_PAYER_EMAIL,
            role=UserRole.SYSTEM.value,
            tier=UserTier.FREE.value,
            is_active=False,
        )
        assert created is not None
        return created
