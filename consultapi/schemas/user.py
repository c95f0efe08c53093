from pydantic import BaseModel, Field


class User(BaseModel):
    """인증된 호출자 (엔진이 읽는 필드만)"""

    id: int
    email: str
    role: str = "user"
    tier: str = "free"
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    class Config:
        from_attributes = True


class AnonymizeResponse(BaseModel):
    user_id: int = Field(..., description="익명화 대상 사용자")
    sentinel_user_id: int = Field(..., description="대체된 익명 결제자 계정")
    orders_reassigned: int = Field(..., description="재할당된 주문 수")
