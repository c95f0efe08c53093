from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from consultapi.config import settings
from consultapi.core.exceptions import AuthenticationError, ForbiddenError
from consultapi.database.session import get_db
from consultapi.repositories.user_repository import UserRepository
from consultapi.schemas.user import User as UserSchema


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """토큰 발급은 외부 인증 서비스 몫. 로컬 도구와 테스트용."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )
    return encoded_jwt


# Security scheme
security = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    user_id: int
    sub: Optional[str] = None


def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """JWT 토큰을 검증하고 user_id를 반환합니다."""
    if credentials is None:
        raise AuthenticationError("Authentication required")
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        token_data = TokenPayload.model_validate(payload)
        return token_data.user_id
    except (JWTError, ValidationError):
        raise AuthenticationError("Invalid authentication credentials")


def get_current_user(
    user_id: int = Depends(verify_token), db: Session = Depends(get_db)
) -> UserSchema:
    """현재 인증된 사용자 정보 조회"""
    user = UserRepository(db).get_by_id(user_id)
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Inactive user account")
    return user


def admin_required(current_user: UserSchema = Depends(get_current_user)) -> UserSchema:
    """관리자 권한 확인"""
    if not current_user.is_admin:
        raise ForbiddenError("Admin privileges required", required=["is_admin"])
    return current_user
