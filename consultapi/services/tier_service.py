import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from consultapi.config import Settings, settings as default_settings
from consultapi.core.exceptions import ValidationError
from consultapi.models.usage import ContractAccessLevel
from consultapi.models.user import UserTier
from consultapi.repositories.tier_repository import TierLimitRepository
from consultapi.schemas.usage import TierLimit
from consultapi.services.tier_cache import TierLimitCache

logger = logging.getLogger(__name__)

# 등급 행이 없을 때 사용하는 기본값. 목록에 없는 등급은 free 기본값을 따른다.
DEFAULT_TIER_LIMITS: Dict[str, Dict[str, Any]] = {
    UserTier.FREE.value: {
        "general_chat_daily_limit": 10,
        "advisor_chat_daily_limit": 3,
        "contract_access_level": ContractAccessLevel.LOCKED.value,
        "discount_rate_bps": 0,
        "priority_weight": 0,
    },
    UserTier.PRO.value: {
        "general_chat_daily_limit": None,
        "advisor_chat_daily_limit": None,
        "contract_access_level": ContractAccessLevel.FULL.value,
        "discount_rate_bps": 1000,  # 10%
        "priority_weight": 10,
    },
}

# 액션 -> 한도 필드
ACTION_LIMIT_FIELDS = {
    "general-chat": "general_chat_daily_limit",
    "advisor-chat": "advisor_chat_daily_limit",
}

UPDATABLE_FIELDS = (
    "general_chat_daily_limit",
    "advisor_chat_daily_limit",
    "contract_access_level",
    "discount_rate_bps",
    "priority_weight",
)


def default_tier_limit(tier: str) -> TierLimit:
    defaults = DEFAULT_TIER_LIMITS.get(tier, DEFAULT_TIER_LIMITS[UserTier.FREE.value])
    return TierLimit(tier=tier, **defaults)


class TierService:
    """등급별 한도/혜택 조회 및 관리"""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        cache: Optional[TierLimitCache] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.cache = cache
        self.tier_repo = TierLimitRepository(db)

    def get_tier_limit(self, tier: str) -> TierLimit:
        """등급 한도 조회 (캐시 -> DB -> 기본값)"""
        if self.cache is not None:
            cached = self.cache.get(tier)
            if cached:
                return TierLimit.model_validate(cached)

        row = self.tier_repo.get_by_tier(tier)
        result = row if row is not None else default_tier_limit(tier)

        if self.cache is not None:
            self.cache.set(tier, result.model_dump())
        return result

    def get_daily_limit(self, tier: str, action: str) -> Optional[int]:
        """액션의 일일 한도 (None = 무제한)"""
        field = ACTION_LIMIT_FIELDS.get(action)
        if field is None:
            raise ValidationError(
                f"Unknown action '{action}'",
                details={"allowed_actions": sorted(ACTION_LIMIT_FIELDS)},
            )
        return getattr(self.get_tier_limit(tier), field)

    def can_access_contracts(self, tier: str) -> bool:
        return self.get_tier_limit(tier).contract_access

    def ensure_default_tier_limits(self) -> List[TierLimit]:
        """모든 등급의 한도 행이 없으면 기본값으로 생성"""
        created = []
        for tier in UserTier:
            if self.tier_repo.get_by_tier(tier.value) is None:
                defaults = default_tier_limit(tier.value).model_dump(exclude={"tier"})
                created.append(self.tier_repo.upsert(tier.value, defaults))
                logger.info(f"Seeded tier limits for '{tier.value}'")
        return created

    def update_tier_limit(self, tier: str, **fields) -> TierLimit:
        """관리자 한도 수정 - 전달된 필드만 반영하고 캐시를 비운다"""
        if tier not in {t.value for t in UserTier}:
            raise ValidationError(f"Unknown tier '{tier}'")
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "Unknown tier limit fields", details={"fields": sorted(unknown)}
            )

        if self.tier_repo.get_by_tier(tier) is None:
            base = default_tier_limit(tier).model_dump(exclude={"tier"})
            base.update(fields)
            fields = base

        updated = self.tier_repo.upsert(tier, fields)
        if self.cache is not None:
            self.cache.invalidate(tier)
        logger.info(f"Tier limits updated for '{tier}': {fields}")
        return updated
