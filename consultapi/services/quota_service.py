"""
사용량 한도 적용 서비스

enforce: 한도 확인과 증가를 한 번의 원자적 연산으로 처리하고, 초과면 QuotaExceededError.
peek: 같은 한도 조회/계산을 쓰되 증가하지 않는다.
"""

import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from consultapi.config import Settings, settings as default_settings
from consultapi.core.exceptions import QuotaExceededError, ValidationError
from consultapi.schemas.usage import TierLimit, UsageResult
from consultapi.services.quota_store import QuotaStore, SqlQuotaStore
from consultapi.services.tier_service import (
    ACTION_LIMIT_FIELDS,
    TierService,
    default_tier_limit,
)
from consultapi.utils.timezone_utils import utc_today

logger = logging.getLogger(__name__)

ACTIONS = frozenset(ACTION_LIMIT_FIELDS)


def evaluate_usage(limit: Optional[int], used: int, allowed: bool) -> UsageResult:
    """한도/사용량으로 결과 계산 (limit None = 무제한)"""
    if limit is None:
        return UsageResult(allowed=allowed, limit=None, used=used, remaining=None)
    return UsageResult(
        allowed=allowed, limit=limit, used=used, remaining=max(limit - used, 0)
    )


class QuotaService:
    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        tier_service: Optional[TierService] = None,
        store: Optional[QuotaStore] = None,
        fallback_store: Optional[QuotaStore] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.tier_service = tier_service or TierService(db, self.settings)
        self.store = store or SqlQuotaStore(db)
        self.fallback_store = fallback_store
        self._known_limits: Dict[Tuple[str, str], Optional[int]] = {}

    def _validate(self, action: str, amount: int) -> None:
        if action not in ACTIONS:
            raise ValidationError(
                f"Unknown action '{action}'",
                details={"allowed_actions": sorted(ACTIONS)},
            )
        if amount < 1:
            raise ValidationError("Amount must be at least 1", details={"amount": amount})

    def _use_fallback(self, exc: Exception) -> bool:
        self.db.rollback()
        if not self.settings.QUOTA_FALLBACK_ENABLED or self.fallback_store is None:
            return False
        logger.warning(f"Usage counter store unavailable, using in-process counter: {exc}")
        return True

    def _daily_limit(self, tier: str, action: str) -> Optional[int]:
        limit = self.tier_service.get_daily_limit(tier, action)
        self._known_limits[(tier, action)] = limit
        return limit

    def _fallback_limit(self, tier: str, action: str) -> Optional[int]:
        """DB 장애 시 한도: 마지막 조회값 -> 캐시 -> 등급 기본값"""
        if (tier, action) in self._known_limits:
            return self._known_limits[(tier, action)]
        cache = self.tier_service.cache
        cached = cache.get(tier) if cache is not None else None
        row = TierLimit.model_validate(cached) if cached else default_tier_limit(tier)
        return getattr(row, ACTION_LIMIT_FIELDS[action])

    def enforce(
        self, user_id: int, tier: str, action: str, amount: int = 1
    ) -> UsageResult:
        """
        한도 확인 후 증가.

        Raises:
            QuotaExceededError: 증가 시 한도를 넘는 경우 (카운터는 변하지 않음)
        """
        self._validate(action, amount)
        today = utc_today()

        try:
            limit = self._daily_limit(tier, action)
            allowed, used = self.store.consume(user_id, today, action, amount, limit)
        except OperationalError as e:
            if not self._use_fallback(e):
                raise
            limit = self._fallback_limit(tier, action)
            allowed, used = self.fallback_store.consume(
                user_id, today, action, amount, limit
            )

        result = evaluate_usage(limit, used, allowed)
        if not allowed:
            logger.info(
                f"Quota exceeded: user={user_id} tier={tier} action={action} used={used} limit={limit}"
            )
            raise QuotaExceededError(
                action=action, used=used, limit=limit, remaining=result.remaining or 0
            )
        return result

    def peek(
        self, user_id: int, tier: str, action: str, amount: int = 1
    ) -> UsageResult:
        """증가 없이 현재 허용 여부 조회"""
        self._validate(action, amount)
        today = utc_today()

        try:
            limit = self._daily_limit(tier, action)
            used = self.store.current(user_id, today, action)
        except OperationalError as e:
            if not self._use_fallback(e):
                raise
            limit = self._fallback_limit(tier, action)
            used = self.fallback_store.current(user_id, today, action)

        allowed = limit is None or used + amount <= limit
        return evaluate_usage(limit, used, allowed)
