from unittest.mock import Mock

import pytest

from consultapi.core.exceptions import ValidationError
from consultapi.models.usage import TierLimit as TierLimitModel
from consultapi.services.tier_cache import TierLimitCache
from consultapi.services.tier_service import TierService
from tests.conftest import make_tier_limit


class TestTierService:
    """등급 한도 서비스 테스트"""

    def test_missing_row_falls_back_to_free_defaults(self, db, test_settings):
        service = TierService(db, test_settings)

        limit = service.get_tier_limit("enterprise")

        assert limit.tier == "enterprise"
        assert limit.general_chat_daily_limit == 10
        assert limit.advisor_chat_daily_limit == 3
        assert limit.contract_access is False

    def test_pro_defaults_are_unlimited(self, db, test_settings):
        service = TierService(db, test_settings)

        assert service.get_daily_limit("pro", "general-chat") is None
        assert service.can_access_contracts("pro") is True

    def test_stored_row_wins_over_defaults(self, db, test_settings):
        make_tier_limit(db, "free", general_chat_daily_limit=2, contract_access_level="full")
        service = TierService(db, test_settings)

        assert service.get_daily_limit("free", "general-chat") == 2
        assert service.get_daily_limit("free", "advisor-chat") is None
        assert service.can_access_contracts("free") is True

    def test_unknown_action_rejected(self, db, test_settings):
        with pytest.raises(ValidationError):
            TierService(db, test_settings).get_daily_limit("free", "video-call")

    def test_cache_hit_skips_database(self, db, test_settings):
        # Given
        cache = Mock(spec=TierLimitCache)
        cache.get.return_value = {
            "tier": "free",
            "general_chat_daily_limit": 1,
            "advisor_chat_daily_limit": 1,
            "contract_access_level": "locked",
            "discount_rate_bps": 0,
            "priority_weight": 0,
        }
        service = TierService(db, test_settings, cache=cache)
        service.tier_repo = Mock()

        # When
        limit = service.get_tier_limit("free")

        # Then
        assert limit.general_chat_daily_limit == 1
        service.tier_repo.get_by_tier.assert_not_called()
        cache.set.assert_not_called()

    def test_cache_miss_populates_cache(self, db, test_settings):
        cache = Mock(spec=TierLimitCache)
        cache.get.return_value = None
        service = TierService(db, test_settings, cache=cache)

        service.get_tier_limit("pro")

        cache.set.assert_called_once()
        tier, payload = cache.set.call_args.args
        assert tier == "pro"
        assert payload["discount_rate_bps"] == 1000

    def test_update_creates_row_and_invalidates_cache(self, db, test_settings):
        cache = Mock(spec=TierLimitCache)
        cache.get.return_value = None
        service = TierService(db, test_settings, cache=cache)

        updated = service.update_tier_limit("free", general_chat_daily_limit=5)

        assert updated.general_chat_daily_limit == 5
        # 나머지 필드는 기본값으로 채워짐
        assert updated.advisor_chat_daily_limit == 3
        cache.invalidate.assert_called_once_with("free")
        assert db.query(TierLimitModel).filter_by(tier="free").count() == 1

    def test_update_rejects_unknown_fields(self, db, test_settings):
        with pytest.raises(ValidationError) as exc:
            TierService(db, test_settings).update_tier_limit("free", monthly_limit=3)
        assert exc.value.details == {"fields": ["monthly_limit"]}

    def test_update_rejects_unknown_tier(self, db, test_settings):
        with pytest.raises(ValidationError):
            TierService(db, test_settings).update_tier_limit("platinum", priority_weight=1)

    def test_ensure_defaults_is_idempotent(self, db, test_settings):
        service = TierService(db, test_settings)

        first = service.ensure_default_tier_limits()
        second = service.ensure_default_tier_limits()

        assert {row.tier for row in first} == {"free", "pro", "enterprise"}
        assert second == []
