from dependency_injector import containers, providers

from consultapi.config import Settings
from consultapi.services.account_service import AccountService
from consultapi.services.consultation_service import ConsultationService
from consultapi.services.escrow_service import EscrowService
from consultapi.services.matching_service import MatchingService
from consultapi.services.quota_service import QuotaService
from consultapi.services.quota_store import InMemoryQuotaStore
from consultapi.services.tier_cache import TierLimitCache
from consultapi.services.tier_service import TierService
from consultapi.services.withdrawal_service import WithdrawalService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class InfraModule(containers.DeclarativeContainer):
    """Process-wide shared resources."""

    config = providers.DependenciesContainer()

    tier_limit_cache = providers.Singleton(TierLimitCache, settings=config.config)
    # DB 장애 시에만 쓰는 프로세스 내 사용량 카운터
    fallback_quota_store = providers.Singleton(InMemoryQuotaStore)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies. db는 요청 단위 세션으로 호출 시 전달."""

    config = providers.DependenciesContainer()
    infra = providers.DependenciesContainer()

    tier_service = providers.Factory(
        TierService, settings=config.config, cache=infra.tier_limit_cache
    )
    quota_service = providers.Factory(
        QuotaService,
        settings=config.config,
        fallback_store=infra.fallback_quota_store,
    )
    consultation_service = providers.Factory(ConsultationService, settings=config.config)
    matching_service = providers.Factory(MatchingService)
    escrow_service = providers.Factory(EscrowService, settings=config.config)
    withdrawal_service = providers.Factory(WithdrawalService, settings=config.config)
    account_service = providers.Factory(AccountService)


class Container(containers.DeclarativeContainer):
    """Application container."""

    config = providers.Container(ConfigModule)
    infra = providers.Container(InfraModule, config=config)
    services = providers.Container(ServiceModule, config=config, infra=infra)
