import random

from dependency_injector import containers, providers

from gatewayapi.config import Settings
from gatewayapi.core.auth_middleware import BearerTokenUserResolver
from gatewayapi.services.checkout_service import CheckoutService
from gatewayapi.services.gamification_service import GamificationService
from gatewayapi.services.ledger_service import LedgerService
from gatewayapi.services.split_service import SplitService, TransactionService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies; the request session is passed as `db`."""

    rng = providers.Singleton(random.Random)

    ledger_service = providers.Factory(LedgerService)
    split_service = providers.Factory(SplitService)
    transaction_service = providers.Factory(TransactionService)
    checkout_service = providers.Factory(CheckoutService, rng=rng)
    gamification_service = providers.Factory(GamificationService)


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "gatewayapi.routers.statement_router",
            "gatewayapi.routers.transaction_router",
            "gatewayapi.routers.checkout_router",
            "gatewayapi.routers.gamification_router",
        ],
    )

    config = providers.Container(ConfigModule)
    services = providers.Container(ServiceModule)
    user_resolver = providers.Singleton(BearerTokenUserResolver)
