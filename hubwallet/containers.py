from dependency_injector import containers, providers

from hubwallet.config import Settings
from hubwallet.database.connection import SessionLocal
from hubwallet.services.ledger_service import LedgerService
from hubwallet.services.reward_policy import GameRewardPolicy, LuckySpinPolicy
from hubwallet.services.wallet_service import WalletService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class DatabaseModule(containers.DeclarativeContainer):
    """Process-wide session factory (one session per ledger operation)."""

    session_factory = providers.Object(SessionLocal)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    database = providers.DependenciesContainer()

    ledger_service = providers.Factory(
        LedgerService, session_factory=database.session_factory, settings=config.config
    )
    wallet_service = providers.Factory(
        WalletService, session_factory=database.session_factory, settings=config.config
    )
    game_reward_policy = providers.Factory(GameRewardPolicy, settings=config.config)
    lucky_spin_policy = providers.Factory(LuckySpinPolicy, settings=config.config)


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "hubwallet.routers.wallet_router",
            "hubwallet.routers.game_router",
            "hubwallet.routers.specials_router",
        ],
    )

    config = providers.Container(ConfigModule)
    database = providers.Container(DatabaseModule)
    services = providers.Container(
        ServiceModule, config=config, database=database
    )
