from dependency_injector import containers, providers

from findme.database.session import get_db
from findme.services.point_service import PointService
from findme.services.reward_service import RewardService
from findme.config import Settings


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class RepositoryModule(containers.DeclarativeContainer):
    """Database session."""

    get_db = providers.Resource(get_db)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    point_service = providers.Factory(
        PointService, db=repositories.get_db, settings=config.config
    )
    reward_service = providers.Factory(
        RewardService,
        db=repositories.get_db,
        point_service=point_service,
        settings=config.config,
    )


class Container(containers.DeclarativeContainer):
    """Application container (scripts / batch jobs)."""

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
