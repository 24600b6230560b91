"""SQLAlchemy persistence."""

from .config import create_engine_from_settings, get_session_factory, init_database
from .unit_of_work import SqlAlchemyUnitOfWork, sqlalchemy_uow_factory

__all__ = [
    "SqlAlchemyUnitOfWork",
    "create_engine_from_settings",
    "get_session_factory",
    "init_database",
    "sqlalchemy_uow_factory",
]
