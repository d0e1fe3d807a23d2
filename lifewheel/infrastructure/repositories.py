"""
Repository re-exports and the store adapters used by the assessment core.

The stores translate between ORM rows and domain records and turn database
failures into :class:`PersistenceError` so callers see one failure type.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..domain.models import DEFAULT_ADMIN_SETTINGS, AdminSettings, WheelEntry
from .exceptions import PersistenceError, handle_database_error
from .logging import get_logger
from .repositories_entry import WheelEntryRepo, entry_from_orm
from .repositories_settings import SettingsRepo
from .repositories_user import UserRepo
from .uow import UnitOfWork

__all__ = [
    "UserRepo",
    "WheelEntryRepo",
    "SettingsRepo",
    "SqlHistoryStore",
    "SqlSettingsStore",
]

logger = get_logger(__name__)


class SqlHistoryStore:
    """History store backed by the ``wheel_entries`` table."""

    def __init__(self, SessionLocal: sessionmaker):
        self.uow = UnitOfWork(SessionLocal)

    def append(self, entry: WheelEntry) -> None:
        try:
            with self.uow.begin() as s:
                WheelEntryRepo(s).add(entry)
        except SQLAlchemyError as e:
            cause = handle_database_error(e, "history.append")
            logger.warning("History append failed for entry %s: %s", entry.id, cause.message)
            raise PersistenceError(cause.message, operation="history.append") from e

    def list_by_user(self, user_id: str) -> list[WheelEntry]:
        try:
            with self.uow.read() as s:
                return [entry_from_orm(row) for row in WheelEntryRepo(s).list_for_user(user_id)]
        except SQLAlchemyError as e:
            raise PersistenceError(str(e), operation="history.list_by_user") from e

    def list_all(self) -> list[WheelEntry]:
        try:
            with self.uow.read() as s:
                return [entry_from_orm(row) for row in WheelEntryRepo(s).list_all()]
        except SQLAlchemyError as e:
            raise PersistenceError(str(e), operation="history.list_all") from e


class SqlSettingsStore:
    """Settings store; unset slots fall back to the default copy."""

    def __init__(self, SessionLocal: sessionmaker, defaults: AdminSettings = DEFAULT_ADMIN_SETTINGS):
        self.uow = UnitOfWork(SessionLocal)
        self.defaults = defaults

    def get(self) -> AdminSettings:
        try:
            with self.uow.read() as s:
                stored = SettingsRepo(s).read_slots()
        except SQLAlchemyError as e:
            raise PersistenceError(str(e), operation="settings.get") from e
        values = self.defaults.to_dict()
        values.update({k: v for k, v in stored.items() if k in values})
        return AdminSettings(**values)

    def put(self, settings: AdminSettings) -> None:
        try:
            with self.uow.begin() as s:
                SettingsRepo(s).write_slots(settings.to_dict())
        except SQLAlchemyError as e:
            raise PersistenceError(str(e), operation="settings.put") from e
