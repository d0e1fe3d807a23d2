# lifewheel/infrastructure/repositories_entry.py
from __future__ import annotations

import builtins
import logging
from typing import NoReturn

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.models import WheelEntry
from .exceptions import ValidationError
from .logging import log_database_operation as log_op
from .models import WheelEntryORM
from .repositories_base import BaseRepository as GenericBaseRepository


class WheelEntryRepo(GenericBaseRepository[WheelEntryORM]):
    """
    Repository for wheel entries.

    Rows are only ever inserted; there is no update or delete path.
    """

    model = WheelEntryORM

    def __init__(self, session: Session):
        super().__init__(session)
        self._logger = logging.getLogger(__name__)

    def _handle_error(self, exc: Exception, operation: str) -> NoReturn:
        self._logger.exception("DB error in %s: %s", operation, str(exc))
        raise exc

    @log_op("entry.add")
    def add(self, entry: WheelEntry) -> WheelEntryORM:
        if not entry.user_id:
            raise ValidationError("user_id", "Entry must belong to a user")
        try:
            return super().create(
                id=entry.id,
                user_id=entry.user_id,
                created_at=entry.created_at,
                scores=dict(entry.scores),
                narrative=entry.narrative,
                contact_email=entry.contact_email,
            )
        except SQLAlchemyError as e:
            self._handle_error(e, "entry.add")

    @log_op("entry.list_for_user")
    def list_for_user(self, user_id: str) -> builtins.list[WheelEntryORM]:
        try:
            return super().list(WheelEntryORM.user_id == user_id)
        except SQLAlchemyError as e:
            self._handle_error(e, "entry.list_for_user")

    @log_op("entry.list_all")
    def list_all(self) -> builtins.list[WheelEntryORM]:
        try:
            return super().list()
        except SQLAlchemyError as e:
            self._handle_error(e, "entry.list_all")


def entry_from_orm(row: WheelEntryORM) -> WheelEntry:
    return WheelEntry(
        id=row.id,
        user_id=row.user_id,
        created_at=row.created_at,
        scores={str(k): int(v) for k, v in (row.scores or {}).items()},
        narrative=row.narrative,
        contact_email=row.contact_email,
    )
