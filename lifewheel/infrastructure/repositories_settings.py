# lifewheel/infrastructure/repositories_settings.py
from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy.orm import Session

from .logging import log_database_operation as log_op
from .models import SettingSlotORM
from .repositories_base import BaseRepository as GenericBaseRepository


class SettingsRepo(GenericBaseRepository[SettingSlotORM]):
    model = SettingSlotORM

    def __init__(self, session: Session):
        super().__init__(session)

    @log_op("settings.read_slots")
    def read_slots(self) -> dict[str, str]:
        return {row.slot: row.value for row in super().list()}

    @log_op("settings.write_slots")
    def write_slots(self, values: Mapping[str, str]) -> None:
        for slot, value in values.items():
            row = self.s.get(SettingSlotORM, slot)
            if row is None:
                self.s.add(SettingSlotORM(slot=slot, value=value))
            else:
                row.value = value
        self.s.flush()
