from __future__ import annotations

from typing import Protocol

from .models import AdminSettings, WheelEntry


class HistoryStore(Protocol):
    """Append-only collection of wheel entries. No ordering guarantees."""

    def append(self, entry: WheelEntry) -> None: ...

    def list_by_user(self, user_id: str) -> list[WheelEntry]: ...

    def list_all(self) -> list[WheelEntry]: ...


class SettingsStore(Protocol):
    def get(self) -> AdminSettings: ...

    def put(self, settings: AdminSettings) -> None: ...


class NarrativeGenerator(Protocol):
    """Must always resolve with displayable text, including on its own failures."""

    async def generate_narrative(
        self, current: WheelEntry, previous: WheelEntry | None
    ) -> str: ...
