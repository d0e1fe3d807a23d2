from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from ..infrastructure.exceptions import IncompleteScoreBoardError
from .models import (
    CATEGORIES,
    AdminSettings,
    Category,
    Classification,
    TrendPoint,
    WheelEntry,
)

logger = logging.getLogger(__name__)

UNBALANCED_STD_DEV = 2.0
LOW_MEAN = 5.0
DEFAULT_TREND_WINDOW = 5


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    mean: float
    std_dev: float
    label: Classification


def classify(
    board: Mapping[str, int], categories: Iterable[Category] = CATEGORIES
) -> ClassificationResult:
    """
    Mean, population standard deviation and label for a fully populated board.

    - Values are read for exactly the configured categories.
    - std_dev > 2.0 -> UNBALANCED, even when the mean is also low.
    - else mean < 5.0 -> LOW, otherwise BALANCED_OR_HIGH.

    Raises:
        IncompleteScoreBoardError: if any configured category has no score.
    """
    ids = [c.id for c in categories]
    missing = [cid for cid in ids if cid not in board]
    if not ids or missing:
        raise IncompleteScoreBoardError(missing or ["<no categories>"])

    values = [float(board[cid]) for cid in ids]
    n = len(values)
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / n
    std_dev = math.sqrt(variance)

    if std_dev > UNBALANCED_STD_DEV:
        label = Classification.UNBALANCED
    elif mean < LOW_MEAN:
        label = Classification.LOW
    else:
        label = Classification.BALANCED_OR_HIGH

    return ClassificationResult(mean=mean, std_dev=std_dev, label=label)


class HistoryAggregator:
    """Trend and aggregate views over stored wheel entries."""

    def __init__(
        self,
        categories: Sequence[Category] = CATEGORIES,
        logger: logging.Logger | None = None,
    ):
        self.categories = tuple(categories)
        self.logger = logger or logging.getLogger(__name__)

    def entry_average(self, entry: WheelEntry) -> float:
        # Divides by the fixed category count, not by len(entry.scores).
        total = sum(entry.scores.get(c.id, 0) for c in self.categories)
        return total / len(self.categories)

    def trend(
        self,
        entries: Sequence[WheelEntry],
        window_size: int = DEFAULT_TREND_WINDOW,
    ) -> list[TrendPoint]:
        """
        Per-entry averages for the most recent ``window_size`` entries, oldest first.

        ``entries`` is expected newest first; ordering is re-applied here so the
        caller's storage order does not matter.
        """
        if window_size <= 0 or not entries:
            return []
        newest_first = sorted(entries, key=lambda e: e.created_at, reverse=True)
        window = list(reversed(newest_first[:window_size]))
        points = [
            TrendPoint(
                label=e.created_at.date().isoformat(),
                created_at=e.created_at,
                average=self.entry_average(e),
            )
            for e in window
        ]
        self.logger.debug("Computed trend with %d points", len(points))
        return points

    def cross_user_category_averages(self, entries: Iterable[WheelEntry]) -> dict[str, float]:
        """
        Average score per category across every entry containing it.

        Categories never observed report 0.0.
        """
        totals: dict[str, float] = {c.id: 0.0 for c in self.categories}
        counts: dict[str, int] = {c.id: 0 for c in self.categories}
        for entry in entries:
            for cid, score in entry.scores.items():
                if cid not in totals:
                    continue
                totals[cid] += score
                counts[cid] += 1
        return {
            cid: (totals[cid] / counts[cid]) if counts[cid] else 0.0 for cid in totals
        }


@dataclass(frozen=True, slots=True)
class Advice:
    status_line: str
    narrative: str | None

    @property
    def primary(self) -> str:
        """Text shown as the main analysis: the narrative when present, else the status line."""
        return self.narrative or self.status_line


class AdviceResolver:
    """Turns a classification into the configured status line, alongside any narrative."""

    def __init__(self, settings: AdminSettings):
        self.settings = settings

    def status_line(self, label: Classification) -> str:
        if label == Classification.UNBALANCED:
            return self.settings.advice_template_unbalanced
        if label == Classification.LOW:
            return self.settings.advice_template_low
        return self.settings.advice_template_high

    def resolve(
        self,
        board: Mapping[str, int],
        classification: ClassificationResult | None = None,
        external_narrative: str | None = None,
    ) -> Advice:
        if classification is None:
            classification = classify(board)
        narrative = external_narrative.strip() if external_narrative else None
        return Advice(
            status_line=self.status_line(classification.label),
            narrative=narrative or None,
        )
