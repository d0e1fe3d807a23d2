"""
Assessment state machine: INTRO -> RATING -> PROCESSING -> RESULT.

The two suspending steps (the settling delay and the narrative fetch) run as
asyncio tasks tagged with the generation they were started under. ``redo`` and
``close`` bump the generation, so a task finishing under an older generation
never touches the current board or result.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any

from ..infrastructure.exceptions import (
    CategoryNotFoundError,
    InvalidTransitionError,
    PersistenceError,
    log_error_details,
)
from .models import (
    CATEGORIES,
    AdminSettings,
    Category,
    ScoreBoard,
    Step,
    UserContext,
    WheelEntry,
    find_category,
)
from .ports import HistoryStore, NarrativeGenerator
from .services import Advice, AdviceResolver, ClassificationResult, classify

logger = logging.getLogger(__name__)

DEFAULT_PROCESSING_DELAY = 4.0
NARRATIVE_FALLBACK = "متاسفانه مشکلی در ارتباط با هوش مصنوعی پیش آمد."
HISTORY_UNAVAILABLE_NOTICE = "History could not be loaded. Earlier results are hidden for now."


class AssessmentSession:
    """
    One user's pass (or passes, via redo) through the assessment.

    Example:
        >>> session = AssessmentSession(ctx, store, settings, narrator, processing_delay=0)
        >>> session.begin_rating()
        >>> session.select_category("health")
        >>> session.set_score(8)
        >>> session.start_processing()   # inside a running event loop
        >>> await session.wait_idle()
        >>> session.step
        <Step.RESULT: 'result'>
    """

    def __init__(
        self,
        user: UserContext,
        history_store: HistoryStore,
        settings: AdminSettings,
        narrative: NarrativeGenerator,
        *,
        categories: Sequence[Category] = CATEGORIES,
        processing_delay: float = DEFAULT_PROCESSING_DELAY,
        default_score: int = 5,
        min_score: int = 1,
        max_score: int = 10,
        narrative_fallback: str = NARRATIVE_FALLBACK,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.id = uuid.uuid4().hex
        self.user = user
        self.store = history_store
        self.settings = settings
        self.narrative = narrative
        self.categories = tuple(categories)
        self.processing_delay = max(0.0, float(processing_delay))
        self.default_score = default_score
        self.min_score = min_score
        self.max_score = max_score
        self.narrative_fallback = narrative_fallback
        self.clock = clock

        self.step = Step.INTRO
        self.generation = 0
        self.closed = False
        self.board: ScoreBoard | None = None
        self.selected_category: str | None = None

        self.entry: WheelEntry | None = None
        self.classification: ClassificationResult | None = None
        self.advice: Advice | None = None
        self.narrative_pending = False
        self.notice: str | None = None
        self.unsaved: list[WheelEntry] = []

        # completed entries whose narrative or write has not settled yet
        self._inflight: dict[str, WheelEntry] = {}
        self._persist_notice: str | None = None
        self._processing_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

        self.history: list[WheelEntry] = self._load_history()

    # -- history --------------------------------------------------------------

    def _load_history(self) -> list[WheelEntry]:
        try:
            entries = list(self.store.list_by_user(self.user.user_id))
        except Exception as e:
            logger.warning(
                "History load failed for user %s",
                self.user.user_id,
                extra=log_error_details(e, {"session_id": self.id}),
            )
            self.notice = HISTORY_UNAVAILABLE_NOTICE
            return []
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    @property
    def previous_entry(self) -> WheelEntry | None:
        """Newest completed entry, including ones not yet acknowledged by the store."""
        candidates = [*self.history[:1], *self._inflight.values(), *self.unsaved]
        if not candidates:
            return None
        return max(candidates, key=lambda e: e.created_at)

    def _add_to_history(self, entry: WheelEntry) -> None:
        self.history.append(entry)
        self.history.sort(key=lambda e: e.created_at, reverse=True)

    # -- transitions ----------------------------------------------------------

    def _require(self, expected: Step, requested: Step) -> None:
        if self.closed or self.step != expected:
            raise InvalidTransitionError(self.step.value, requested.value)

    def _new_board(self, seed: WheelEntry | None = None) -> ScoreBoard:
        board = ScoreBoard(
            self.categories,
            default=self.default_score,
            min_score=self.min_score,
            max_score=self.max_score,
        )
        if seed is not None:
            for cid, score in seed.scores.items():
                board.set(cid, score)
        return board

    def begin_rating(self) -> ScoreBoard:
        """INTRO -> RATING with every category at the default score."""
        self._require(Step.INTRO, Step.RATING)
        self.board = self._new_board()
        self.selected_category = None
        self.step = Step.RATING
        logger.info("Session %s started rating", self.id)
        return self.board

    def select_category(self, category_id: str | None) -> None:
        self._require(Step.RATING, Step.RATING)
        if category_id is not None and find_category(category_id, self.categories) is None:
            raise CategoryNotFoundError(category_id)
        self.selected_category = category_id

    def set_score(self, value: int, category_id: str | None = None) -> bool:
        """
        Store a clamped score for ``category_id`` (or the selected category).

        Returns False without changing anything when not rating, when no
        category is selected or when the id is unknown.
        """
        if self.step != Step.RATING or self.board is None:
            return False
        target = category_id if category_id is not None else self.selected_category
        if target is None:
            return False
        if category_id is not None:
            self.selected_category = category_id
        return self.board.set(target, value)

    def start_processing(self) -> asyncio.Task:
        """
        RATING -> PROCESSING. Must be called from a running event loop.

        Calling it again while processing returns the in-flight task unchanged.
        """
        if self.step == Step.PROCESSING and self._processing_task is not None:
            logger.debug("Session %s already processing; ignoring", self.id)
            return self._processing_task
        self._require(Step.RATING, Step.PROCESSING)

        self.step = Step.PROCESSING
        self.selected_category = None
        task = self._spawn(self._settle(self.generation))
        self._processing_task = task
        return task

    def redo(self) -> ScoreBoard:
        """
        RESULT -> RATING. Earlier entries stay in history; a fresh board starts
        from the last submitted scores.
        """
        self._require(Step.RESULT, Step.RATING)
        self.generation += 1
        self.board = self._new_board(seed=self.entry)
        self.selected_category = None
        self.entry = None
        self.classification = None
        self.advice = None
        self.narrative_pending = False
        self._processing_task = None
        self.step = Step.RATING
        logger.info("Session %s redo (generation %d)", self.id, self.generation)
        return self.board

    def close(self) -> None:
        """Abandon the session. A pending delay is cancelled; a pending narrative still persists its entry."""
        self.generation += 1
        self.closed = True
        if self._processing_task is not None and not self._processing_task.done():
            self._processing_task.cancel()
        self._processing_task = None

    # -- suspending steps -----------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _settle(self, generation: int) -> None:
        await asyncio.sleep(self.processing_delay)
        if generation != self.generation:
            logger.info("Session %s discarded stale processing result", self.id)
            return
        self._enter_result(generation)

    def _enter_result(self, generation: int) -> None:
        board = self.board
        if board is None:
            raise InvalidTransitionError(self.step.value, Step.RESULT.value)
        board.freeze()

        entry = WheelEntry(
            id=uuid.uuid4().hex,
            user_id=self.user.user_id,
            created_at=self.clock(),
            scores=board.snapshot(),
            contact_email=self.user.email,
        )
        classification = classify(board, self.categories)
        resolver = AdviceResolver(self.settings)

        self.entry = entry
        self.classification = classification
        self.advice = resolver.resolve(board, classification)
        self.narrative_pending = True
        self._processing_task = None
        self.step = Step.RESULT
        logger.info(
            "Session %s produced entry %s (%s, mean=%.2f, std=%.2f)",
            self.id,
            entry.id,
            classification.label.value,
            classification.mean,
            classification.std_dev,
        )
        previous = self.previous_entry
        self._inflight[entry.id] = entry
        self._spawn(self._narrate(generation, entry, previous, classification))

    async def _narrate(
        self,
        generation: int,
        entry: WheelEntry,
        previous: WheelEntry | None,
        classification: ClassificationResult,
    ) -> None:
        try:
            text = await self.narrative.generate_narrative(entry, previous)
        except Exception as e:
            logger.warning(
                "Narrative collaborator raised for entry %s",
                entry.id,
                extra=log_error_details(e, {"session_id": self.id}),
            )
            text = self.narrative_fallback

        advice = AdviceResolver(self.settings).resolve(
            entry.scores, classification, external_narrative=text
        )
        final = replace(entry, narrative=advice.narrative)

        if generation == self.generation:
            self.entry = final
            self.advice = advice
            self.narrative_pending = False
        else:
            logger.info("Session %s narrative for entry %s arrived after reset", self.id, entry.id)
        await self._persist(final, current=generation == self.generation)
        self._inflight.pop(entry.id, None)

    # -- persistence ----------------------------------------------------------

    async def _persist(self, entry: WheelEntry, *, current: bool = True) -> bool:
        """
        Write ``entry`` off the event loop. Failures are kept in ``unsaved``.

        ``current`` is False for entries from a generation the user already
        left; those never change the notice unless the unsaved list changes.
        """
        try:
            await asyncio.to_thread(self.store.append, entry)
        except Exception as e:
            logger.warning(
                "Persisting entry %s failed",
                entry.id,
                extra=log_error_details(e, {"session_id": self.id, "entry_id": entry.id}),
            )
            newly_unsaved = entry not in self.unsaved
            if newly_unsaved:
                self.unsaved.append(entry)
            if current or newly_unsaved:
                error = e if isinstance(e, PersistenceError) else PersistenceError(str(e))
                self.notice = self._persist_notice = error.user_message
            return False

        was_unsaved = entry in self.unsaved
        if was_unsaved:
            self.unsaved.remove(entry)
        self._add_to_history(entry)
        if (current or was_unsaved) and not self.unsaved and self.notice == self._persist_notice:
            self.notice = self._persist_notice = None
        return True

    async def retry_persist(self) -> bool:
        """Retry every entry whose write failed. True when nothing is left unsaved."""
        for entry in list(self.unsaved):
            await self._persist(entry)
        return not self.unsaved

    @property
    def persisted(self) -> bool:
        return self.entry is not None and not self.narrative_pending and self.entry not in self.unsaved

    async def wait_idle(self) -> None:
        """Wait for the in-flight delay and narrative tasks, including ones they spawn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- views ----------------------------------------------------------------

    def view(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "session_id": self.id,
            "user_id": self.user.user_id,
            "step": self.step.value,
            "generation": self.generation,
            "closed": self.closed,
            "intro_text": self.settings.intro_text,
            "categories": [
                {"id": c.id, "name": c.name, "color": c.color} for c in self.categories
            ],
            "selected_category": self.selected_category,
            "scores": dict(self.board) if self.board is not None else None,
            "notice": self.notice,
            "history_count": len(self.history),
            "unsaved_count": len(self.unsaved),
            "result": None,
        }
        if (
            self.step == Step.RESULT
            and self.entry is not None
            and self.classification is not None
            and self.advice is not None
        ):
            data["result"] = {
                "entry": self.entry.to_dict(),
                "mean": round(self.classification.mean, 4),
                "std_dev": round(self.classification.std_dev, 4),
                "classification": self.classification.label.value,
                "status_line": self.advice.status_line,
                "narrative": self.advice.narrative,
                "narrative_pending": self.narrative_pending,
                "persisted": self.persisted,
            }
        return data
