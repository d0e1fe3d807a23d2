from __future__ import annotations

import time
from collections.abc import Callable, Generator

from fastapi import Depends, FastAPI, Header, Request
from sqlalchemy.orm import Session, sessionmaker

from lifewheel.application import api as app_api
from lifewheel.domain.models import UserContext
from lifewheel.domain.ports import NarrativeGenerator
from lifewheel.domain.session import AssessmentSession
from lifewheel.infrastructure.config import (
    DEFAULT_SESSION_TTL_SECONDS,
    AssessmentConfig,
    DatabaseConfig,
    get_settings,
)
from lifewheel.infrastructure.db import create_database_engine, create_session_factory
from lifewheel.infrastructure.exceptions import AssessmentNotFoundError
from lifewheel.infrastructure.logging import get_logger
from lifewheel.infrastructure.narrative import ClaudeNarrativeService
from lifewheel.infrastructure.repositories import SqlHistoryStore, SqlSettingsStore

logger = get_logger(__name__)


class AssessmentRegistry:
    """
    In-process assessment sessions keyed by session token.

    Sessions untouched for ``ttl_seconds`` are closed and dropped the next
    time the registry is used.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._sessions: dict[str, AssessmentSession] = {}
        self._last_seen: dict[str, float] = {}

    def add(self, assessment: AssessmentSession) -> AssessmentSession:
        self.evict_expired()
        self._sessions[assessment.id] = assessment
        self._last_seen[assessment.id] = self.clock()
        return assessment

    def get(self, session_id: str) -> AssessmentSession:
        self.evict_expired()
        try:
            assessment = self._sessions[session_id]
        except KeyError:
            raise AssessmentNotFoundError(session_id) from None
        self._last_seen[session_id] = self.clock()
        return assessment

    def remove(self, session_id: str) -> AssessmentSession:
        assessment = self.get(session_id)
        self._discard(session_id)
        return assessment

    def evict_expired(self) -> list[str]:
        cutoff = self.clock() - self.ttl_seconds
        expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for sid in expired:
            self._discard(sid)
        if expired:
            logger.info("Evicted %d idle assessment sessions", len(expired))
        return expired

    def _discard(self, session_id: str) -> None:
        assessment = self._sessions.pop(session_id)
        self._last_seen.pop(session_id, None)
        assessment.close()

    def close_all(self) -> None:
        for assessment in self._sessions.values():
            assessment.close()
        self._sessions.clear()
        self._last_seen.clear()

    def __len__(self) -> int:
        return len(self._sessions)


def app_db_config(app: FastAPI) -> DatabaseConfig:
    config = getattr(app.state, "db_config", None)
    if config is None:
        config = get_settings().database
        app.state.db_config = config
    return config


def app_session_factory(app: FastAPI) -> sessionmaker[Session]:
    config = app_db_config(app)
    cached_factory = getattr(app.state, "session_factory", None)
    cached_config = getattr(app.state, "session_factory_config", None)

    current_config_dict = config.model_dump()

    if cached_factory is not None and cached_config == current_config_dict:
        return cached_factory

    engine = create_database_engine(config)
    session_factory = create_session_factory(engine)

    app.state.db_engine = engine
    app.state.session_factory = session_factory
    app.state.session_factory_config = current_config_dict

    return session_factory


def app_assessment_config(app: FastAPI) -> AssessmentConfig:
    config = getattr(app.state, "assessment_config", None)
    if config is None:
        config = get_settings().assessment
        app.state.assessment_config = config
    return config


def app_registry(app: FastAPI) -> AssessmentRegistry:
    registry = getattr(app.state, "assessments", None)
    if registry is None:
        registry = AssessmentRegistry(app_assessment_config(app).session_ttl_seconds)
        app.state.assessments = registry
    return registry


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return app_session_factory(request.app)


def get_db_session(request: Request) -> Generator[Session, None, None]:
    session_factory = get_session_factory(request)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def get_history_store(request: Request) -> SqlHistoryStore:
    return SqlHistoryStore(get_session_factory(request))


def get_settings_store(request: Request) -> SqlSettingsStore:
    return SqlSettingsStore(get_session_factory(request))


def get_assessment_config(request: Request) -> AssessmentConfig:
    return app_assessment_config(request.app)


def get_narrative_generator(request: Request) -> NarrativeGenerator:
    narrative = getattr(request.app.state, "narrative", None)
    if narrative is None:
        narrative = ClaudeNarrativeService()
        request.app.state.narrative = narrative
    return narrative


def get_registry(request: Request) -> AssessmentRegistry:
    return app_registry(request.app)


def get_actor(
    x_user_id: str = Header(..., alias="X-User-Id"),
    session: Session = Depends(get_db_session),
) -> UserContext:
    """Identity of the caller, looked up from the ``X-User-Id`` header."""
    return app_api.get_user_context(session, x_user_id)
