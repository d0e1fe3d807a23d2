import pytest

from fakes import FakeHistoryStore, FakeNarrative

from lifewheel.domain.models import DEFAULT_ADMIN_SETTINGS
from lifewheel.domain.session import AssessmentSession
from lifewheel.infrastructure.config import AssessmentConfig
from lifewheel.infrastructure.exceptions import AssessmentNotFoundError
from lifewheel.web.dependencies import AssessmentRegistry


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def open_session(user_ctx):
    return AssessmentSession(
        user_ctx, FakeHistoryStore(), DEFAULT_ADMIN_SETTINGS, FakeNarrative(), processing_delay=0
    )


def test_idle_sessions_are_closed_and_evicted(user_ctx):
    clock = FakeClock()
    registry = AssessmentRegistry(ttl_seconds=60, clock=clock)
    idle = registry.add(open_session(user_ctx))
    active = registry.add(open_session(user_ctx))

    clock.now += 45
    registry.get(active.id)
    clock.now += 30

    assert registry.evict_expired() == [idle.id]
    assert idle.closed
    assert not active.closed
    assert len(registry) == 1
    with pytest.raises(AssessmentNotFoundError):
        registry.get(idle.id)


def test_add_sweeps_expired_sessions(user_ctx):
    clock = FakeClock()
    registry = AssessmentRegistry(ttl_seconds=10, clock=clock)
    old = registry.add(open_session(user_ctx))
    clock.now += 11
    registry.add(open_session(user_ctx))
    assert old.closed
    assert len(registry) == 1


def test_remove_closes_session(user_ctx):
    registry = AssessmentRegistry()
    assessment = registry.add(open_session(user_ctx))
    assert registry.remove(assessment.id) is assessment
    assert assessment.closed
    assert len(registry) == 0


def test_session_ttl_is_configurable():
    assert AssessmentConfig().session_ttl_seconds == 2 * 60 * 60
    assert AssessmentConfig(session_ttl_seconds=120).session_ttl_seconds == 120
