import pytest

from fakes import FakeHistoryStore, FakeNarrative, FakeSettingsStore, make_entry

from lifewheel.application import api as app_api
from lifewheel.domain.models import DEFAULT_ADMIN_SETTINGS, Step, UserRole
from lifewheel.infrastructure.config import AssessmentConfig
from lifewheel.infrastructure.exceptions import (
    MultipleValidationError,
    PermissionError,
    UserNotFoundError,
    ValidationError,
)

CONFIG = AssessmentConfig(admin_identifiers=["09120000000"], processing_delay_ms=0)


def registration(**overrides):
    data = {"name": "Sara", "mobile": "09121234567", "age": 31, "email": "Sara@Example.com"}
    data.update(overrides)
    return data


def test_register_creates_user_with_role_from_allow_list(session_factory):
    with session_factory() as s:
        user = app_api.register_user(s, registration(), assessment_config=CONFIG)
        admin = app_api.register_user(
            s, registration(name="Boss", mobile="09120000000", email="b@example.com"),
            assessment_config=CONFIG,
        )
    assert user.role == UserRole.USER
    assert user.username == "09121234567"
    assert user.email == "sara@example.com"
    assert admin.role == UserRole.ADMIN


def test_admin_role_is_not_inferred_from_name(session_factory):
    with session_factory() as s:
        user = app_api.register_user(
            s, registration(name="admin مدیر"), assessment_config=CONFIG
        )
    assert user.role == UserRole.USER


def test_register_existing_mobile_refreshes_profile_only(session_factory):
    with session_factory() as s:
        first = app_api.register_user(s, registration(), assessment_config=CONFIG)
        again = app_api.register_user(
            s, registration(name="Sara K", age=32, email="new@example.com"), assessment_config=CONFIG
        )
    assert again.id == first.id
    assert again.role == first.role
    assert (again.name, again.age, again.email) == ("Sara K", 32, "new@example.com")


def test_register_accepts_persian_digits(session_factory):
    with session_factory() as s:
        user = app_api.register_user(s, registration(mobile="۰۹۱۲۱۲۳۴۵۶۷"), assessment_config=CONFIG)
    assert user.mobile == "09121234567"


def test_register_rejects_invalid_input(session_factory):
    with session_factory() as s:
        with pytest.raises(ValidationError):
            app_api.register_user(s, registration(age=7), assessment_config=CONFIG)
        with pytest.raises(MultipleValidationError):
            app_api.register_user(
                s, registration(age=7, email="nope"), assessment_config=CONFIG
            )


def test_get_user_unknown_raises(session_factory):
    with session_factory() as s:
        with pytest.raises(UserNotFoundError):
            app_api.get_user(s, "missing")


def test_list_users_requires_admin(session_factory, user_ctx, admin_ctx):
    with session_factory() as s:
        app_api.register_user(s, registration(), assessment_config=CONFIG)
        with pytest.raises(PermissionError):
            app_api.list_users(s, user_ctx)
        assert len(app_api.list_users(s, admin_ctx)) == 1


def test_save_admin_settings(user_ctx, admin_ctx):
    store = FakeSettingsStore()
    payload = {**DEFAULT_ADMIN_SETTINGS.to_dict(), "intro_text": "new intro"}

    with pytest.raises(PermissionError):
        app_api.save_admin_settings(store, user_ctx, payload)
    assert store.get() == DEFAULT_ADMIN_SETTINGS

    saved = app_api.save_admin_settings(store, admin_ctx, payload)
    assert saved.intro_text == "new intro"
    assert app_api.load_admin_settings(store).intro_text == "new intro"


def test_save_admin_settings_rejects_empty_slot(admin_ctx):
    store = FakeSettingsStore()
    payload = {**DEFAULT_ADMIN_SETTINGS.to_dict(), "advice_template_low": "   "}
    with pytest.raises(ValidationError):
        app_api.save_admin_settings(store, admin_ctx, payload)


def test_open_assessment_session_uses_config(user_ctx):
    settings = FakeSettingsStore()
    assessment = app_api.open_assessment_session(
        user_ctx, FakeHistoryStore(), settings, FakeNarrative(), assessment_config=CONFIG
    )
    assert assessment.step == Step.INTRO
    assert assessment.processing_delay == 0
    assert assessment.settings is settings.get()


def test_user_history_and_trend_are_ordered():
    store = FakeHistoryStore([make_entry(days_ago=d) for d in (3, 0, 6)])
    assert [e.id for e in app_api.user_history(store, "u1")] == ["u1-0", "u1-3", "u1-6"]
    points = app_api.user_trend(store, "u1", window_size=2)
    assert [p.created_at for p in points] == sorted(p.created_at for p in points)
    assert len(points) == 2


def test_request_report_delivery_validates_email():
    entry = make_entry()
    delivery = app_api.request_report_delivery(entry, "Me@Example.com")
    assert delivery.entry_id == entry.id
    assert delivery.email == "me@example.com"
    with pytest.raises(ValidationError):
        app_api.request_report_delivery(entry, "not-an-email")


def test_admin_statistics(session_factory, admin_ctx, user_ctx):
    store = FakeHistoryStore(
        [
            make_entry(user_id="u1", scores=dict.fromkeys(
                ["spirituality", "family", "personal", "social", "health", "work"], 4)),
            make_entry(user_id="u2", scores=dict.fromkeys(
                ["spirituality", "family", "personal", "social", "health", "work"], 8)),
        ]
    )
    with session_factory() as s:
        app_api.register_user(s, registration(), assessment_config=CONFIG)
        with pytest.raises(PermissionError):
            app_api.admin_statistics(s, store, user_ctx)
        stats = app_api.admin_statistics(s, store, admin_ctx)
    assert stats["total_users"] == 1
    assert stats["total_entries"] == 2
    assert stats["overall_average"] == 6.0
    assert stats["category_averages"]["health"] == 6.0


def test_broadcast_notification(session_factory, admin_ctx, user_ctx):
    with session_factory() as s:
        app_api.register_user(s, registration(), assessment_config=CONFIG)
        app_api.register_user(s, registration(mobile="09351112233"), assessment_config=CONFIG)
        assert app_api.broadcast_notification(s, admin_ctx, "sms") == 2
        with pytest.raises(ValidationError):
            app_api.broadcast_notification(s, admin_ctx, "pigeon")
        with pytest.raises(PermissionError):
            app_api.broadcast_notification(s, user_ctx, "email")
