"""
Application API layer with error handling, validation and logging.

Functions here sit between the web routes and the domain: they validate
input, enforce the role flag, and wrap store and repository calls.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from ..domain.models import (
    CATEGORIES,
    AdminSettings,
    PendingDelivery,
    TrendPoint,
    User,
    UserContext,
    UserRole,
    WheelEntry,
)
from ..domain.ports import HistoryStore, NarrativeGenerator, SettingsStore
from ..domain.schemas import (
    AdminSettingsInput,
    NotificationInput,
    RegistrationInput,
    ReportRequestInput,
    validate_input,
)
from ..domain.services import HistoryAggregator
from ..domain.session import AssessmentSession
from ..infrastructure.config import AssessmentConfig, NarrativeConfig, get_settings
from ..infrastructure.exceptions import (
    MultipleValidationError,
    PermissionError,
    UserNotFoundError,
    ValidationError,
    WheelOfLifeError,
    create_user_friendly_error_message,
    log_error_details,
)
from ..infrastructure.logging import get_logger, log_operation, set_context
from ..infrastructure.models import UserORM
from ..infrastructure.repositories import UserRepo

logger = get_logger(__name__)


def _raise_validation(result) -> None:
    errors = [ValidationError(e.field, e.message, e.value) for e in result.errors]
    if len(errors) == 1:
        raise errors[0]
    raise MultipleValidationError(errors)


def _require_admin(actor: UserContext, operation: str) -> None:
    if not actor.is_admin:
        logger.warning("User %s attempted admin operation %s", actor.user_id, operation)
        raise PermissionError(f"{operation} requires the ADMIN role", operation=operation)


def user_from_orm(row: UserORM) -> User:
    return User(
        id=row.id,
        username=row.username,
        name=row.name,
        mobile=row.mobile,
        age=row.age,
        email=row.email,
        role=UserRole(row.role),
    )


def role_for_identifier(mobile: str, admin_identifiers: Iterable[str]) -> UserRole:
    """Role policy applied once, when the account is created."""
    return UserRole.ADMIN if mobile in set(admin_identifiers) else UserRole.USER


# -- users --------------------------------------------------------------------


@log_operation("register_user")
def register_user(
    session: Session,
    data: dict[str, Any],
    assessment_config: AssessmentConfig | None = None,
) -> User:
    """
    Register a user, or refresh name/age/email of the user with the same mobile.

    Existing users keep their id and role.

    Raises:
        ValidationError: If a single field is invalid
        MultipleValidationError: If several fields are invalid

    Example:
        >>> user = register_user(session, {"name": "Sara", "mobile": "09121234567",
        ...                                "age": 31, "email": "sara@example.com"})
        >>> user.role
        <UserRole.USER: 'USER'>
    """
    result = validate_input(RegistrationInput, data)
    if not result.success:
        logger.warning("Registration validation failed: %s", [e.field for e in result.errors])
        _raise_validation(result)
    clean = result.data
    if clean is None:
        raise RuntimeError("Validation succeeded but returned no data")

    config = assessment_config or get_settings().assessment
    repo = UserRepo(session)
    try:
        existing = repo.get_by_username(clean["mobile"])
        if existing is not None:
            repo.refresh_profile(existing, name=clean["name"], age=clean["age"], email=clean["email"])
            session.commit()
            set_context(user_id=existing.id)
            logger.info("Refreshed profile for user %s", existing.id)
            return user_from_orm(existing)

        role = role_for_identifier(clean["mobile"], config.admin_identifiers)
        row = repo.create(
            id=str(uuid.uuid4()),
            username=clean["mobile"],
            name=clean["name"],
            mobile=clean["mobile"],
            age=clean["age"],
            email=clean["email"],
            role=role.value,
        )
        session.commit()
        set_context(user_id=row.id)
        logger.info("Registered user %s with role %s", row.id, role.value)
        return user_from_orm(row)

    except WheelOfLifeError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        error_details = log_error_details(e, {"operation": "register_user"})
        logger.error("Failed to register user", extra=error_details)
        raise WheelOfLifeError(
            f"Failed to register user: {e}",
            details=error_details,
            user_message=create_user_friendly_error_message(e),
        ) from e


def get_user(session: Session, user_id: str) -> User:
    row = UserRepo(session).get(user_id)
    if row is None:
        raise UserNotFoundError(user_id)
    return user_from_orm(row)


def get_user_context(session: Session, user_id: str) -> UserContext:
    return UserContext.for_user(get_user(session, user_id))


@log_operation("list_users")
def list_users(session: Session, actor: UserContext) -> list[User]:
    _require_admin(actor, "list_users")
    return [user_from_orm(row) for row in UserRepo(session).list_all()]


# -- admin settings -----------------------------------------------------------


def load_admin_settings(store: SettingsStore) -> AdminSettings:
    """Current settings; unset slots come back as the default copy."""
    return store.get()


@log_operation("save_admin_settings")
def save_admin_settings(
    store: SettingsStore, actor: UserContext, data: dict[str, Any]
) -> AdminSettings:
    """
    Validate and persist all four template slots.

    Raises:
        PermissionError: If ``actor`` is not an admin
        ValidationError: If a slot is empty
    """
    _require_admin(actor, "save_admin_settings")
    result = validate_input(AdminSettingsInput, data)
    if not result.success:
        _raise_validation(result)
    settings = AdminSettings(**{slot: result.data[slot] for slot in AdminSettings.SLOTS})
    store.put(settings)
    logger.info("Admin %s saved settings", actor.user_id)
    return store.get()


# -- assessments --------------------------------------------------------------


def open_assessment_session(
    user: UserContext,
    history_store: HistoryStore,
    settings_store: SettingsStore,
    narrative: NarrativeGenerator,
    assessment_config: AssessmentConfig | None = None,
    narrative_config: NarrativeConfig | None = None,
) -> AssessmentSession:
    """Build a session in INTRO with settings loaded once, at start."""
    config = assessment_config or get_settings().assessment
    narrative_config = narrative_config or get_settings().narrative
    set_context(user_id=user.user_id)
    assessment = AssessmentSession(
        user,
        history_store,
        settings_store.get(),
        narrative,
        processing_delay=config.processing_delay_seconds,
        default_score=config.default_score,
        min_score=config.score_min,
        max_score=config.score_max,
        narrative_fallback=narrative_config.error_message,
    )
    logger.info("Opened assessment %s for user %s", assessment.id, user.user_id)
    return assessment


def user_history(store: HistoryStore, user_id: str) -> list[WheelEntry]:
    """Entries for ``user_id``, newest first regardless of store order."""
    return sorted(store.list_by_user(user_id), key=lambda e: e.created_at, reverse=True)


def user_trend(store: HistoryStore, user_id: str, window_size: int | None = None) -> list[TrendPoint]:
    window = window_size if window_size is not None else get_settings().assessment.trend_window
    return HistoryAggregator(CATEGORIES, logger).trend(user_history(store, user_id), window)


@log_operation("request_report_delivery")
def request_report_delivery(entry: WheelEntry, email: str) -> PendingDelivery:
    """
    Queue a result report for ``email``. Delivery itself is simulated.

    Raises:
        ValidationError: If the address is not valid
    """
    result = validate_input(ReportRequestInput, {"email": email})
    if not result.success:
        _raise_validation(result)
    delivery = PendingDelivery(entry_id=entry.id, email=result.data["email"])
    logger.info("Queued report for entry %s to %s", entry.id, delivery.email)
    return delivery


# -- admin views --------------------------------------------------------------


@log_operation("admin_statistics")
def admin_statistics(session: Session, store: HistoryStore, actor: UserContext) -> dict[str, Any]:
    _require_admin(actor, "admin_statistics")
    entries = store.list_all()
    aggregator = HistoryAggregator(CATEGORIES, logger)
    averages = aggregator.cross_user_category_averages(entries)
    overall = (
        sum(aggregator.entry_average(e) for e in entries) / len(entries) if entries else 0.0
    )
    return {
        "total_users": UserRepo(session).count(),
        "total_entries": len(entries),
        "overall_average": round(overall, 2),
        "category_averages": averages,
    }


@log_operation("list_all_entries")
def list_all_entries(store: HistoryStore, actor: UserContext) -> list[WheelEntry]:
    _require_admin(actor, "list_all_entries")
    return sorted(store.list_all(), key=lambda e: e.created_at, reverse=True)


@log_operation("broadcast_notification")
def broadcast_notification(session: Session, actor: UserContext, channel: str) -> int:
    """
    Queue a reminder on ``channel`` for every registered user. Sending is simulated.

    Returns:
        Number of users the reminder was queued for
    """
    _require_admin(actor, "broadcast_notification")
    result = validate_input(NotificationInput, {"channel": channel})
    if not result.success:
        _raise_validation(result)
    recipients = UserRepo(session).list_all()
    logger.info(
        "Queued %s reminder for %d users at %s",
        result.data["channel"],
        len(recipients),
        datetime.utcnow().isoformat(),
    )
    return len(recipients)
