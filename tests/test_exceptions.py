from sqlalchemy.exc import OperationalError

from lifewheel.infrastructure.exceptions import (
    AssessmentNotFoundError,
    ConnectionError,
    DatabaseError,
    IntegrityError,
    InvalidTransitionError,
    PermissionError,
    PersistenceError,
    UserNotFoundError,
    ValidationError,
    create_user_friendly_error_message,
    handle_database_error,
    log_error_details,
)
from lifewheel.web.main import status_for_error


def test_validation_error_user_message():
    error = ValidationError("email", "is not valid", "x")
    assert create_user_friendly_error_message(error) == "Invalid email: is not valid"


def test_handle_database_error_classifies():
    assert isinstance(handle_database_error(Exception("connection refused")), ConnectionError)
    assert isinstance(
        handle_database_error(Exception("UNIQUE constraint failed: users.username")), IntegrityError
    )
    generic = handle_database_error(Exception("disk I/O error"), "history.append")
    assert type(generic) is DatabaseError
    assert generic.operation == "history.append"


def test_handle_database_error_from_sqlalchemy():
    err = OperationalError("SELECT 1", {}, Exception("timeout while waiting"))
    assert isinstance(handle_database_error(err), ConnectionError)


def test_persistence_error_is_database_error_with_retry_message():
    error = PersistenceError("locked", operation="history.append")
    assert isinstance(error, DatabaseError)
    assert "retry" in error.user_message


def test_log_error_details_includes_context():
    details = log_error_details(InvalidTransitionError("intro", "result"), {"session_id": "s1"})
    assert details["error_type"] == "InvalidTransitionError"
    assert details["context"] == {"session_id": "s1"}
    assert details["error_details"] == {"current": "intro", "requested": "result"}


def test_unknown_errors_get_generic_message():
    assert "unexpected" in create_user_friendly_error_message(RuntimeError("x")).lower()


def test_http_status_mapping():
    assert status_for_error(UserNotFoundError("u")) == 404
    assert status_for_error(AssessmentNotFoundError("s")) == 404
    assert status_for_error(PermissionError("no")) == 403
    assert status_for_error(InvalidTransitionError("intro", "result")) == 409
    assert status_for_error(ValidationError("age", "too low")) == 400
