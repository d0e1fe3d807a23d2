import json
import logging

from lifewheel.infrastructure.config import LoggingConfig
from lifewheel.infrastructure.logging import (
    ContextFilter,
    LogContext,
    StructuredFormatter,
    clear_context,
    configure_logging,
    current_context,
    effective_logging_config,
    get_logger,
    set_context,
)


def make_record(**extra):
    record = logging.LogRecord("lifewheel.test", logging.INFO, __file__, 1, "hello %s", ("sara",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_testing_environment_disables_file_and_console(tmp_path):
    config = LoggingConfig(file_path=str(tmp_path / "app.log"), console_enabled=True)
    effective = configure_logging(config, "testing")
    assert effective.file_path is None
    assert effective.console_enabled is False
    handlers = logging.getLogger("lifewheel").handlers
    assert [type(h) for h in handlers] == [logging.NullHandler]
    assert not (tmp_path / "app.log").exists()


def test_logging_config_drives_level_and_file(tmp_path):
    log_file = tmp_path / "logs" / "app.log"
    config = LoggingConfig(level="DEBUG", file_path=str(log_file), console_enabled=False)
    try:
        configure_logging(config, "production")
        root = logging.getLogger("lifewheel")
        assert root.level == logging.DEBUG
        get_logger("session").info("entry saved")
        for handler in root.handlers:
            handler.flush()
        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["message"] == "entry saved"
    finally:
        configure_logging(LoggingConfig(), "testing")


def test_production_forces_structured_output():
    effective = effective_logging_config(LoggingConfig(structured=False), "production")
    assert effective.structured is True


def test_context_is_attached_and_cleared():
    clear_context()
    set_context(user_id="u1")
    with LogContext(operation="redo", session_id="s1"):
        record = make_record()
        ContextFilter().filter(record)
        assert record.user_id == "u1"
        assert record.operation == "redo"
    assert current_context() == {"user_id": "u1"}
    clear_context()
    assert current_context() == {}


def test_extra_fields_win_over_context():
    clear_context()
    set_context(session_id="from-context")
    record = make_record(session_id="from-extra")
    ContextFilter().filter(record)
    assert record.session_id == "from-extra"
    clear_context()


def test_structured_formatter_emits_json_with_context_fields():
    payload = json.loads(StructuredFormatter().format(make_record(user_id="u1")))
    assert payload["message"] == "hello sara"
    assert payload["level"] == "INFO"
    assert payload["user_id"] == "u1"
    assert "session_id" not in payload


def test_get_logger_namespaces_under_package():
    assert get_logger("session").name == "lifewheel.session"
    assert get_logger("lifewheel.web").name == "lifewheel.web"
