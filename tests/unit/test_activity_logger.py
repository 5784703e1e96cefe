"""
Unit tests for the registry activity logger.
"""

import csv
import json
import time

import pytest

from registry.activity import (
    ActivityEvent, ActivityLogger, ActivityResult, ActivityType,
    configure_activity_logger, get_activity_logger
)
from registry.exceptions import AlreadyExists


CALLER = "0x" + "1" * 40
KEY = "0x" + "ab" * 32


class TestActivityEvent:
    """Test activity event records."""

    def test_event_id_and_timestamp_are_filled(self):
        event = ActivityEvent(
            event_id="",
            timestamp=0,
            activity_type=ActivityType.ADMINISTRATION,
            operation="initialize",
            result=ActivityResult.INFO
        )
        assert event.event_id.startswith("act_")
        assert event.timestamp > 0

    def test_to_dict_uses_enum_values(self):
        event = ActivityEvent(
            event_id="act_1",
            timestamp=1.0,
            activity_type=ActivityType.CREDENTIAL_OPERATION,
            operation="issue_credential",
            result=ActivityResult.APPROVED
        )
        data = event.to_dict()
        assert data["activity_type"] == "credential_operation"
        assert data["result"] == "approved"


class TestActivityLogger:
    """Test activity logging."""

    @pytest.fixture
    def activity_logger(self):
        return ActivityLogger({"log_directory": None})

    def test_log_registry_operation_type(self, activity_logger):
        activity_logger.log_registry_operation("issue_credential", CALLER, KEY)
        activity_logger.log_registry_operation("authorize_issuer", CALLER, KEY)

        events = activity_logger.get_events()
        assert events[0].activity_type == ActivityType.CREDENTIAL_OPERATION
        assert events[1].activity_type == ActivityType.ISSUER_OPERATION
        assert all(e.result == ActivityResult.APPROVED for e in events)

    def test_rejection_records_error_code(self, activity_logger):
        activity_logger.log_registry_operation(
            "issue_credential", CALLER, KEY,
            result=ActivityResult.REJECTED,
            error=AlreadyExists("already issued")
        )

        event = activity_logger.get_events(result=ActivityResult.REJECTED)[0]
        assert event.error_code == "AlreadyExists"
        assert event.error_message == "already issued"
        assert activity_logger.operation_counts["issue_credential_failed"] == 1

    def test_plain_exception_uses_class_name(self, activity_logger):
        activity_logger.log_registry_operation(
            "revoke_credential", CALLER, KEY,
            result=ActivityResult.ERROR,
            error=ValueError("bad")
        )
        assert activity_logger.get_events()[0].error_code == "ValueError"

    def test_disabled_logger_records_nothing(self):
        activity_logger = ActivityLogger({"enabled": False})
        assert activity_logger.log_registry_operation("issue_credential", CALLER, KEY) == ""
        assert activity_logger.get_events() == []

    def test_memory_history_is_bounded(self):
        activity_logger = ActivityLogger({"max_memory_events": 3})
        for _ in range(5):
            activity_logger.log_registry_operation("issue_credential", CALLER, KEY)

        assert len(activity_logger.get_events()) == 3
        assert activity_logger.get_statistics()["events_logged"] == 5

    def test_security_summary(self, activity_logger):
        activity_logger.log_registry_operation(
            "authorize_issuer", CALLER, KEY,
            result=ActivityResult.REJECTED,
            error=AlreadyExists("x")
        )
        activity_logger.log_security_event("authorize_issuer", CALLER, ["role_check_failed"])

        summary = activity_logger.get_security_summary(hours=1)
        assert summary["security_events"] == 1
        assert summary["rejected_operations"] == 2
        assert summary["most_common_security_flags"] == [("role_check_failed", 1)]
        assert summary["most_rejected_callers"] == [(CALLER, 2)]

    def test_event_handlers(self, activity_logger):
        seen = []
        activity_logger.add_event_handler(ActivityType.SECURITY_EVENT, seen.append)

        activity_logger.log_registry_operation("issue_credential", CALLER, KEY)
        activity_logger.log_security_event("issue_credential", CALLER, ["role_check_failed"])

        assert len(seen) == 1
        assert seen[0].security_flags == ["role_check_failed"]

    def test_failing_handler_does_not_stop_logging(self, activity_logger):
        def broken(event):
            raise RuntimeError("handler failure")

        activity_logger.add_event_handler(ActivityType.CREDENTIAL_OPERATION, broken)
        activity_logger.log_registry_operation("issue_credential", CALLER, KEY)

        assert len(activity_logger.get_events()) == 1

    def test_since_filter(self, activity_logger):
        activity_logger.log_registry_operation("issue_credential", CALLER, KEY)
        assert activity_logger.get_events(since=time.time() + 60) == []

    def test_writes_daily_jsonl(self, tmp_path):
        activity_logger = ActivityLogger({"log_directory": str(tmp_path)})
        activity_logger.log_registry_operation("issue_credential", CALLER, KEY)

        files = list(tmp_path.glob("activity_*.jsonl"))
        assert len(files) == 1
        line = json.loads(files[0].read_text().strip())
        assert line["operation"] == "issue_credential"
        assert line["subject_key"] == KEY

    def test_export_json(self, activity_logger, tmp_path):
        activity_logger.log_registry_operation("issue_credential", CALLER, KEY)
        activity_logger.log_registry_operation("authorize_issuer", CALLER, KEY)

        output = tmp_path / "export.json"
        count = activity_logger.export_activity_log(
            str(output), activity_types=[ActivityType.ISSUER_OPERATION]
        )

        data = json.loads(output.read_text())
        assert count == 1
        assert data["total_events"] == 1
        assert data["events"][0]["operation"] == "authorize_issuer"

    def test_export_csv(self, activity_logger, tmp_path):
        activity_logger.log_security_event("revoke_issuer", CALLER, ["a", "b"])

        output = tmp_path / "export.csv"
        assert activity_logger.export_activity_log(str(output), format="csv") == 1

        with open(output, newline='') as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["security_flags"] == "a|b"
        assert rows[0]["activity_type"] == "security_event"

    def test_export_unknown_format(self, activity_logger, tmp_path):
        with pytest.raises(ValueError):
            activity_logger.export_activity_log(str(tmp_path / "x"), format="xml")


class TestGlobalActivityLogger:
    """Test the module-level logger instance."""

    def test_configure_replaces_global(self):
        configured = configure_activity_logger({"max_memory_events": 5})
        assert get_activity_logger() is configured
        assert configured.events.maxlen == 5
