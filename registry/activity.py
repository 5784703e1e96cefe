"""
Activity Logging for the Diploma Registry

This module records an operational trail of every attempted registry operation,
approved or rejected, with the failure code of rejected ones. It is distinct from the
domain audit events, which record only successful mutations and are committed with
the state they describe.
"""

import csv
import json
import logging
import threading
import time
import uuid
from collections import Counter, defaultdict, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional


class ActivityType(Enum):
    """Activity category."""
    ISSUER_OPERATION = "issuer_operation"
    CREDENTIAL_OPERATION = "credential_operation"
    VERIFICATION = "verification"
    ADMINISTRATION = "administration"
    SECURITY_EVENT = "security_event"


class ActivityResult(Enum):
    """Activity outcome."""
    APPROVED = "approved"
    REJECTED = "rejected"
    ERROR = "error"
    INFO = "info"


@dataclass
class ActivityEvent:
    """A single entry of the operational trail."""
    event_id: str
    timestamp: float
    activity_type: ActivityType
    operation: str
    result: ActivityResult

    caller: Optional[str] = None
    subject_key: Optional[str] = None

    context: Dict[str, Any] = field(default_factory=dict)
    security_flags: List[str] = field(default_factory=list)

    error_code: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: Optional[float] = None

    def __post_init__(self):
        if not self.event_id:
            self.event_id = f"act_{int(time.time() * 1000000)}_{uuid.uuid4().hex[:8]}"
        if not self.timestamp:
            self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        event_dict = asdict(self)
        event_dict['activity_type'] = self.activity_type.value
        event_dict['result'] = self.result.value
        return event_dict


class ActivityLogger:
    """
    Operational activity logger for registry operations.

    Events are kept in a bounded in-memory history and, when a log directory is
    configured, appended to a daily JSONL file.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize activity logger.

        Args:
            config: Optional configuration dictionary. Recognized keys are
                ``enabled``, ``log_directory`` (None keeps events in memory only)
                and ``max_memory_events``.
        """
        self.config = config or {}
        self.logger = logging.getLogger(__name__)
        self.enabled = self.config.get("enabled", True)

        log_directory = self.config.get("log_directory")
        self.log_directory = Path(log_directory) if log_directory else None
        if self.log_directory is not None:
            self.log_directory.mkdir(parents=True, exist_ok=True)

        self.events: Deque[ActivityEvent] = deque(maxlen=self.config.get("max_memory_events", 10000))
        self.event_handlers: Dict[ActivityType, List[Callable[[ActivityEvent], None]]] = defaultdict(list)
        self._lock = threading.Lock()

        self.stats = {
            "events_logged": 0,
            "write_errors": 0,
            "start_time": time.time()
        }
        self.operation_counts: Counter = Counter()

    def log_event(self,
                  activity_type: ActivityType,
                  operation: str,
                  result: ActivityResult,
                  **kwargs) -> str:
        """
        Log an activity event.

        Args:
            activity_type: Category of the activity
            operation: Operation name (e.g. "authorize_issuer")
            result: Outcome of the operation
            **kwargs: Additional ActivityEvent fields

        Returns:
            Event ID, or an empty string when logging is disabled
        """
        if not self.enabled:
            return ""

        event = ActivityEvent(
            event_id="",
            timestamp=time.time(),
            activity_type=activity_type,
            operation=operation,
            result=result,
            **kwargs
        )
        self._process_event(event)
        return event.event_id

    def log_registry_operation(self,
                               operation: str,
                               caller: Optional[str],
                               subject_key: Optional[str],
                               result: ActivityResult = ActivityResult.APPROVED,
                               error: Optional[Exception] = None,
                               context: Optional[Dict[str, Any]] = None,
                               duration_ms: Optional[float] = None) -> str:
        """
        Log an issuer or credential operation attempt.

        Args:
            operation: Registry operation name
            caller: Identity that invoked the operation
            subject_key: Issuer or credential key operated on
            result: Operation result
            error: Failure raised by a rejected operation
            context: Additional context
            duration_ms: Operation duration

        Returns:
            Event ID
        """
        activity_type = (ActivityType.CREDENTIAL_OPERATION
                         if "credential" in operation else ActivityType.ISSUER_OPERATION)
        return self.log_event(
            activity_type=activity_type,
            operation=operation,
            result=result,
            caller=caller,
            subject_key=subject_key,
            context=context or {},
            error_code=getattr(error, "code", type(error).__name__) if error else None,
            error_message=str(error) if error else None,
            duration_ms=duration_ms
        )

    def log_administration(self,
                           operation: str,
                           caller: Optional[str],
                           result: ActivityResult = ActivityResult.APPROVED,
                           error: Optional[Exception] = None,
                           context: Optional[Dict[str, Any]] = None) -> str:
        """Log registry setup and maintenance such as initialization or restore."""
        return self.log_event(
            activity_type=ActivityType.ADMINISTRATION,
            operation=operation,
            result=result,
            caller=caller,
            context=context or {},
            error_code=getattr(error, "code", type(error).__name__) if error else None,
            error_message=str(error) if error else None
        )

    def log_verification(self,
                         subject_key: Optional[str],
                         context: Optional[Dict[str, Any]] = None) -> str:
        """Log an open verification query. Queries never fail, so the result is INFO."""
        return self.log_event(
            activity_type=ActivityType.VERIFICATION,
            operation="verify_credential",
            result=ActivityResult.INFO,
            subject_key=subject_key,
            context=context or {}
        )

    def log_security_event(self,
                           operation: str,
                           caller: Optional[str],
                           security_flags: List[str],
                           result: ActivityResult = ActivityResult.REJECTED,
                           context: Optional[Dict[str, Any]] = None) -> str:
        """Log a security-relevant event such as a failed role check."""
        return self.log_event(
            activity_type=ActivityType.SECURITY_EVENT,
            operation=operation,
            result=result,
            caller=caller,
            security_flags=security_flags,
            context=context or {}
        )

    def add_event_handler(self, activity_type: ActivityType,
                          handler: Callable[[ActivityEvent], None]) -> None:
        """Register a callback invoked for each event of the given type."""
        self.event_handlers[activity_type].append(handler)

    def get_events(self,
                   activity_type: Optional[ActivityType] = None,
                   result: Optional[ActivityResult] = None,
                   since: Optional[float] = None) -> List[ActivityEvent]:
        """Get events from the in-memory history."""
        with self._lock:
            events = list(self.events)

        return [
            event for event in events
            if (activity_type is None or event.activity_type == activity_type)
            and (result is None or event.result == result)
            and (since is None or event.timestamp >= since)
        ]

    def get_security_summary(self, hours: int = 24) -> Dict[str, Any]:
        """
        Get security summary for the specified time period.

        Args:
            hours: Time period in hours

        Returns:
            Security summary
        """
        recent_events = self.get_events(since=time.time() - (hours * 3600))

        security_events = [e for e in recent_events if e.activity_type == ActivityType.SECURITY_EVENT]
        rejected = [e for e in recent_events if e.result == ActivityResult.REJECTED]

        flag_counts = Counter(flag for event in security_events for flag in event.security_flags)
        error_code_counts = Counter(e.error_code for e in rejected if e.error_code)
        rejected_callers = Counter(e.caller for e in rejected if e.caller)

        return {
            "period_hours": hours,
            "total_events": len(recent_events),
            "security_events": len(security_events),
            "rejected_operations": len(rejected),
            "most_common_security_flags": flag_counts.most_common(10),
            "most_common_error_codes": error_code_counts.most_common(10),
            "most_rejected_callers": rejected_callers.most_common(10)
        }

    def export_activity_log(self,
                            output_path: str,
                            format: str = "json",
                            since: Optional[float] = None,
                            activity_types: Optional[List[ActivityType]] = None) -> int:
        """
        Export the in-memory history to a file.

        Args:
            output_path: Output file path
            format: Export format ("json" or "csv")
            since: Optional timestamp filter
            activity_types: Optional activity type filter

        Returns:
            Number of events exported
        """
        events = self.get_events(since=since)
        if activity_types:
            wanted = set(activity_types)
            events = [e for e in events if e.activity_type in wanted]

        if format.lower() == "json":
            self._export_json(events, output_path)
        elif format.lower() == "csv":
            self._export_csv(events, output_path)
        else:
            raise ValueError(f"Unsupported export format: {format}")

        return len(events)

    def get_statistics(self) -> Dict[str, Any]:
        """Get activity logger statistics."""
        uptime = time.time() - self.stats["start_time"]

        return {
            **self.stats,
            "uptime_seconds": uptime,
            "stored_events": len(self.events),
            "operation_counts": dict(self.operation_counts),
            "event_handlers": sum(len(handlers) for handlers in self.event_handlers.values()),
            "log_directory": str(self.log_directory) if self.log_directory else None
        }

    # Private methods

    def _process_event(self, event: ActivityEvent) -> None:
        with self._lock:
            self.events.append(event)
            self.stats["events_logged"] += 1
            self.operation_counts[event.operation] += 1
            if event.result in (ActivityResult.REJECTED, ActivityResult.ERROR):
                self.operation_counts[f"{event.operation}_failed"] += 1

            if self.log_directory is not None:
                self._write_event(event)

        self._trigger_handlers(event)

    def _trigger_handlers(self, event: ActivityEvent) -> None:
        for handler in self.event_handlers.get(event.activity_type, []):
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Activity handler failed for {event.activity_type.value}: {e}")

    def _write_event(self, event: ActivityEvent) -> None:
        """Append a single event to the daily JSONL file."""
        log_file = self.log_directory / f"activity_{datetime.now().strftime('%Y%m%d')}.jsonl"
        try:
            with open(log_file, 'a') as f:
                json.dump(event.to_dict(), f, default=str)
                f.write('\n')
        except OSError as e:
            self.stats["write_errors"] += 1
            self.logger.error(f"Failed to write activity event: {e}")

    def _export_json(self, events: List[ActivityEvent], output_path: str) -> None:
        data = {
            "export_timestamp": datetime.now(timezone.utc).isoformat(),
            "total_events": len(events),
            "events": [event.to_dict() for event in events]
        }

        with open(output_path, 'w') as f:
            json.dump(data, f, indent=2, default=str)

    def _export_csv(self, events: List[ActivityEvent], output_path: str) -> None:
        with open(output_path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow([
                "event_id", "timestamp", "activity_type", "operation", "result",
                "caller", "subject_key", "error_code", "error_message", "security_flags"
            ])

            for event in events:
                writer.writerow([
                    event.event_id,
                    datetime.fromtimestamp(event.timestamp).isoformat(),
                    event.activity_type.value,
                    event.operation,
                    event.result.value,
                    event.caller,
                    event.subject_key,
                    event.error_code,
                    event.error_message,
                    "|".join(event.security_flags)
                ])


# Global activity logger instance
_global_activity_logger: Optional[ActivityLogger] = None


def get_activity_logger() -> ActivityLogger:
    """Get the global activity logger instance."""
    global _global_activity_logger
    if _global_activity_logger is None:
        _global_activity_logger = ActivityLogger()
    return _global_activity_logger


def configure_activity_logger(config: Dict[str, Any]) -> ActivityLogger:
    """Configure the global activity logger."""
    global _global_activity_logger
    _global_activity_logger = ActivityLogger(config)
    return _global_activity_logger
