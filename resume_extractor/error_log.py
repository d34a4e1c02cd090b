"""In-memory error and outcome log for diagnostics and monitoring.

The log is a side-effect sink: nothing in the extraction path reads it back.
"""

import csv
import io
import json
import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from resume_extractor.classification import ClassifiedError, ErrorCategory, ErrorSeverity
from resume_extractor.logger import get_logger
from resume_extractor.models import Document, ParseResult, ParseStatus
from resume_extractor.recovery import RecoveryAttempt

logger = get_logger(__name__)

SEVERITY_LEVELS = {
    ErrorSeverity.CRITICAL: logging.CRITICAL,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.LOW: logging.INFO,
}

CSV_HEADERS = (
    "ID", "Timestamp", "Category", "Severity", "Code", "Message",
    "User Message", "Resolved", "Resolution Time", "Recovery Attempts",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ErrorLogEntry:
    id: str
    timestamp: datetime
    error: ClassifiedError
    context: dict[str, Any]
    recovery_attempts: list[RecoveryAttempt] = field(default_factory=list)
    resolved: bool = False
    resolution_time_ms: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error.to_dict(),
            "context": {key: str(value) for key, value in self.context.items()},
            "recovery_attempts": [
                {
                    "strategy_name": attempt.strategy_name,
                    "success": attempt.success,
                    "message": attempt.message,
                    "recovery_time_ms": attempt.recovery_time_ms,
                }
                for attempt in self.recovery_attempts
            ],
            "resolved": self.resolved,
            "resolution_time_ms": self.resolution_time_ms,
        }


class ErrorLogger:
    """Bounded, thread-safe record of classified errors and parse outcomes.

    Args:
        max_entries: Entries kept; the oldest are evicted first
        clock: Source of timezone-aware timestamps
    """

    def __init__(self, max_entries: int = 1000, clock: Callable[[], datetime] = _utcnow):
        self.max_entries = max_entries
        self.clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, ErrorLogEntry]" = OrderedDict()
        self._outcomes: dict[str, int] = {status.value: 0 for status in ParseStatus}

    def log_error(self, error: ClassifiedError, context: Optional[dict[str, Any]] = None) -> str:
        """Record a classified error and emit it to the process log.

        Returns:
            The entry id
        """
        entry = ErrorLogEntry(
            id=f"err_{uuid.uuid4().hex[:12]}",
            timestamp=self.clock(),
            error=error,
            context=dict(context or {}),
        )
        with self._lock:
            self._entries[entry.id] = entry
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

        logger.log(
            SEVERITY_LEVELS.get(error.severity, logging.WARNING),
            f"{error.code}: {error.message}",
            extra_data={
                "error_id": entry.id,
                "category": error.category.value,
                "severity": error.severity.value,
                "recoverable": error.recoverable,
                **{key: value for key, value in entry.context.items() if key != "diagnostic_info"},
            },
        )
        return entry.id

    def log_recovery_attempt(self, error_id: str, attempt: RecoveryAttempt):
        with self._lock:
            entry = self._entries.get(error_id)
            if entry is None:
                return
            entry.recovery_attempts.append(attempt)
            if attempt.success and not entry.resolved:
                entry.resolved = True
                entry.resolution_time_ms = (self.clock() - entry.timestamp).total_seconds() * 1000

    def record_outcome(self, document: Optional[Document], result: ParseResult):
        with self._lock:
            self._outcomes[result.status.value] = self._outcomes.get(result.status.value, 0) + 1

        logger.debug(
            "Parse outcome recorded",
            extra_data={
                "file_name": document.filename if document is not None else None,
                "status": result.status.value,
                "strategy": result.strategy_used,
                "confidence": result.confidence,
            },
        )

    def get_error(self, error_id: str) -> Optional[ErrorLogEntry]:
        with self._lock:
            return self._entries.get(error_id)

    def all_errors(self) -> list[ErrorLogEntry]:
        with self._lock:
            return list(self._entries.values())

    def get_analytics(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> dict[str, Any]:
        """Aggregate error metrics, optionally restricted to a time range."""
        now = self.clock()
        with self._lock:
            entries = list(self._entries.values())
            outcomes = dict(self._outcomes)

        if start is not None:
            entries = [entry for entry in entries if entry.timestamp >= start]
        if end is not None:
            entries = [entry for entry in entries if entry.timestamp <= end]

        total = len(entries)
        by_category = {category.value: 0 for category in ErrorCategory}
        by_severity = {severity.value: 0 for severity in ErrorSeverity}
        by_code: dict[str, int] = {}
        resolution_times = []
        for entry in entries:
            by_category[entry.error.category.value] += 1
            by_severity[entry.error.severity.value] += 1
            by_code[entry.error.code] = by_code.get(entry.error.code, 0) + 1
            if entry.resolved and entry.resolution_time_ms is not None:
                resolution_times.append(entry.resolution_time_ms)

        top_errors = [
            {"code": code, "count": count, "percentage": count / total * 100}
            for code, count in sorted(by_code.items(), key=lambda item: item[1], reverse=True)[:10]
        ]

        today = now.date()
        daily_trend = {(today - timedelta(days=offset)).isoformat(): 0 for offset in range(6, -1, -1)}
        for entry in entries:
            day = entry.timestamp.date().isoformat()
            if day in daily_trend:
                daily_trend[day] += 1

        return {
            "total_errors": total,
            "errors_by_category": by_category,
            "errors_by_severity": by_severity,
            "errors_by_code": by_code,
            "average_resolution_time_ms": (
                sum(resolution_times) / len(resolution_times) if resolution_times else 0.0
            ),
            "resolution_rate": len(resolution_times) / total if total else 0.0,
            "top_errors": top_errors,
            "daily_trend": daily_trend,
            "outcomes": outcomes,
            "time_range": {
                "start": (start or (entries[0].timestamp if entries else now)).isoformat(),
                "end": (end or now).isoformat(),
            },
        }

    def export_logs(self, format: str = "json") -> str:
        """Serialize all entries as "json" or "csv".

        Raises:
            ValueError: If the format is unknown
        """
        entries = self.all_errors()
        if format == "json":
            return json.dumps([entry.to_dict() for entry in entries], indent=2)
        if format == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            writer.writerow(CSV_HEADERS)
            for entry in entries:
                writer.writerow(
                    [
                        entry.id,
                        entry.timestamp.isoformat(),
                        entry.error.category.value,
                        entry.error.severity.value,
                        entry.error.code,
                        entry.error.message,
                        entry.error.user_message,
                        entry.resolved,
                        "" if entry.resolution_time_ms is None else round(entry.resolution_time_ms, 1),
                        len(entry.recovery_attempts),
                    ]
                )
            return buffer.getvalue()
        raise ValueError(f"Unsupported export format: {format}")

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._outcomes = {status.value: 0 for status in ParseStatus}
