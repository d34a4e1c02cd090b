"""Recovery strategies for classified extraction failures.

The manager keeps a short history of recovery attempts per error signature
(error code plus file identity). Repeated recent failures for the same
signature stop further retries even when the caller still has attempts left.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from resume_extractor.classification import ClassifiedError, ErrorCategory, ErrorSeverity
from resume_extractor.exceptions import RecoveryNotApplicable
from resume_extractor.logger import Timer, get_logger
from resume_extractor.models import Document

logger = get_logger(__name__)

LARGE_FILE_BYTES = 5 * 1024 * 1024

OCR_STRATEGY = "ocr"
PLAIN_TEXT_STRATEGY = "plain_text"
IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff")


@dataclass(frozen=True)
class RecoveryContext:
    document: Optional[Document]
    original_strategy: Optional[str] = None
    attempt_count: int = 0
    max_attempts: int = 3
    previous_errors: tuple[ClassifiedError, ...] = ()


@dataclass(frozen=True)
class RecoveryStrategy:
    """A remediation action keyed to error categories.

    ``execute`` returns a result mapping, or raises ``RecoveryNotApplicable``
    when it cannot help with the failure at hand.
    """

    name: str
    description: str
    priority: int
    applicable_categories: frozenset[ErrorCategory]
    execute: Callable[[ClassifiedError, RecoveryContext], dict[str, Any]]


@dataclass(frozen=True)
class RecoveryAttempt:
    strategy_name: Optional[str]
    success: bool
    recovery_time_ms: float
    message: str
    result: dict[str, Any] = field(default_factory=dict)
    error: Optional[ClassifiedError] = None
    timestamp: float = 0.0


@dataclass(frozen=True)
class RecoverySuggestions:
    immediate: tuple[str, ...]
    alternative: tuple[str, ...]
    preventive: tuple[str, ...]


_CATEGORY_SUGGESTIONS: dict[ErrorCategory, tuple[tuple[str, ...], tuple[str, ...]]] = {
    ErrorCategory.FILE_VALIDATION: (
        (
            "Try a different file format (PDF, DOCX, or image)",
            "Check if the file is corrupted by opening it in its native application",
        ),
        (
            "Ensure files are saved in supported formats",
            "Keep file sizes under 50MB for best performance",
        ),
    ),
    ErrorCategory.OCR_PROCESSING: (
        (
            "Use a higher resolution image",
            "Ensure text is clearly visible and not handwritten",
            "Try a different image format (PNG, JPEG)",
        ),
        (
            "Scan documents at 300 DPI or higher",
            "Ensure good lighting and contrast when taking photos",
            "Use text-based PDFs when possible",
        ),
    ),
    ErrorCategory.PARSING_ENGINE: (
        (
            "Try converting the document to a different format",
            "Use a simpler document layout",
            "Remove complex formatting or images",
        ),
        (
            "Use standard document formats",
            "Avoid password protection",
            "Keep document structure simple",
        ),
    ),
    ErrorCategory.NETWORK: (
        (
            "Try again when you have a better connection",
            "Use a smaller file if possible",
        ),
        ("Avoid processing large files on slow connections",),
    ),
    ErrorCategory.TIMEOUT: (
        (
            "Break large documents into smaller sections",
            "Try again when the service is less busy",
        ),
        ("Keep documents under 10MB for faster processing",),
    ),
}


def alternative_strategies(original_strategy: Optional[str], document: Optional[Document]) -> list[str]:
    """Strategies worth trying instead of the one that failed."""
    if document is None:
        return []

    media_type = (document.media_type or "").lower()
    filename = document.filename.lower()
    alternatives = []
    if ("pdf" in media_type or filename.endswith(".pdf")) and original_strategy != OCR_STRATEGY:
        alternatives.append(OCR_STRATEGY)
    if ("word" in media_type or filename.endswith((".docx", ".doc"))) and original_strategy != PLAIN_TEXT_STRATEGY:
        alternatives.append(PLAIN_TEXT_STRATEGY)
    if ("image" in media_type or filename.endswith(IMAGE_SUFFIXES)) and original_strategy != OCR_STRATEGY:
        if OCR_STRATEGY not in alternatives:
            alternatives.append(OCR_STRATEGY)
    return alternatives


def recommended_formats(media_type: str) -> list[str]:
    media_type = (media_type or "").lower()
    if "pdf" in media_type:
        return ["DOCX", "PNG", "JPEG"]
    if "word" in media_type:
        return ["PDF", "TXT"]
    if "image" in media_type:
        return ["PDF", "PNG"]
    return ["PDF", "DOCX", "PNG"]


class RecoveryManager:
    """Runs prioritized recovery strategies and tracks their history.

    Args:
        strategies: Recovery strategies; the defaults when None
        base_delay: First retry delay in seconds, doubled per attempt
        max_delay: Upper bound for a retry delay in seconds
        history_size: Attempts kept per error signature
        failure_window_seconds: Window in which recent failures are counted
        max_recent_failures: Recent failures that stop further retries
        clock: Wall-clock source in seconds
        sleep: Blocking sleep used by the retry strategy
    """

    def __init__(
        self,
        strategies: Optional[Iterable[RecoveryStrategy]] = None,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        history_size: int = 10,
        failure_window_seconds: float = 300.0,
        max_recent_failures: int = 3,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.history_size = history_size
        self.failure_window_seconds = failure_window_seconds
        self.max_recent_failures = max_recent_failures
        self.clock = clock
        self.sleep = sleep

        self._lock = threading.Lock()
        self._history: dict[str, deque[RecoveryAttempt]] = {}
        self._strategies: list[RecoveryStrategy] = []
        for strategy in strategies if strategies is not None else self._default_strategies():
            self.add_recovery_strategy(strategy)

    @property
    def strategies(self) -> tuple[RecoveryStrategy, ...]:
        return tuple(self._strategies)

    def add_recovery_strategy(self, strategy: RecoveryStrategy):
        with self._lock:
            self._strategies.append(strategy)
            self._strategies.sort(key=lambda s: s.priority, reverse=True)

    @staticmethod
    def signature(error: ClassifiedError, document: Optional[Document]) -> str:
        identity = document.identity if document is not None else "unknown"
        return f"{error.code}_{identity}"

    def attempt_recovery(self, error: ClassifiedError, context: RecoveryContext) -> RecoveryAttempt:
        """Try applicable recovery strategies in priority order.

        The first strategy that returns without raising wins. Errors that are
        not retryable, CRITICAL, or past the attempt budget are rejected
        without running anything.

        Returns:
            The recorded RecoveryAttempt
        """
        key = self.signature(error, context.document)

        with Timer("recovery") as timer:
            if context.attempt_count >= context.max_attempts:
                return self._record(key, error, timer, "Maximum recovery attempts exceeded")
            if not error.retryable:
                return self._record(key, error, timer, "Error is not retryable")
            if error.severity is ErrorSeverity.CRITICAL:
                return self._record(key, error, timer, "Critical errors are not recovered")

            applicable = [s for s in self.strategies if error.category in s.applicable_categories]
            if not applicable:
                return self._record(key, error, timer, "No applicable recovery strategies found")

            for strategy in applicable:
                try:
                    result = strategy.execute(error, context)
                except RecoveryNotApplicable as exc:
                    logger.debug(
                        "Recovery strategy not applicable",
                        extra_data={"strategy": strategy.name, "reason": str(exc)},
                    )
                    continue
                except Exception as exc:
                    logger.warning(
                        "Recovery strategy failed",
                        extra_data={
                            "strategy": strategy.name,
                            "error_type": type(exc).__name__,
                            "error": str(exc),
                        },
                    )
                    continue

                logger.info(
                    "Recovery strategy succeeded",
                    extra_data={"strategy": strategy.name, "error_code": error.code, "result": result},
                )
                return self._record(
                    key,
                    error,
                    timer,
                    f"Recovery successful using {strategy.name}",
                    strategy_name=strategy.name,
                    result=dict(result),
                )

            return self._record(key, error, timer, "All recovery strategies failed")

    def should_retry(self, error: ClassifiedError, context: RecoveryContext) -> bool:
        """Whether another attempt is worthwhile for this error and file."""
        if not error.retryable:
            return False
        if context.attempt_count >= context.max_attempts:
            return False
        if error.severity is ErrorSeverity.CRITICAL:
            return False
        return self.recent_failures(self.signature(error, context.document)) < self.max_recent_failures

    def recent_failures(self, signature: str) -> int:
        cutoff = self.clock() - self.failure_window_seconds
        with self._lock:
            history = list(self._history.get(signature, ()))
        return sum(1 for attempt in history if not attempt.success and attempt.timestamp >= cutoff)

    def get_recovery_suggestions(self, error: ClassifiedError) -> RecoverySuggestions:
        alternative, preventive = _CATEGORY_SUGGESTIONS.get(error.category, ((), ()))
        return RecoverySuggestions(
            immediate=tuple(error.suggestions),
            alternative=alternative,
            preventive=preventive,
        )

    def history(self, signature: Optional[str] = None):
        """Attempts for one signature, or a copy of the whole history."""
        with self._lock:
            if signature is not None:
                return list(self._history.get(signature, ()))
            return {key: list(attempts) for key, attempts in self._history.items()}

    def get_recovery_stats(self) -> dict[str, Any]:
        with self._lock:
            attempts = [attempt for history in self._history.values() for attempt in history]

        successful = [attempt for attempt in attempts if attempt.success]
        strategies_used: dict[str, int] = {}
        for attempt in successful:
            if attempt.strategy_name:
                strategies_used[attempt.strategy_name] = strategies_used.get(attempt.strategy_name, 0) + 1

        total = len(attempts)
        return {
            "total_attempts": total,
            "success_rate": len(successful) / total if total else 0.0,
            "strategies_used": strategies_used,
            "average_recovery_time_ms": (
                sum(attempt.recovery_time_ms for attempt in attempts) / total if total else 0.0
            ),
        }

    def clear_history(self):
        with self._lock:
            self._history.clear()

    def _record(
        self,
        key: str,
        error: ClassifiedError,
        timer: Timer,
        message: str,
        strategy_name: Optional[str] = None,
        result: Optional[dict[str, Any]] = None,
    ) -> RecoveryAttempt:
        success = strategy_name is not None
        attempt = RecoveryAttempt(
            strategy_name=strategy_name,
            success=success,
            recovery_time_ms=timer.get_elapsed_ms(),
            message=message,
            result=result or {},
            error=None if success else error,
            timestamp=self.clock(),
        )
        with self._lock:
            history = self._history.setdefault(key, deque(maxlen=self.history_size))
            history.append(attempt)

        if not success:
            logger.debug(
                "Recovery not possible",
                extra_data={"error_code": error.code, "signature": key, "reason": message},
            )
        return attempt

    # Default strategies

    def _default_strategies(self) -> list[RecoveryStrategy]:
        return [
            RecoveryStrategy(
                name="retry_with_delay",
                description="Retry the operation after a short delay",
                priority=100,
                applicable_categories=frozenset(
                    {ErrorCategory.NETWORK, ErrorCategory.TIMEOUT, ErrorCategory.MEMORY}
                ),
                execute=self._retry_with_delay,
            ),
            RecoveryStrategy(
                name="fallback_to_ocr",
                description="Use OCR as fallback for text extraction failures",
                priority=90,
                applicable_categories=frozenset(
                    {ErrorCategory.TEXT_EXTRACTION, ErrorCategory.PARSING_ENGINE}
                ),
                execute=_fallback_to_ocr,
            ),
            RecoveryStrategy(
                name="alternative_parsing_strategy",
                description="Try alternative parsing strategy",
                priority=85,
                applicable_categories=frozenset(
                    {ErrorCategory.PARSING_ENGINE, ErrorCategory.TEXT_EXTRACTION}
                ),
                execute=_alternative_parsing_strategy,
            ),
            RecoveryStrategy(
                name="reduce_file_size",
                description="Suggest file size reduction for large files",
                priority=80,
                applicable_categories=frozenset({ErrorCategory.MEMORY, ErrorCategory.TIMEOUT}),
                execute=_reduce_file_size,
            ),
            RecoveryStrategy(
                name="format_conversion_suggestion",
                description="Suggest converting to a different format",
                priority=70,
                applicable_categories=frozenset(
                    {ErrorCategory.FILE_VALIDATION, ErrorCategory.PARSING_ENGINE}
                ),
                execute=_format_conversion_suggestion,
            ),
            RecoveryStrategy(
                name="manual_intervention",
                description="Request manual user intervention",
                priority=50,
                applicable_categories=frozenset(
                    {ErrorCategory.FILE_ACCESS, ErrorCategory.CONFIGURATION, ErrorCategory.UNKNOWN}
                ),
                execute=_manual_intervention,
            ),
        ]

    def _retry_with_delay(self, error: ClassifiedError, context: RecoveryContext) -> dict[str, Any]:
        delay = min(self.base_delay * 2 ** context.attempt_count, self.max_delay)
        self.sleep(delay)
        return {"retry_requested": True, "delay": delay}


def _fallback_to_ocr(error: ClassifiedError, context: RecoveryContext) -> dict[str, Any]:
    if context.document is None or context.original_strategy == OCR_STRATEGY:
        raise RecoveryNotApplicable("OCR fallback not applicable")
    return {"fallback_strategy": OCR_STRATEGY, "reason": "Text extraction failed, trying OCR"}


def _alternative_parsing_strategy(error: ClassifiedError, context: RecoveryContext) -> dict[str, Any]:
    alternatives = alternative_strategies(context.original_strategy, context.document)
    if not alternatives:
        raise RecoveryNotApplicable("No alternative strategies available")
    return {"alternative_strategy": alternatives[0], "reason": "Primary parsing strategy failed"}


def _reduce_file_size(error: ClassifiedError, context: RecoveryContext) -> dict[str, Any]:
    if context.document is None or context.document.size <= LARGE_FILE_BYTES:
        raise RecoveryNotApplicable("File size reduction not applicable")
    return {
        "suggestion": "file_too_large",
        "message": "Consider compressing the file or using a smaller version",
        "max_recommended_size": "5MB",
    }


def _format_conversion_suggestion(error: ClassifiedError, context: RecoveryContext) -> dict[str, Any]:
    current_format = context.document.media_type if context.document is not None else "unknown"
    return {
        "suggestion": "format_conversion",
        "current_format": current_format,
        "recommended_formats": recommended_formats(current_format),
        "message": "Try converting to one of the recommended formats",
    }


def _manual_intervention(error: ClassifiedError, context: RecoveryContext) -> dict[str, Any]:
    return {
        "suggestion": "manual_intervention",
        "message": "Manual review and correction required",
        "user_actions": list(error.suggestions),
    }
