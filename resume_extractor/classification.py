"""Pattern-based classification of extraction failures.

Every failure, whether an exception raised by an extraction engine or a
message produced by a strategy's own quality checks, is turned into a
:class:`ClassifiedError` by matching its text against an ordered rule table.
The first matching rule wins; text that matches nothing is classified as
``UNKNOWN_ERROR``. New failure signatures are added as rows in
``DEFAULT_RULES`` without touching call sites.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence


class ErrorCategory(str, Enum):
    FILE_VALIDATION = "FILE_VALIDATION"
    FILE_ACCESS = "FILE_ACCESS"
    PARSING_ENGINE = "PARSING_ENGINE"
    OCR_PROCESSING = "OCR_PROCESSING"
    TEXT_EXTRACTION = "TEXT_EXTRACTION"
    CONTENT_VALIDATION = "CONTENT_VALIDATION"
    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    MEMORY = "MEMORY"
    CONFIGURATION = "CONFIGURATION"
    UNKNOWN = "UNKNOWN"


class ErrorSeverity(str, Enum):
    CRITICAL = "CRITICAL"  # complete failure, never retried
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    WARNING = "WARNING"


@dataclass(frozen=True)
class ClassifiedError:
    """A failure enriched with category, severity and recovery metadata.

    Instances are never mutated; ``with_context`` and ``with_suggestions``
    return new instances.
    """

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    user_message: str
    suggestions: tuple[str, ...]
    recoverable: bool
    retryable: bool
    context: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.severity is ErrorSeverity.CRITICAL and self.recoverable:
            raise ValueError(f"CRITICAL error {self.code} cannot be recoverable")
        if not self.suggestions:
            raise ValueError(f"error {self.code} must carry at least one suggestion")

    @property
    def diagnostic_info(self) -> str:
        return str(self.context.get("diagnostic_info", ""))

    def with_context(self, **extra: Any) -> "ClassifiedError":
        return replace(self, context={**self.context, **extra})

    def with_suggestions(self, extra: Iterable[str]) -> "ClassifiedError":
        """Append suggestions that are not already present, keeping order."""
        return replace(self, suggestions=_merge_unique(self.suggestions, extra))

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "suggestions": list(self.suggestions),
            "recoverable": self.recoverable,
            "retryable": self.retryable,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ErrorRule:
    """One row of the classification table."""

    pattern: "re.Pattern[str]"
    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    user_message: str
    suggestions: tuple[str, ...]
    recoverable: bool
    retryable: bool

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(
    pattern: str,
    category: ErrorCategory,
    severity: ErrorSeverity,
    code: str,
    user_message: str,
    suggestions: Sequence[str],
    recoverable: bool,
    retryable: bool,
) -> ErrorRule:
    return ErrorRule(
        pattern=re.compile(pattern, re.IGNORECASE),
        category=category,
        severity=severity,
        code=code,
        user_message=user_message,
        suggestions=tuple(suggestions),
        recoverable=recoverable,
        retryable=retryable,
    )


C = ErrorCategory
S = ErrorSeverity

DEFAULT_RULES: tuple[ErrorRule, ...] = (
    # File validation
    _rule(
        r"no file provided|file is null|file is none|document is none",
        C.FILE_VALIDATION, S.HIGH, "NO_FILE",
        "No file was provided for processing.",
        ["Please select a file to upload", "Ensure the file selection was successful"],
        recoverable=False, retryable=False,
    ),
    _rule(
        r"file is empty|(?<![\d.,])0 bytes|empty file",
        C.FILE_VALIDATION, S.HIGH, "EMPTY_FILE",
        "The selected file appears to be empty.",
        [
            "Check if the file was uploaded correctly",
            "Try selecting a different file",
            "Verify the file contains content",
        ],
        recoverable=False, retryable=False,
    ),
    _rule(
        r"file too large|exceeds maximum size|file size limit",
        C.FILE_VALIDATION, S.MEDIUM, "FILE_TOO_LARGE",
        "The file is too large to process.",
        [
            "Compress the file to reduce its size",
            "Split large documents into smaller files",
            "Use a different file format",
        ],
        recoverable=False, retryable=False,
    ),
    _rule(
        r"no compatible (parsing )?strategy",
        C.FILE_VALIDATION, S.HIGH, "NO_COMPATIBLE_STRATEGY",
        "This file format is not supported for text extraction.",
        [
            "Ensure the file is a supported format (PDF, DOCX, TXT, or image)",
            "Check if the file is corrupted",
            "Try converting to a different format",
        ],
        recoverable=False, retryable=False,
    ),
    _rule(
        r"unsupported file type|invalid file format|not supported|unidentified image|cannot identify image",
        C.FILE_VALIDATION, S.MEDIUM, "UNSUPPORTED_FORMAT",
        "This file format is not supported.",
        [
            "Convert to PDF, DOCX, or image format",
            "Check if the file extension matches the content",
            "Try a different file",
        ],
        recoverable=True, retryable=False,
    ),
    # PDF
    _rule(
        r"password protected|password required|encrypted pdf|needs a password",
        C.FILE_ACCESS, S.HIGH, "PASSWORD_PROTECTED",
        "This PDF is password protected and cannot be processed.",
        [
            "Remove the password protection from the PDF",
            "Use an unlocked version of the document",
            "Convert to a different format",
        ],
        recoverable=True, retryable=False,
    ),
    _rule(
        r"invalid pdf|corrupted pdf|pdf format|broken document",
        C.PARSING_ENGINE, S.HIGH, "INVALID_PDF",
        "The PDF file appears to be corrupted or invalid.",
        [
            "Try opening the PDF in a PDF viewer to verify it works",
            "Re-save or re-export the PDF",
            "Convert to a different format",
        ],
        recoverable=True, retryable=True,
    ),
    # Text extraction
    _rule(
        r"no text extracted from file|extracted text is empty",
        C.TEXT_EXTRACTION, S.HIGH, "TEXT_EXTRACTION_FAILED",
        "No text could be extracted from this file.",
        [
            "Ensure the document contains selectable text",
            "Try a different file format",
            "Try a text-based version of the document",
        ],
        recoverable=True, retryable=True,
    ),
    _rule(
        r"no text extracted|insufficient text|image-based pdf",
        C.TEXT_EXTRACTION, S.MEDIUM, "NO_TEXT_CONTENT",
        "Unable to extract readable text from this document.",
        [
            "The document may be image-based - OCR will be attempted",
            "Ensure the document contains selectable text",
            "Try a text-based version of the document",
        ],
        recoverable=True, retryable=True,
    ),
    _rule(
        r"no text content|document is empty|contains only images",
        C.CONTENT_VALIDATION, S.MEDIUM, "EMPTY_DOCUMENT",
        "The document does not contain any text.",
        [
            "Check that the document is not blank",
            "If the document only contains pictures of text, upload it as a PDF or image",
            "Try a different file",
        ],
        recoverable=True, retryable=False,
    ),
    _rule(
        r"text is very short|below minimum length",
        C.CONTENT_VALIDATION, S.LOW, "INSUFFICIENT_DATA",
        "Only a small amount of text was found in the document.",
        ["Review the extracted text carefully", "Upload a more complete version of the document"],
        recoverable=True, retryable=False,
    ),
    _rule(
        r"unable to decode|unsupported (character )?encoding|codec can't decode",
        C.FILE_VALIDATION, S.MEDIUM, "ENCODING_ERROR",
        "The text file uses a character encoding that could not be read.",
        ["Save the file as UTF-8 text", "Convert the document to PDF or DOCX"],
        recoverable=True, retryable=False,
    ),
    # OCR
    _rule(
        r"tesseract is not installed|not in your path|tessdata|failed loading language",
        C.CONFIGURATION, S.HIGH, "OCR_ENGINE_UNAVAILABLE",
        "Text recognition is not available on this server.",
        ["Upload a text-based PDF or DOCX instead", "Contact support if the problem persists"],
        recoverable=True, retryable=False,
    ),
    _rule(
        r"ocr failed|tesseract ?error|recognition failed",
        C.OCR_PROCESSING, S.HIGH, "OCR_FAILED",
        "Text recognition (OCR) failed to process this image.",
        [
            "Ensure the image has clear, readable text",
            "Try improving image quality or resolution",
            "Use a different image or document format",
        ],
        recoverable=True, retryable=True,
    ),
    _rule(
        r"low ocr confidence|poor image quality|unclear text",
        C.OCR_PROCESSING, S.MEDIUM, "LOW_OCR_CONFIDENCE",
        "Text recognition completed but with low confidence.",
        [
            "Review the extracted text carefully",
            "Consider using a higher quality image",
            "Manual verification recommended",
        ],
        recoverable=True, retryable=True,
    ),
    # Word documents
    _rule(
        r"not a valid zip|not a zip file|docx corrupt|word document error|package not found",
        C.PARSING_ENGINE, S.HIGH, "CORRUPT_DOCX",
        "The Word document appears to be corrupted.",
        [
            "Try opening the document in Microsoft Word",
            "Re-save the document in DOCX format",
            "Convert to PDF format",
        ],
        recoverable=True, retryable=True,
    ),
    # Environment
    _rule(
        r"timeout|timed out",
        C.TIMEOUT, S.MEDIUM, "PROCESSING_TIMEOUT",
        "The processing operation timed out.",
        [
            "Try again with a smaller file",
            "The file may be too complex to process quickly",
            "Split large documents into smaller files",
        ],
        recoverable=True, retryable=True,
    ),
    _rule(
        r"network error|connection (failed|refused|reset)|fetch failed|connectionerror",
        C.NETWORK, S.MEDIUM, "NETWORK_ERROR",
        "A network error occurred during processing.",
        ["Check your internet connection", "Try again in a few moments"],
        recoverable=True, retryable=True,
    ),
    _rule(
        r"out of memory|memory limit|allocation failed|memoryerror",
        C.MEMORY, S.HIGH, "MEMORY_ERROR",
        "Insufficient memory to process this file.",
        ["Try a smaller file", "Reduce the resolution of scanned pages"],
        recoverable=True, retryable=True,
    ),
    _rule(
        r"configuration error|invalid config|setup failed",
        C.CONFIGURATION, S.CRITICAL, "CONFIG_ERROR",
        "A configuration error occurred.",
        ["Please contact support"],
        recoverable=False, retryable=False,
    ),
)

del C, S

_UNKNOWN_SUGGESTIONS = ("Try again", "If the problem persists, please contact support")


@dataclass(frozen=True)
class ErrorStats:
    total_errors: int
    by_category: dict[ErrorCategory, int]
    by_severity: dict[ErrorSeverity, int]
    recoverable_count: int
    retryable_count: int


class ErrorClassifier:
    """Classifies raw failures with an ordered, first-match-wins rule table."""

    def __init__(self, rules: Optional[Sequence[ErrorRule]] = None):
        self.rules: tuple[ErrorRule, ...] = tuple(rules if rules is not None else DEFAULT_RULES)

    def classify(self, error: Any, context: Optional[Mapping[str, Any]] = None) -> ClassifiedError:
        """Classify an exception, message, or anything else.

        Never raises: input that cannot be described or matched becomes
        ``UNKNOWN_ERROR``.

        Args:
            error: Exception instance, message string, ``None`` or any object
            context: Extra context kept on the classified error

        Returns:
            ClassifiedError
        """
        if isinstance(error, ClassifiedError):
            return error.with_context(**context) if context else error

        message, haystack = _describe(error)
        context = dict(context or {})
        if isinstance(error, BaseException):
            context.setdefault("exception_type", type(error).__name__)

        for rule in self.rules:
            if rule.matches(haystack):
                return ClassifiedError(
                    category=rule.category,
                    severity=rule.severity,
                    code=rule.code,
                    message=message,
                    user_message=rule.user_message,
                    suggestions=rule.suggestions,
                    recoverable=rule.recoverable,
                    retryable=rule.retryable,
                    context=context,
                )

        return ClassifiedError(
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            code="UNKNOWN_ERROR",
            message=message,
            user_message="An unexpected error occurred during processing.",
            suggestions=_UNKNOWN_SUGGESTIONS,
            recoverable=True,
            retryable=True,
            context=context,
        )

    @staticmethod
    def error_stats(errors: Iterable[ClassifiedError]) -> ErrorStats:
        """Aggregate counts for monitoring."""
        by_category = {category: 0 for category in ErrorCategory}
        by_severity = {severity: 0 for severity in ErrorSeverity}
        total = recoverable = retryable = 0
        for error in errors:
            total += 1
            by_category[error.category] += 1
            by_severity[error.severity] += 1
            recoverable += error.recoverable
            retryable += error.retryable
        return ErrorStats(total, by_category, by_severity, recoverable, retryable)


def _describe(error: Any) -> tuple[str, str]:
    """Return (message, text matched against the rules)."""
    if error is None:
        return "No file provided", "No file provided"
    if isinstance(error, str):
        return error, error
    if isinstance(error, BaseException):
        try:
            message = str(error) or type(error).__name__
        except Exception:
            message = f"<unprintable {type(error).__name__}>"
        return message, f"{type(error).__name__}: {message}"
    try:
        message = str(error)
    except Exception:
        message = f"<unprintable {type(error).__name__}>"
    return message, message


def _merge_unique(first: Iterable[str], second: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys([*first, *second]))


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return str(value)
