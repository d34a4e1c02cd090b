"""Data models for resume-extractor."""

import hashlib
import mimetypes
from dataclasses import asdict, dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Any, Mapping, Optional

from resume_extractor.classification import ClassifiedError

HIGH_CONFIDENCE = 70
"""Any result at or above this confidence must be a success."""


@dataclass(frozen=True)
class Document:
    """Immutable uploaded document."""

    data: bytes
    media_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """Lower-case extension without the dot ("" when missing)."""
        return Path(self.filename).suffix.lower().lstrip(".")

    @cached_property
    def identity(self) -> str:
        """Stable file identity: name plus a content digest prefix."""
        digest = hashlib.sha1(self.data).hexdigest()[:12]
        return f"{self.filename}:{digest}"

    @classmethod
    def from_path(cls, path: "str | Path", media_type: Optional[str] = None) -> "Document":
        """Read a document from disk, guessing the media type from the extension."""
        path = Path(path)
        if media_type is None:
            media_type, _ = mimetypes.guess_type(str(path))
        return cls(data=path.read_bytes(), media_type=media_type or "", filename=path.name)


class ParseStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILURE = "FAILURE"


class WarningKind(str, Enum):
    LOW_CONFIDENCE = "low_confidence"
    PARTIAL_EXTRACTION = "partial_extraction"
    FORMAT_ISSUES = "format_issues"
    QUALITY_CONCERNS = "quality_concerns"
    RECOVERY = "recovery"


@dataclass(frozen=True)
class ParseWarning:
    """Non-blocking issue noticed during extraction."""

    kind: WarningKind
    message: str
    impact: str = "medium"  # low | medium | high


@dataclass(frozen=True)
class StrategyAttempt:
    """One strategy run as seen by the orchestrator."""

    strategy: str
    success: bool
    confidence: int
    text_length: int
    processing_time_ms: float
    outcome: str  # accepted | retained | partial | failed | timeout | exception
    error_codes: tuple[str, ...] = ()


@dataclass(frozen=True)
class ParseMetadata:
    file_size: int
    file_type: str
    processing_time_ms: float
    ocr_used: bool = False
    text_length: int = 0
    pages_processed: Optional[int] = None
    strategies_tried: tuple[str, ...] = ()
    fallbacks_used: tuple[str, ...] = ()
    fallbacks_skipped: tuple[str, ...] = ()
    attempts: tuple[StrategyAttempt, ...] = ()
    note: str = ""
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of extracting text from one document.

    Results are immutable; orchestration wraps them with ``dataclasses.replace``.
    ``salvaged_content`` keeps text from failed attempts that was long enough
    to be useful, whatever the final status.
    """

    success: bool
    content: str
    confidence: int
    strategy_used: str
    metadata: ParseMetadata
    errors: tuple[ClassifiedError, ...] = ()
    warnings: tuple[ParseWarning, ...] = ()
    status: ParseStatus = ParseStatus.FAILURE
    salvaged_content: str = ""

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be within [0, 100], got {self.confidence}")
        if self.confidence >= HIGH_CONFIDENCE and not self.success:
            raise ValueError(
                f"failed result cannot carry confidence {self.confidence} >= {HIGH_CONFIDENCE}"
            )

    def user_feedback(self) -> dict[str, Any]:
        """The subset shown to end users: errors, warnings and confidence."""
        return {
            "errors": [
                {
                    "code": error.code,
                    "message": error.user_message,
                    "suggestions": list(error.suggestions),
                    "recoverable": error.recoverable,
                }
                for error in self.errors
            ],
            "warnings": [
                {"kind": warning.kind.value, "message": warning.message, "impact": warning.impact}
                for warning in self.warnings
            ],
            "confidence": self.confidence,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "content": self.content,
            "confidence": self.confidence,
            "strategy_used": self.strategy_used,
            "errors": [error.to_dict() for error in self.errors],
            "warnings": [
                {"kind": warning.kind.value, "message": warning.message, "impact": warning.impact}
                for warning in self.warnings
            ],
            "metadata": {**asdict(self.metadata), "details": dict(self.metadata.details)},
            "salvaged_content": self.salvaged_content,
        }
