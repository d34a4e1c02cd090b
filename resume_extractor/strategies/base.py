"""Shared behaviour of all parsing strategies."""

import re
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

from resume_extractor.classification import ClassifiedError, ErrorClassifier
from resume_extractor.models import (
    HIGH_CONFIDENCE,
    Document,
    ParseMetadata,
    ParseResult,
    ParseStatus,
    ParseWarning,
    WarningKind,
)

ProgressCallback = Callable[[int, int, str], None]

LARGE_FILE_BYTES = 10 * 1024 * 1024
SMALL_FILE_BYTES = 1024

_HORIZONTAL_SPACE = re.compile(r"[ \t\f\v\u00a0]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_LETTERS_THEN_DIGIT = re.compile(r"([a-z]{2,})(\d)")
_DIGIT_THEN_LETTERS = re.compile(r"(\d)([A-Za-z]{3,})")
_ORDINAL = re.compile(r"^\d+(st|nd|rd|th)\W*$", re.IGNORECASE)
_TOKEN_SKIP_CHARS = frozenset("@/:._")


class StrategyKind(str, Enum):
    """Closed set of extraction strategies; the value is the strategy id."""

    PDF_TEXT = "pdf_text"
    OCR = "ocr"
    WORD_DOCUMENT = "word_document"
    PLAIN_TEXT = "plain_text"


class ParsingStrategy:
    """One way of turning a document into text.

    Subclasses set the class attributes and implement ``parse``. The
    registry only ever talks to ``can_handle``, ``confidence_score`` and
    ``parse``.
    """

    kind: StrategyKind
    name: str
    priority: int
    supported_types: tuple[str, ...] = ()
    expected_extensions: frozenset[str] = frozenset()
    min_text_length: int = 10

    def __init__(self, classifier: Optional[ErrorClassifier] = None):
        self.classifier = classifier or ErrorClassifier()

    @property
    def id(self) -> str:
        return self.kind.value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} priority={self.priority}>"

    def can_handle(self, document: Document) -> bool:
        media_type = (document.media_type or "").lower()
        if any(supported in media_type for supported in self.supported_types):
            return True
        return document.extension in self.expected_extensions

    def confidence_score(self, document: Document) -> int:
        """How well this strategy fits the document, used only for ranking."""
        if not self.can_handle(document):
            return 0

        score = 50
        if (document.media_type or "").lower() in self.supported_types:
            score += 30
        if document.extension in self.expected_extensions:
            score += 20
        if document.size > LARGE_FILE_BYTES:
            score -= 10
        if document.size < SMALL_FILE_BYTES:
            score -= 20
        return max(0, min(score, 100))

    def parse(self, document: Document, on_progress: Optional[ProgressCallback] = None) -> ParseResult:
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "priority": self.priority,
            "supported_types": list(self.supported_types),
            "expected_extensions": sorted(self.expected_extensions),
        }

    def validate_extracted_text(
        self, text: str
    ) -> tuple[Optional[ClassifiedError], list[ParseWarning]]:
        """Check extracted text before it is returned.

        Returns:
            (error, warnings): error is set when nothing was extracted
        """
        stripped = text.strip()
        if not stripped:
            return self.classifier.classify("No text extracted from file", {"strategy": self.id}), []

        warnings = []
        if len(stripped) < self.min_text_length:
            warnings.append(
                ParseWarning(
                    kind=WarningKind.PARTIAL_EXTRACTION,
                    message=(
                        f"Extracted text is very short ({len(stripped)} characters); "
                        "the document may be incomplete"
                    ),
                    impact="high",
                )
            )
        return None, warnings

    @staticmethod
    def clean_text(text: str) -> str:
        """Normalize whitespace and separate run-together letters and digits.

        Line breaks are kept; tokens that look like emails, URLs, paths,
        versions or ordinals are left alone.
        """
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = []
        for line in text.split("\n"):
            line = _HORIZONTAL_SPACE.sub(" ", line).strip()
            lines.append(" ".join(_space_token(token) for token in line.split(" ")))
        return _EXCESS_NEWLINES.sub("\n\n", "\n".join(lines)).strip()

    def _result(
        self,
        document: Document,
        content: str,
        confidence: int,
        elapsed_ms: float,
        warnings: Sequence[ParseWarning] = (),
        pages: Optional[int] = None,
        ocr_used: bool = False,
        details: Optional[Mapping[str, Any]] = None,
    ) -> ParseResult:
        return ParseResult(
            success=True,
            content=content,
            confidence=max(0, min(int(round(confidence)), 100)),
            strategy_used=self.id,
            metadata=self._metadata(document, content, elapsed_ms, pages, ocr_used, details),
            warnings=tuple(warnings),
            status=ParseStatus.SUCCESS,
        )

    def _failure(
        self,
        document: Document,
        error: Union[BaseException, str, ClassifiedError],
        elapsed_ms: float,
        content: str = "",
        confidence: int = 0,
        warnings: Sequence[ParseWarning] = (),
        suggestions: Iterable[str] = (),
        diagnostic: Optional[str] = None,
        pages: Optional[int] = None,
        ocr_used: bool = False,
        details: Optional[Mapping[str, Any]] = None,
    ) -> ParseResult:
        """Classify a failure and wrap it in a failed result, keeping any content."""
        context = {"strategy": self.id, "file_name": document.filename}
        if diagnostic:
            context["diagnostic_info"] = diagnostic
        classified = self.classifier.classify(error, context).with_suggestions(suggestions)

        return ParseResult(
            success=False,
            content=content,
            confidence=max(0, min(int(round(confidence)), HIGH_CONFIDENCE - 1)),
            strategy_used=self.id,
            metadata=self._metadata(document, content, elapsed_ms, pages, ocr_used, details),
            errors=(classified,),
            warnings=tuple(warnings),
            status=ParseStatus.FAILURE,
        )

    @staticmethod
    def _metadata(document, content, elapsed_ms, pages, ocr_used, details) -> ParseMetadata:
        return ParseMetadata(
            file_size=document.size,
            file_type=document.media_type,
            processing_time_ms=elapsed_ms,
            ocr_used=ocr_used,
            text_length=len(content),
            pages_processed=pages,
            details=dict(details or {}),
        )

    @staticmethod
    def _report(on_progress: Optional[ProgressCallback], progress: int, total: int, status: str):
        if on_progress is not None:
            on_progress(progress, total, status)


def _space_token(token: str) -> str:
    if len(token) <= 4 or _TOKEN_SKIP_CHARS.intersection(token) or _ORDINAL.match(token):
        return token
    token = _LETTERS_THEN_DIGIT.sub(r"\1 \2", token)
    return _DIGIT_THEN_LETTERS.sub(r"\1 \2", token)
