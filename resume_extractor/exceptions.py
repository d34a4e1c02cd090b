"""Custom exceptions for resume-extractor."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from resume_extractor.classification import ClassifiedError


class ResumeExtractorError(Exception):
    """Base exception for resume-extractor errors."""

    pass


class InvalidBase64Error(ResumeExtractorError):
    """Raised when base64 decoding of an upload fails."""

    pass


class ExtractionError(ResumeExtractorError):
    """Raised by an extraction engine when it cannot produce text."""

    pass


class DecodingError(ResumeExtractorError):
    """Raised when a text document cannot be decoded with any known encoding."""

    pass


class StrategyError(ResumeExtractorError):
    """Raised when a failure has already been classified."""

    def __init__(self, error: "ClassifiedError"):
        super().__init__(error.message)
        self.error = error


class NoCompatibleStrategyError(StrategyError):
    """Raised by the registry when no strategy can handle a document."""

    pass


class RecoveryNotApplicable(ResumeExtractorError):
    """Raised by a recovery strategy that does not apply to the failure at hand."""

    pass
