"""Tests for error classification."""

import pytest

from resume_extractor.classification import (
    ClassifiedError,
    ErrorCategory,
    ErrorClassifier,
    ErrorSeverity,
)


@pytest.fixture
def classifier():
    return ErrorClassifier()


@pytest.mark.parametrize(
    "error, code, category",
    [
        (None, "NO_FILE", ErrorCategory.FILE_VALIDATION),
        ("File is empty (0 bytes)", "EMPTY_FILE", ErrorCategory.FILE_VALIDATION),
        ("File too large: exceeds maximum size of 50 MB", "FILE_TOO_LARGE", ErrorCategory.FILE_VALIDATION),
        ("PDF is password protected", "PASSWORD_PROTECTED", ErrorCategory.FILE_ACCESS),
        ("Invalid PDF: no objects found", "INVALID_PDF", ErrorCategory.PARSING_ENGINE),
        ("Invalid PDF: xref table truncated after 100 bytes", "INVALID_PDF", ErrorCategory.PARSING_ENGINE),
        ("No text extracted from file", "TEXT_EXTRACTION_FAILED", ErrorCategory.TEXT_EXTRACTION),
        ("Insufficient text extracted from PDF", "NO_TEXT_CONTENT", ErrorCategory.TEXT_EXTRACTION),
        ("No text content found in Word document", "EMPTY_DOCUMENT", ErrorCategory.CONTENT_VALIDATION),
        ("OCR failed: no text recognized", "OCR_FAILED", ErrorCategory.OCR_PROCESSING),
        ("Low OCR confidence: quality score 30/100", "LOW_OCR_CONFIDENCE", ErrorCategory.OCR_PROCESSING),
        ("cv.docx is not a valid zip file", "CORRUPT_DOCX", ErrorCategory.PARSING_ENGINE),
        ("Strategy ocr timed out after 120s", "PROCESSING_TIMEOUT", ErrorCategory.TIMEOUT),
        ("Configuration error: unknown preset", "CONFIG_ERROR", ErrorCategory.CONFIGURATION),
        ("something odd happened", "UNKNOWN_ERROR", ErrorCategory.UNKNOWN),
    ],
)
def test_classify_messages(classifier, error, code, category):
    classified = classifier.classify(error)

    assert classified.code == code
    assert classified.category is category
    assert classified.suggestions


def test_exceptions_match_on_type_name(classifier):
    classified = classifier.classify(MemoryError())

    assert classified.code == "MEMORY_ERROR"
    assert classified.message == "MemoryError"
    assert classified.context["exception_type"] == "MemoryError"


def test_connection_errors_are_retryable(classifier):
    classified = classifier.classify(ConnectionError("connection refused"), {"strategy": "ocr"})

    assert classified.code == "NETWORK_ERROR"
    assert classified.retryable
    assert classified.context["strategy"] == "ocr"


def test_arbitrary_objects(classifier):
    class Unprintable:
        def __str__(self):
            raise RuntimeError("no")

    assert classifier.classify(42).code == "UNKNOWN_ERROR"
    assert classifier.classify(Unprintable()).message == "<unprintable Unprintable>"


def test_exception_with_failing_str(classifier):
    class BrokenError(Exception):
        def __str__(self):
            raise RuntimeError("no")

    classified = classifier.classify(BrokenError())

    assert classified.message == "<unprintable BrokenError>"
    assert classified.code == "UNKNOWN_ERROR"
    assert classified.context["exception_type"] == "BrokenError"


def test_first_match_wins(classifier):
    # mentions both an empty file and a timeout
    assert classifier.classify("file is empty after upload timed out").code == "EMPTY_FILE"


def test_classified_error_passes_through(classifier):
    original = classifier.classify("Invalid PDF: eof")

    again = classifier.classify(original, {"strategy": "pdf_text"})

    assert again.code == "INVALID_PDF"
    assert again.context["strategy"] == "pdf_text"
    assert "strategy" not in original.context


def test_input_guard_errors_are_not_recoverable(classifier):
    for message in ("No file provided", "File is empty (0 bytes)", "File too large: 60 MB"):
        classified = classifier.classify(message)
        assert not classified.recoverable
        assert not classified.retryable


def test_critical_errors_cannot_be_recoverable():
    with pytest.raises(ValueError):
        ClassifiedError(
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            code="X",
            message="x",
            user_message="x",
            suggestions=("fix it",),
            recoverable=True,
            retryable=False,
        )


def test_suggestions_required():
    with pytest.raises(ValueError):
        ClassifiedError(
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.LOW,
            code="X",
            message="x",
            user_message="x",
            suggestions=(),
            recoverable=True,
            retryable=True,
        )


def test_with_suggestions_merges_unique(classifier):
    classified = classifier.classify("OCR failed: crash")

    merged = classified.with_suggestions(["Try again later", classified.suggestions[0]])

    assert merged.suggestions == classified.suggestions + ("Try again later",)
    assert merged is not classified


def test_to_dict_is_serializable(classifier):
    classified = classifier.classify(ValueError("bad"), {"pages": (1, 2), "category": ErrorCategory.UNKNOWN})

    data = classified.to_dict()

    assert data["code"] == "UNKNOWN_ERROR"
    assert data["context"]["pages"] == [1, 2]
    assert data["context"]["category"] == "UNKNOWN"
    assert data["severity"] == "MEDIUM"


def test_error_stats(classifier):
    errors = [
        classifier.classify("OCR failed: x"),
        classifier.classify("OCR failed: y"),
        classifier.classify("No file provided"),
    ]

    stats = classifier.error_stats(errors)

    assert stats.total_errors == 3
    assert stats.by_category[ErrorCategory.OCR_PROCESSING] == 2
    assert stats.by_severity[ErrorSeverity.HIGH] == 3
    assert stats.recoverable_count == 2
    assert stats.retryable_count == 2
