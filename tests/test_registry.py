"""Tests for strategy ranking and fallback chains."""

import pytest

from resume_extractor.classification import ErrorClassifier
from resume_extractor.config import ParserConfig
from resume_extractor.exceptions import NoCompatibleStrategyError
from resume_extractor.registry import StrategyRegistry, default_registry
from resume_extractor.strategies import PlainTextStrategy, StrategyKind
from tests.fakes import FakeConverter, FakePageExtractor, FakeRecognizer, FakeRenderer


@pytest.fixture
def registry():
    return default_registry(
        page_extractor=FakePageExtractor(),
        renderer=FakeRenderer(),
        recognizer=FakeRecognizer(),
        converter=FakeConverter(),
    )


@pytest.fixture
def classify():
    return ErrorClassifier().classify


def test_strategies_sorted_by_priority(registry):
    assert [s.id for s in registry.strategies] == ["pdf_text", "word_document", "plain_text", "ocr"]


def test_rank_pdf(registry, make_document):
    document = make_document(b"%PDF" + b"x" * 4096, "application/pdf", "resume.pdf")

    assert [s.id for s in registry.rank(document)] == ["pdf_text", "ocr"]
    assert registry.select_strategy(document).id == "pdf_text"


def test_rank_image(registry, make_document, png_bytes):
    document = make_document(png_bytes, "image/png", "scan.png")

    assert [s.id for s in registry.rank(document)] == ["ocr"]


def test_rank_is_stable_across_calls(registry, make_document):
    document = make_document(b"%PDF" + b"x" * 4096, "application/pdf", "resume.pdf")

    orders = {tuple(s.id for s in registry.rank(document)) for _ in range(5)}

    assert orders == {("pdf_text", "ocr")}


def test_rank_ties_broken_by_priority(make_document):
    class Other(PlainTextStrategy):
        kind = StrategyKind.OCR
        priority = 9

    registry = StrategyRegistry([PlainTextStrategy(), Other()])

    ranked = registry.rank(make_document(b"Jane Doe, Engineer", "text/plain", "cv.txt"))

    assert [s.priority for s in ranked] == [9, 3]


def test_no_compatible_strategy(registry, make_document):
    with pytest.raises(NoCompatibleStrategyError) as exc_info:
        registry.select_strategy(make_document(b"\x00\x01", "application/zip", "a.zip"))

    assert exc_info.value.error.code == "NO_COMPATIBLE_STRATEGY"
    assert not exc_info.value.error.recoverable


def test_no_compatible_strategy_uses_registry_classifier(make_document):
    class RecordingClassifier(ErrorClassifier):
        def __init__(self):
            super().__init__()
            self.messages = []

        def classify(self, error, context=None):
            self.messages.append(error)
            return super().classify(error, context)

    classifier = RecordingClassifier()
    registry = default_registry(
        page_extractor=FakePageExtractor(),
        renderer=FakeRenderer(),
        recognizer=FakeRecognizer(),
        converter=FakeConverter(),
        classifier=classifier,
    )

    with pytest.raises(NoCompatibleStrategyError):
        registry.select_strategy(make_document(b"\x00\x01", "application/zip", "a.zip"))

    assert registry.classifier is classifier
    assert classifier.messages[-1] == "No compatible parsing strategy found for file: a.zip"


def test_get_strategy(registry):
    assert registry.get_strategy("ocr").kind is StrategyKind.OCR
    assert registry.get_strategy(StrategyKind.PLAIN_TEXT).id == "plain_text"
    assert registry.get_strategy("excel") is None


def test_pdf_text_failure_falls_back_to_ocr(registry, make_document, classify):
    document = make_document(b"%PDF-1.4", "application/pdf", "scan.pdf")

    chain = registry.get_fallback_strategies(classify("No text extracted from file"), document)

    assert [s.id for s in chain] == ["ocr"]


def test_excluded_strategies_are_skipped(registry, make_document, classify):
    document = make_document(b"%PDF-1.4", "application/pdf", "scan.pdf")

    chain = registry.get_fallback_strategies(
        classify("No text extracted from file"), document, excluded=("pdf_text", "ocr")
    )

    assert chain == []


def test_word_failure_falls_back_to_plain_text(registry, make_document, classify):
    document = make_document(b"Jane", "application/msword", "cv.doc")

    chain = registry.get_fallback_strategies(classify("cv.doc is not a valid zip file"), document)

    assert [s.id for s in chain] == ["plain_text"]


def test_no_generic_ocr_after_ocr_failure(registry, make_document, classify, png_bytes):
    pdf = make_document(b"%PDF-1.4", "application/pdf", "scan.pdf")
    image = make_document(png_bytes, "image/png", "scan.png")

    assert registry.get_fallback_strategies(classify("Tesseract error: crash"), pdf) == []
    # images keep their own OCR rule
    assert [s.id for s in registry.get_fallback_strategies(classify("crash"), image)] == ["ocr"]


def test_validate_configuration(registry):
    assert registry.validate_configuration() == (True, [])


def test_validate_configuration_reports_problems():
    class Duplicate(PlainTextStrategy):
        kind = StrategyKind.WORD_DOCUMENT

    is_valid, problems = StrategyRegistry([PlainTextStrategy(), Duplicate()]).validate_configuration()

    assert not is_valid
    assert "Duplicate strategy priorities detected" in problems
    assert "Fallback strategy 'ocr' is not registered" in problems


def test_empty_registry_is_invalid():
    is_valid, problems = StrategyRegistry([]).validate_configuration()

    assert not is_valid
    assert "No parsing strategies configured" in problems


def test_registry_without_ocr():
    registry = default_registry(ParserConfig(enable_ocr=False), converter=FakeConverter())

    assert registry.get_strategy("ocr") is None
    assert all(rule.strategy is not StrategyKind.OCR for rule in registry.fallback_rules)
    assert registry.validate_configuration() == (True, [])
