"""Strategy registry: ranking candidates and building fallback chains."""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from resume_extractor.classification import ClassifiedError, ErrorClassifier
from resume_extractor.config import ParserConfig
from resume_extractor.confidence import ConfidenceScorer
from resume_extractor.exceptions import NoCompatibleStrategyError
from resume_extractor.logger import get_logger
from resume_extractor.models import Document
from resume_extractor.strategies import (
    OCRStrategy,
    ParsingStrategy,
    PDFTextStrategy,
    PlainTextStrategy,
    StrategyKind,
    WordDocumentStrategy,
)

logger = get_logger(__name__)

FallbackCondition = Callable[[ClassifiedError, Document], bool]

IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "bmp", "tif", "tiff", "webp"})


@dataclass(frozen=True)
class FallbackRule:
    """When ``condition`` holds for a failure, ``strategy`` is worth trying next."""

    name: str
    strategy: StrategyKind
    condition: FallbackCondition
    priority: int
    requires_can_handle: bool = True


def _is_pdf(document: Document) -> bool:
    return "pdf" in (document.media_type or "").lower() or document.extension == "pdf"


def _is_word(document: Document) -> bool:
    media_type = (document.media_type or "").lower()
    return "word" in media_type or document.extension in ("doc", "docx")


def _is_image(document: Document) -> bool:
    return (document.media_type or "").lower().startswith("image/") or document.extension in IMAGE_EXTENSIONS


def _mentions(error: ClassifiedError, *needles: str) -> bool:
    message = error.message.lower()
    return any(needle in message for needle in needles)


DEFAULT_FALLBACK_RULES: tuple[FallbackRule, ...] = (
    FallbackRule(
        name="pdf_to_ocr",
        strategy=StrategyKind.OCR,
        condition=lambda error, document: (
            _is_pdf(document) and _mentions(error, "text", "extract", "empty", "image-based")
        ),
        priority=100,
    ),
    FallbackRule(
        name="word_to_text",
        strategy=StrategyKind.PLAIN_TEXT,
        condition=lambda error, document: (
            _is_word(document) and _mentions(error, "corrupt", "format", "zip")
        ),
        priority=90,
        # mislabelled RTF or text saved as .doc
        requires_can_handle=False,
    ),
    FallbackRule(
        name="image_to_ocr",
        strategy=StrategyKind.OCR,
        condition=lambda error, document: _is_image(document),
        priority=80,
    ),
    FallbackRule(
        name="generic_ocr",
        strategy=StrategyKind.OCR,
        condition=lambda error, document: not _mentions(error, "ocr", "tesseract", "recognition"),
        priority=70,
    ),
)


class StrategyRegistry:
    """Immutable set of strategies plus the fallback rules between them."""

    def __init__(
        self,
        strategies: Iterable[ParsingStrategy],
        fallback_rules: Iterable[FallbackRule] = DEFAULT_FALLBACK_RULES,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.classifier = classifier or ErrorClassifier()
        self._strategies: tuple[ParsingStrategy, ...] = tuple(
            sorted(strategies, key=lambda strategy: strategy.priority)
        )
        self._by_kind = {strategy.kind: strategy for strategy in self._strategies}
        self.fallback_rules: tuple[FallbackRule, ...] = tuple(
            sorted(fallback_rules, key=lambda rule: rule.priority, reverse=True)
        )

    @property
    def strategies(self) -> tuple[ParsingStrategy, ...]:
        """Registered strategies, lowest priority number first."""
        return self._strategies

    def get_strategy(self, kind: "StrategyKind | str") -> Optional[ParsingStrategy]:
        try:
            return self._by_kind.get(StrategyKind(kind))
        except ValueError:
            return None

    def rank(self, document: Document) -> list[ParsingStrategy]:
        """Applicable strategies, best first: confidence desc, then priority desc."""
        scored = [
            (strategy.confidence_score(document), strategy)
            for strategy in self._strategies
            if strategy.can_handle(document)
        ]
        scored.sort(key=lambda item: (item[0], item[1].priority), reverse=True)
        return [strategy for _, strategy in scored]

    def select_strategy(self, document: Document) -> ParsingStrategy:
        """Return the best strategy for a document.

        Raises:
            NoCompatibleStrategyError: If no strategy can handle the document
        """
        ranked = self.rank(document)
        if not ranked:
            raise NoCompatibleStrategyError(
                self.classifier.classify(
                    f"No compatible parsing strategy found for file: {document.filename}",
                    {"media_type": document.media_type, "file_name": document.filename},
                )
            )
        logger.debug(
            "Selected strategy",
            extra_data={
                "file_name": document.filename,
                "strategy": ranked[0].id,
                "confidence": ranked[0].confidence_score(document),
            },
        )
        return ranked[0]

    def get_fallback_strategies(
        self,
        error: ClassifiedError,
        document: Document,
        excluded: Sequence[str] = (),
    ) -> list[ParsingStrategy]:
        """Strategies whose fallback rule matches the failure, highest rule priority first."""
        chain = []
        for rule in self.fallback_rules:
            strategy = self._by_kind.get(rule.strategy)
            if strategy is None or strategy.id in excluded or strategy in chain:
                continue
            if not rule.condition(error, document):
                continue
            if rule.requires_can_handle and not strategy.can_handle(document):
                continue
            chain.append(strategy)

        if chain:
            logger.debug(
                "Fallback strategies found",
                extra_data={"error_code": error.code, "fallbacks": [s.id for s in chain]},
            )
        return chain

    def validate_configuration(self) -> tuple[bool, list[str]]:
        problems = []
        if not self._strategies:
            problems.append("No parsing strategies configured")

        for rule in self.fallback_rules:
            if rule.strategy not in self._by_kind:
                problems.append(f"Fallback strategy '{rule.strategy.value}' is not registered")

        priorities = [strategy.priority for strategy in self._strategies]
        if len(priorities) != len(set(priorities)):
            problems.append("Duplicate strategy priorities detected")

        return not problems, problems


def default_registry(
    config: Optional[ParserConfig] = None,
    page_extractor=None,
    renderer=None,
    recognizer=None,
    converter=None,
    classifier: Optional[ErrorClassifier] = None,
    scorer: Optional[ConfidenceScorer] = None,
) -> StrategyRegistry:
    """Build the standard four strategies; engines may be swapped for tests."""
    config = config or ParserConfig()
    classifier = classifier or ErrorClassifier()

    strategies: list[ParsingStrategy] = [
        PDFTextStrategy(extractor=page_extractor, config=config.pdf, classifier=classifier),
        WordDocumentStrategy(converter=converter, classifier=classifier),
        PlainTextStrategy(fallback_encodings=config.fallback_encodings, classifier=classifier),
    ]
    fallback_rules = DEFAULT_FALLBACK_RULES
    if config.enable_ocr:
        strategies.append(
            OCRStrategy(
                recognizer=recognizer,
                renderer=renderer,
                config=config.ocr,
                scorer=scorer,
                classifier=classifier,
            )
        )
    else:
        fallback_rules = tuple(
            rule for rule in DEFAULT_FALLBACK_RULES if rule.strategy is not StrategyKind.OCR
        )

    return StrategyRegistry(strategies, fallback_rules, classifier=classifier)
