"""Optical character recognition for images and scanned PDFs."""

import io
import re
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageEnhance, ImageSequence

from resume_extractor.classification import ErrorClassifier
from resume_extractor.config import EngineConfiguration, OCRConfig
from resume_extractor.confidence import ConfidenceScorer
from resume_extractor.engines import PyMuPDFPageRenderer, TesseractRecognizer
from resume_extractor.logger import Timer, get_logger
from resume_extractor.models import Document, ParseResult, ParseWarning, WarningKind
from resume_extractor.strategies.base import ParsingStrategy, ProgressCallback, StrategyKind

logger = get_logger(__name__)

UNUSABLE_TEXT_CHARS = 30
SHORT_TEXT_CHARS = 100

_ARTIFACT = re.compile(r"[|]{2,}|[0O]{3,}|[1l]{3,}|[@]{2,}|[^\x20-\x7E\n\r\t]")
_TOKEN = re.compile(r"\S+")
_NUMERIC_TOKEN = re.compile(r"[\d\s().+\-/,:%$#]+")
_ORDINAL = re.compile(r"^\d+(st|nd|rd|th)\W*$", re.IGNORECASE)
_PIPE_NEAR_LETTER = re.compile(r"(?<![A-Za-z])\|(?=[a-z]{2,})|(?<=[A-Z])\|(?=[A-Z])")
_ZERO_BETWEEN_LETTERS = re.compile(r"(?<=[A-Za-z])0(?=[A-Za-z])")
_ONE_BETWEEN_LETTERS = re.compile(r"(?<=[a-z])1(?=[a-z])")
_LEADING_ZERO = re.compile(r"^0(?=[a-z]{2,})")
_LEADING_ONE = re.compile(r"^1(?=[a-z]{2,})")
_WORD = re.compile(r"[A-Za-z]+")

# Words a doubled rn/vv confusion commonly damages in resumes
VOCABULARY = frozenset(
    """
    administration amazon assumed campaign claim climb coming command comment commerce
    committee common communicate communication communications community company compliance
    computer computing confirm customer customers design demand developed dimension domain
    email employment experimental firm form format formal former forms framework frameworks
    from frontend government human implement implementation implemented improve improved
    improvement information maintain maintained major manage managed management manager
    managing market marketing master maximum measure media member members mentor method
    methods metrics microsoft minimum mobile model models modern module modules monitor
    monitoring multiple name number performance perform performed platform platforms premium
    primary problem product program programming programs promoted room same schema smart
    some summary system systems team teams term time tools transform transformation welcome
    hardware knowledge network networks networking new news now overview review reviewed
    reviews software view wide will with within without work worked worker working works
    workflow workflows workshop world write writing written how know known low power show
    showed slow swift twitter web website week well were what when where which while who
    whom""".split()
)


@dataclass(frozen=True)
class PageRecognition:
    configuration: str
    text: str
    confidence: float


class OCRStrategy(ParsingStrategy):
    """Recognizes text in images and in rendered PDF pages.

    Each page is run through several engine configurations and the best
    attempt is kept; a clearly good attempt stops the search early.
    """

    kind = StrategyKind.OCR
    name = "OCR Text Recognition"
    priority = 4
    supported_types = (
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/gif",
        "image/bmp",
        "image/tiff",
        "image/webp",
    )
    expected_extensions = frozenset({"png", "jpg", "jpeg", "gif", "bmp", "tif", "tiff"})
    min_text_length = 50

    def __init__(
        self,
        recognizer=None,
        renderer=None,
        config: Optional[OCRConfig] = None,
        scorer: Optional[ConfidenceScorer] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        super().__init__(classifier)
        self.config = config or OCRConfig()
        self.recognizer = recognizer or TesseractRecognizer(self.config)
        self.renderer = renderer or PyMuPDFPageRenderer()
        self.scorer = scorer or ConfidenceScorer()

    def parse(self, document: Document, on_progress: Optional[ProgressCallback] = None) -> ParseResult:
        self._report(on_progress, 0, 100, "Preparing images for OCR")

        with Timer("ocr") as timer:
            try:
                images, page_based = self._load_images(document)
            except Exception as exc:
                logger.warning(
                    "Could not prepare document for OCR",
                    extra_data={
                        "file_name": document.filename,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                return self._failure(document, exc, timer.get_elapsed_ms(), ocr_used=True)

            page_results: list[Optional[PageRecognition]] = []
            last_error: Optional[Exception] = None
            for index, image in enumerate(images, 1):
                best, error = self._recognize_page(self._prepare(image), page_based)
                page_results.append(best)
                last_error = error or last_error
                self._report(on_progress, int(90 * index / len(images)), 100,
                             f"Recognized page {index} of {len(images)}")

            recognized = [page for page in page_results if page is not None]
            page_count = len(images)
            if not recognized and last_error is not None:
                return self._failure(
                    document,
                    f"OCR failed: {type(last_error).__name__}: {last_error}",
                    timer.get_elapsed_ms(),
                    pages=page_count,
                    ocr_used=True,
                )

            content = correct_ocr_text(
                self.clean_text("\n\n".join(page.text for page in recognized if page.text))
            )
            engine_confidence = (
                sum(page.confidence for page in recognized) / len(recognized) if recognized else 0.0
            )
            analysis = self.scorer.analyze_confidence(
                content, engine_confidence, timer.get_elapsed_ms()
            )
            confidence, acceptable, warnings = self.assess_quality(
                content, engine_confidence, analysis.confidence
            )
            details = {
                "engine_confidence": round(engine_confidence, 1),
                "reliability": analysis.reliability,
                "recommendations": list(analysis.recommendations),
                "configurations": [page.configuration if page else None for page in page_results],
            }

            logger.info(
                "OCR completed",
                extra_data={
                    "file_name": document.filename,
                    "pages": page_count,
                    "characters_extracted": len(content),
                    "engine_confidence": round(engine_confidence, 1),
                    "confidence": confidence,
                    "ocr_time_ms": timer.get_elapsed_ms(),
                },
            )

            if not content:
                return self._failure(
                    document,
                    "OCR failed: no text recognized",
                    timer.get_elapsed_ms(),
                    warnings=warnings,
                    pages=page_count,
                    ocr_used=True,
                    details=details,
                )
            if not acceptable:
                if len(content) < self.min_text_length:
                    message = "OCR failed: recognized text is too short"
                else:
                    message = f"Low OCR confidence: quality score {confidence}/100"
                return self._failure(
                    document,
                    message,
                    timer.get_elapsed_ms(),
                    content=content,
                    confidence=confidence,
                    warnings=warnings,
                    diagnostic=(
                        f"Recognized {len(content)} characters from {page_count} pages "
                        f"with engine confidence {engine_confidence:.0f}"
                    ),
                    pages=page_count,
                    ocr_used=True,
                    details=details,
                )

        self._report(on_progress, 100, 100, "OCR complete")
        return self._result(
            document,
            content,
            confidence,
            timer.get_elapsed_ms(),
            warnings=warnings,
            pages=page_count,
            ocr_used=True,
            details=details,
        )

    def assess_quality(
        self, text: str, engine_confidence: float, confidence: int
    ) -> tuple[int, bool, list[ParseWarning]]:
        """Apply OCR-specific penalties to a scorer confidence.

        Returns:
            (confidence, acceptable, warnings)
        """
        warnings = []
        length = len(text)
        if length < UNUSABLE_TEXT_CHARS:
            return 0, False, warnings
        if length < SHORT_TEXT_CHARS:
            confidence = min(confidence, 30)

        if engine_confidence < 50:
            confidence = min(confidence, 40)
            warnings.append(
                ParseWarning(
                    kind=WarningKind.LOW_CONFIDENCE,
                    message=f"Low OCR engine confidence ({engine_confidence:.0f}%); verify the extracted text",
                    impact="high",
                )
            )

        if len(_ARTIFACT.findall(text)) / length > 0.02:
            confidence -= 20
            warnings.append(
                ParseWarning(
                    kind=WarningKind.QUALITY_CONCERNS,
                    message="Recognized text contains many OCR artifacts",
                    impact="medium",
                )
            )

        words = text.split()
        if words and sum(len(word) for word in words) / len(words) < 2.5:
            confidence -= 15

        confidence = max(0, min(confidence, 100))
        acceptable = confidence >= 40 and length >= self.min_text_length
        return confidence, acceptable, warnings

    def _load_images(self, document: Document) -> tuple[list[Image.Image], bool]:
        """Return (images, page_based)."""
        if "pdf" in (document.media_type or "").lower() or document.data.startswith(b"%PDF"):
            return self.renderer.render_pages(document.data, self.config.dpi), True

        image = Image.open(io.BytesIO(document.data))
        frames = [frame.copy() for frame in ImageSequence.Iterator(image)]
        return frames, len(frames) > 1

    def _prepare(self, image: Image.Image) -> Image.Image:
        if not self.config.enable_image_preprocessing:
            return image
        gray = image.convert("L")
        if self.config.contrast_enhancement == 1.0:
            return gray
        return ImageEnhance.Contrast(gray).enhance(self.config.contrast_enhancement)

    def _recognize_page(
        self, image: Image.Image, page_based: bool
    ) -> tuple[Optional[PageRecognition], Optional[Exception]]:
        """Try engine configurations in order; keep the longest text, then the most confident."""
        if page_based:
            good_length = self.config.page_excellent_text_length
            good_confidence = self.config.page_excellent_confidence
        else:
            good_length = self.config.excellent_text_length
            good_confidence = self.config.excellent_confidence

        best: Optional[PageRecognition] = None
        last_error: Optional[Exception] = None
        for configuration in self.config.engine_configurations:
            attempt = self._attempt(image, configuration)
            if isinstance(attempt, Exception):
                last_error = attempt
                continue

            if _is_better(attempt, best):
                best = attempt
            if len(attempt.text) > good_length and attempt.confidence > good_confidence:
                logger.debug(
                    "OCR early stop",
                    extra_data={"configuration": configuration.name, "characters": len(attempt.text)},
                )
                break

        return best, (None if best is not None else last_error)

    def _attempt(self, image: Image.Image, configuration: EngineConfiguration):
        try:
            recognition = self.recognizer.recognize(image, configuration, self.config.languages)
        except Exception as exc:
            logger.warning(
                "OCR engine configuration failed",
                extra_data={
                    "configuration": configuration.name,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return exc

        text = recognition.text.strip()
        return PageRecognition(
            configuration=configuration.name,
            text=text,
            confidence=recognition.confidence,
        )


def _is_better(attempt: PageRecognition, best: Optional[PageRecognition]) -> bool:
    if best is None or len(attempt.text) > len(best.text):
        return True
    # a confident read past the short-text floor beats a longer noisy one
    return len(attempt.text) > SHORT_TEXT_CHARS and attempt.confidence > best.confidence


def correct_ocr_text(text: str) -> str:
    """Fix common character confusions without touching emails, URLs or numbers."""
    return _TOKEN.sub(lambda match: _correct_token(match.group(0)), text)


def _correct_token(token: str) -> str:
    lowered = token.lower()
    if (
        "@" in token
        or "://" in token
        or lowered.startswith("www.")
        or _NUMERIC_TOKEN.fullmatch(token)
        or _ORDINAL.match(token)
        or sum(char.isdigit() for char in token) * 2 > len(token)
    ):
        return token

    token = _PIPE_NEAR_LETTER.sub("I", token)
    token = _ZERO_BETWEEN_LETTERS.sub(lambda m: _letter_o(token, m.start()), token)
    token = _ONE_BETWEEN_LETTERS.sub("l", token)
    token = _LEADING_ZERO.sub("O", token)
    token = _LEADING_ONE.sub("l", token)
    return _WORD.sub(lambda match: _correct_doubled(match.group(0)), token)


def _letter_o(token: str, index: int) -> str:
    following = token[index + 1] if index + 1 < len(token) else ""
    return "o" if following.islower() else "O"


def _correct_doubled(word: str) -> str:
    lowered = word.lower()
    if lowered in VOCABULARY:
        return word
    for wrong, right in (("rn", "m"), ("vv", "w")):
        if wrong in word:
            candidate = word.replace(wrong, right)
            if candidate.lower() in VOCABULARY:
                return candidate
    return word
