"""Native PDF text extraction."""

import re
from typing import Optional

from resume_extractor.classification import ErrorClassifier
from resume_extractor.config import PDFExtractionConfig
from resume_extractor.engines import PyMuPDFPageExtractor
from resume_extractor.logger import Timer, get_logger
from resume_extractor.models import Document, ParseResult, ParseWarning, WarningKind
from resume_extractor.strategies.base import ParsingStrategy, ProgressCallback, StrategyKind

logger = get_logger(__name__)

ARTIFACT_PATTERNS = (
    re.compile(r"[|]{3,}"),
    re.compile(r"[.]{5,}"),
    re.compile(r"[_]{5,}"),
    re.compile(r"\s[a-z]\s"),
)

SHORT_PAGE_CHARS = 10


class PDFTextStrategy(ParsingStrategy):
    """Reads the text layer of a PDF page by page.

    Scanned or image-only PDFs have little or no text layer; those results
    are returned as failures with whatever text was found, so that OCR can
    take over without losing it.
    """

    kind = StrategyKind.PDF_TEXT
    name = "PDF Text Extraction"
    priority = 1
    supported_types = ("application/pdf",)
    expected_extensions = frozenset({"pdf"})

    def __init__(
        self,
        extractor=None,
        config: Optional[PDFExtractionConfig] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        super().__init__(classifier)
        self.config = config or PDFExtractionConfig()
        self.extractor = extractor or PyMuPDFPageExtractor(self.config)

    def parse(self, document: Document, on_progress: Optional[ProgressCallback] = None) -> ParseResult:
        self._report(on_progress, 0, 100, "Loading PDF document")

        with Timer("pdf_text") as timer:
            try:
                pages = self.extractor.extract_pages(document.data)
            except Exception as exc:
                logger.warning(
                    "PDF text extraction failed",
                    extra_data={
                        "file_name": document.filename,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                return self._failure(document, exc, timer.get_elapsed_ms())

            warnings = []
            page_texts = []
            for index, page in enumerate(pages, 1):
                text = self.clean_text(page.text)
                if not text:
                    warnings.append(
                        ParseWarning(
                            kind=WarningKind.PARTIAL_EXTRACTION,
                            message=f"Page {page.number} contains no extractable text",
                            impact="medium",
                        )
                    )
                elif len(text) < SHORT_PAGE_CHARS:
                    warnings.append(
                        ParseWarning(
                            kind=WarningKind.QUALITY_CONCERNS,
                            message=f"Page {page.number} has very little text ({len(text)} characters)",
                            impact="low",
                        )
                    )
                if text:
                    page_texts.append(text)
                self._report(on_progress, int(90 * index / max(len(pages), 1)), 100,
                             f"Extracted page {index} of {len(pages)}")

            content = "\n\n".join(page_texts)
            page_count = len(pages)

            error, length_warnings = self.validate_extracted_text(content)
            if error is not None:
                return self._failure(
                    document,
                    error,
                    timer.get_elapsed_ms(),
                    warnings=warnings,
                    suggestions=["The PDF may contain scanned images - OCR will be attempted"],
                    diagnostic=f"Extracted 0 characters from {page_count} pages",
                    pages=page_count,
                )
            warnings.extend(length_warnings)

            quality = self.quality_score(content, document.size)
            details = {"quality_score": quality, "page_count": page_count}
            if not self.is_acceptable(quality, content):
                logger.info(
                    "PDF text layer below acceptability threshold",
                    extra_data={
                        "file_name": document.filename,
                        "characters": len(content),
                        "quality_score": quality,
                    },
                )
                return self._failure(
                    document,
                    "Insufficient text extracted from PDF",
                    timer.get_elapsed_ms(),
                    content=content,
                    confidence=quality,
                    warnings=warnings,
                    diagnostic=(
                        f"Extracted {len(content)} characters from {page_count} pages. "
                        f"Quality score: {quality}/100"
                    ),
                    pages=page_count,
                    details=details,
                )

            if document.size / len(content) > self.config.image_only_bytes_per_char:
                warnings.append(
                    ParseWarning(
                        kind=WarningKind.QUALITY_CONCERNS,
                        message="Document appears to be largely image-based; some text may be missing",
                        impact="medium",
                    )
                )

        self._report(on_progress, 100, 100, "PDF text extraction complete")
        return self._result(
            document,
            content,
            quality,
            timer.get_elapsed_ms(),
            warnings=warnings,
            pages=page_count,
            details=details,
        )

    def quality_score(self, text: str, file_size: int) -> int:
        """Score a text layer from its length, word shape, artifacts and density."""
        length = len(text)
        if length == 0:
            return 0

        score = 100
        if length < 50:
            score = 20
        elif length < 200:
            score = 40

        words = text.split()
        if words and sum(len(word) for word in words) / len(words) < 2:
            score -= 30

        artifacts = sum(len(pattern.findall(text)) for pattern in ARTIFACT_PATTERNS)
        if artifacts / length > 0.01:
            score -= 20

        # a large file with a thin text layer is mostly pictures
        if file_size / length > self.config.image_only_bytes_per_char:
            score -= 25

        return max(0, min(score, 100))

    def is_acceptable(self, quality: int, text: str) -> bool:
        return (
            quality >= self.config.min_acceptable_confidence
            and len(text) >= self.config.min_acceptable_length
        )
