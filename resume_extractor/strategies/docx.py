"""Word document extraction."""

import re
from typing import Optional

from resume_extractor.classification import ErrorClassifier
from resume_extractor.engines import WordDocumentConverter
from resume_extractor.logger import Timer, get_logger
from resume_extractor.models import Document, ParseResult, ParseWarning, WarningKind
from resume_extractor.strategies.base import ParsingStrategy, ProgressCallback, StrategyKind

logger = get_logger(__name__)

_REPLACEMENTS = str.maketrans(
    {
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u00a0": " ",
        "\u2013": "-",
        "\u2014": "-",
        "\u2022": "-",
        "\u25cf": "-",
        "\u25aa": "-",
        "\uf0b7": "-",  # Symbol-font bullet
        "\f": "\n",
        "\v": "\n",
        "\u200b": "",
    }
)
_BULLET_LINE = re.compile(r"^[ \t]*-[ \t]*", re.MULTILINE)


class WordDocumentStrategy(ParsingStrategy):
    kind = StrategyKind.WORD_DOCUMENT
    name = "Word Document Parser"
    priority = 2
    supported_types = (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/msword",
    )
    expected_extensions = frozenset({"docx", "doc"})
    min_text_length = 30

    def __init__(self, converter=None, classifier: Optional[ErrorClassifier] = None):
        super().__init__(classifier)
        self.converter = converter or WordDocumentConverter()

    def parse(self, document: Document, on_progress: Optional[ProgressCallback] = None) -> ParseResult:
        self._report(on_progress, 0, 100, "Converting Word document")

        with Timer("word_document") as timer:
            try:
                conversion = self.converter.convert(document.data, document.filename)
            except Exception as exc:
                logger.warning(
                    "Word document conversion failed",
                    extra_data={
                        "file_name": document.filename,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                return self._failure(document, exc, timer.get_elapsed_ms())

            self._report(on_progress, 70, 100, "Cleaning extracted text")
            content = self.clean_text(clean_word_artifacts(conversion.text))
            if not content:
                return self._failure(
                    document,
                    "No text content found in Word document",
                    timer.get_elapsed_ms(),
                    suggestions=["If the resume is a scanned image inside Word, export it as PDF"],
                )

            _, warnings = self.validate_extracted_text(content)
            warnings.extend(
                ParseWarning(kind=WarningKind.FORMAT_ISSUES, message=diagnostic, impact="low")
                for diagnostic in conversion.diagnostics
            )
            if conversion.legacy_format:
                warnings.append(
                    ParseWarning(
                        kind=WarningKind.FORMAT_ISSUES,
                        message="Legacy .doc format converted with a system tool; layout may be lost",
                        impact="low",
                    )
                )

            confidence = 95 - min(5 * len(conversion.diagnostics), 20)
            if conversion.legacy_format:
                confidence -= 10
            if len(content) < self.min_text_length:
                confidence -= 40

        self._report(on_progress, 100, 100, "Word document parsed")
        return self._result(
            document,
            content,
            confidence,
            timer.get_elapsed_ms(),
            warnings=warnings,
            details={"diagnostics": list(conversion.diagnostics), "legacy_format": conversion.legacy_format},
        )


def clean_word_artifacts(text: str) -> str:
    """Replace typographic characters and page breaks with plain equivalents."""
    text = text.translate(_REPLACEMENTS)
    return _BULLET_LINE.sub("- ", text)
