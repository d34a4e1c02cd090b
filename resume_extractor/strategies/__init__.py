"""Extraction strategies, one per kind of document."""

from resume_extractor.strategies.base import ParsingStrategy, ProgressCallback, StrategyKind
from resume_extractor.strategies.docx import WordDocumentStrategy
from resume_extractor.strategies.ocr import OCRStrategy
from resume_extractor.strategies.pdf import PDFTextStrategy
from resume_extractor.strategies.text import PlainTextStrategy

__all__ = [
    "ParsingStrategy",
    "ProgressCallback",
    "StrategyKind",
    "PDFTextStrategy",
    "OCRStrategy",
    "WordDocumentStrategy",
    "PlainTextStrategy",
]
