"""Resume text extraction with strategy fallback, error classification and recovery."""

from resume_extractor.classification import (
    ClassifiedError,
    ErrorCategory,
    ErrorClassifier,
    ErrorSeverity,
)
from resume_extractor.confidence import ConfidenceAnalysis, ConfidenceFactors, ConfidenceScorer
from resume_extractor.config import EngineConfiguration, OCRConfig, ParserConfig, PDFExtractionConfig
from resume_extractor.detector import DocumentDetector
from resume_extractor.error_log import ErrorLogger
from resume_extractor.exceptions import (
    DecodingError,
    ExtractionError,
    InvalidBase64Error,
    NoCompatibleStrategyError,
    RecoveryNotApplicable,
    ResumeExtractorError,
    StrategyError,
)
from resume_extractor.handler import DocumentHandler
from resume_extractor.models import (
    Document,
    ParseMetadata,
    ParseResult,
    ParseStatus,
    ParseWarning,
    StrategyAttempt,
    WarningKind,
)
from resume_extractor.orchestrator import MultiStrategyParser
from resume_extractor.parser import parse_document
from resume_extractor.recovery import RecoveryContext, RecoveryManager, RecoveryStrategy
from resume_extractor.registry import FallbackRule, StrategyRegistry, default_registry
from resume_extractor.strategies import (
    OCRStrategy,
    ParsingStrategy,
    PDFTextStrategy,
    PlainTextStrategy,
    StrategyKind,
    WordDocumentStrategy,
)

__version__ = "0.1.0"

__all__ = [
    # High-level API
    "parse_document",
    # Core classes
    "DocumentHandler",
    "DocumentDetector",
    "MultiStrategyParser",
    "StrategyRegistry",
    "FallbackRule",
    "default_registry",
    # Strategies
    "ParsingStrategy",
    "StrategyKind",
    "PDFTextStrategy",
    "OCRStrategy",
    "WordDocumentStrategy",
    "PlainTextStrategy",
    # Errors, confidence and recovery
    "ErrorClassifier",
    "ClassifiedError",
    "ErrorCategory",
    "ErrorSeverity",
    "ConfidenceScorer",
    "ConfidenceAnalysis",
    "ConfidenceFactors",
    "RecoveryManager",
    "RecoveryContext",
    "RecoveryStrategy",
    "ErrorLogger",
    # Data models
    "Document",
    "ParseResult",
    "ParseMetadata",
    "ParseStatus",
    "ParseWarning",
    "StrategyAttempt",
    "WarningKind",
    # Configuration
    "ParserConfig",
    "OCRConfig",
    "PDFExtractionConfig",
    "EngineConfiguration",
    # Exceptions
    "ResumeExtractorError",
    "InvalidBase64Error",
    "ExtractionError",
    "DecodingError",
    "StrategyError",
    "NoCompatibleStrategyError",
    "RecoveryNotApplicable",
]
