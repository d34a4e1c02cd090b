"""Configuration classes for resume-extractor."""

from dataclasses import dataclass, field, replace
from typing import Any, Optional


@dataclass(frozen=True)
class EngineConfiguration:
    """One named Tesseract setup tried by the OCR strategy."""

    name: str
    oem: int
    psm: int
    description: str = ""
    options: dict[str, Any] = field(default_factory=dict)

    def tesseract_args(self) -> str:
        """Render the configuration as a Tesseract command-line fragment."""
        args = [f"--oem {self.oem}", f"--psm {self.psm}"]
        args.extend(f"-c {key}={value}" for key, value in self.options.items())
        return " ".join(args)


def default_engine_configurations() -> tuple[EngineConfiguration, ...]:
    return (
        EngineConfiguration(
            name="dense_text",
            oem=1,
            psm=3,
            description="LSTM engine, fully automatic page segmentation",
            options={"preserve_interword_spaces": 1},
        ),
        EngineConfiguration(
            name="uniform_block",
            oem=1,
            psm=6,
            description="LSTM engine, single uniform block of text",
            options={"preserve_interword_spaces": 1},
        ),
        EngineConfiguration(
            name="single_column",
            oem=1,
            psm=4,
            description="LSTM engine, single column of variable-size text",
            options={"preserve_interword_spaces": 1},
        ),
        EngineConfiguration(
            name="legacy_fallback",
            oem=0,
            psm=1,
            description="Legacy engine with orientation detection",
        ),
    )


@dataclass
class OCRConfig:
    """Configuration for OCR processing.

    Examples:
        >>> # Default configuration
        >>> config = OCRConfig()

        >>> # Faster processing with fewer engine configurations
        >>> config = OCRConfig(dpi=200, engine_configurations=default_engine_configurations()[:2])
    """

    tesseract_cmd: str = "tesseract"
    """Path to tesseract binary. Default: "tesseract" (assumes in PATH)."""

    tessdata_prefix: Optional[str] = None
    """Optional path to tessdata directory. If None, uses system default."""

    languages: str = "eng"
    """OCR languages in Tesseract format (e.g., "eng", "eng+fra")."""

    dpi: int = 300
    """Image DPI used when rendering PDF pages for recognition.

    Recommended values:
    - 200: Faster, acceptable quality for clean scans
    - 300: Default, good quality for resumes
    - 400: Small print or poor scans, roughly 2x memory
    """

    engine_configurations: tuple[EngineConfiguration, ...] = field(
        default_factory=default_engine_configurations
    )
    """Engine configurations tried in order on every page until one is clearly good."""

    excellent_text_length: int = 500
    """Single-image early stop: text longer than this..."""

    excellent_confidence: float = 80.0
    """...with engine confidence above this skips the remaining configurations."""

    page_excellent_text_length: int = 200
    """Page-based early stop (rendered PDF pages): minimum text length per page."""

    page_excellent_confidence: float = 70.0
    """Page-based early stop: minimum engine confidence per page."""

    min_text_length: int = 50
    """Recognized text shorter than this is flagged as very short."""

    enable_image_preprocessing: bool = True
    """Convert images to grayscale and enhance contrast before recognition."""

    contrast_enhancement: float = 1.2
    """Contrast enhancement factor for image preprocessing.

    - 1.0: No enhancement
    - 1.2: Default, 20% contrast boost (good for scanned documents)
    - 1.5: Strong enhancement (for poor quality scans)
    """


@dataclass
class PDFExtractionConfig:
    """Configuration for native PDF text extraction."""

    table_strategy: str = "lines_strict"
    """pymupdf4llm table detection strategy."""

    fontsize_limit: int = 3
    """Ignore text smaller than this many points."""

    force_text: bool = True
    """Extract text even when it overlaps images."""

    min_acceptable_confidence: int = 50
    """Results below this quality score are returned as failures with partial content."""

    min_acceptable_length: int = 200
    """Results shorter than this are returned as failures with partial content."""

    image_only_bytes_per_char: int = 10_000
    """File bytes per extracted character above which pages are assumed to be images."""


@dataclass
class ParserConfig:
    """Top-level configuration for the multi-strategy parser.

    The thresholds are hand-tuned defaults carried over from production use
    and have not been calibrated against a labelled corpus.
    """

    timeout_seconds: float = 120.0
    """Upper bound for a single strategy attempt."""

    accept_confidence: int = 70
    """A successful result at or above this confidence is accepted immediately."""

    retain_confidence: int = 40
    """A successful result at or above this confidence is kept as a candidate."""

    partial_content_min_chars: int = 50
    """A failed result with more content than this is kept for salvage."""

    max_retries: int = 3
    """Maximum recovery-driven attempts per strategy and document."""

    enable_recovery: bool = True
    """Consult the recovery manager after failed attempts."""

    enable_ocr: bool = True
    """Register the OCR strategy."""

    max_file_size_bytes: int = 50 * 1024 * 1024
    """Documents larger than this are rejected before any strategy runs."""

    fallback_encodings: tuple[str, ...] = ("cp1252", "latin-1")
    """Encodings tried by the plain-text strategy after UTF-8 fails."""

    ocr: OCRConfig = field(default_factory=OCRConfig)
    pdf: PDFExtractionConfig = field(default_factory=PDFExtractionConfig)

    @classmethod
    def preset(cls, name: str) -> "ParserConfig":
        """Build a named preset: fast, comprehensive, ocr_focused or production.

        Raises:
            ValueError: If the preset name is unknown
        """
        base = cls()
        if name == "fast":
            return replace(base, max_retries=1, timeout_seconds=30.0, enable_ocr=False)
        if name == "comprehensive":
            return replace(base, max_retries=5, timeout_seconds=120.0)
        if name == "ocr_focused":
            ocr = replace(
                base.ocr,
                dpi=400,
                engine_configurations=tuple(
                    sorted(base.ocr.engine_configurations, key=lambda c: c.psm != 6)
                ),
            )
            return replace(base, max_retries=2, timeout_seconds=90.0, ocr=ocr)
        if name == "production":
            return replace(base, max_retries=3, timeout_seconds=60.0)
        raise ValueError(f"Unknown configuration preset: {name}")
