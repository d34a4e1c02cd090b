"""High-level API for resume text extraction."""

import mimetypes
from pathlib import Path
from typing import Optional

from resume_extractor.config import ParserConfig
from resume_extractor.detector import DocumentDetector
from resume_extractor.models import Document, ParseResult
from resume_extractor.orchestrator import MultiStrategyParser


def parse_document(
    file_path: Optional[str] = None,
    file_bytes: Optional[bytes] = None,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    config: Optional[ParserConfig] = None,
) -> ParseResult:
    """Parse a document and extract its text.

    High-level convenience function that accepts either a file path or raw bytes.

    Args:
        file_path: Path to document file (alternative to file_bytes)
        file_bytes: Raw document bytes (alternative to file_path)
        file_name: Original filename (required if using file_bytes)
        mime_type: MIME type hint (optional, will be detected if not provided)
        config: Parser configuration (optional, uses defaults if not provided)

    Returns:
        ParseResult with the extracted text, confidence and classified errors

    Raises:
        ValueError: If neither or both of file_path and file_bytes are provided,
            if the file does not exist, or if file_bytes is given without file_name

    Examples:
        >>> result = parse_document(file_path="resume.pdf")
        >>> print(result.status, result.confidence)

        >>> config = ParserConfig.preset("ocr_focused")
        >>> with open("scan.png", "rb") as f:
        ...     result = parse_document(file_bytes=f.read(), file_name="scan.png", config=config)
    """
    if file_path is not None and file_bytes is not None:
        raise ValueError("Provide either file_path or file_bytes, not both")

    if file_path is None and file_bytes is None:
        raise ValueError("Must provide either file_path or file_bytes")

    if file_path is not None:
        path = Path(file_path)
        if not path.is_file():
            raise ValueError(f"File not found: {file_path}")

        file_bytes = path.read_bytes()
        file_name = path.name

        if not mime_type:
            mime_type, _ = mimetypes.guess_type(str(path))

    if not file_name:
        raise ValueError("file_name is required when using file_bytes")

    media_type = DocumentDetector().detect(
        file_bytes=file_bytes, mime_type=mime_type, file_name=file_name
    )
    document = Document(data=file_bytes, media_type=media_type, filename=file_name)
    return MultiStrategyParser(config=config).parse(document)
