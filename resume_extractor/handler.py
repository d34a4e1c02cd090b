"""Upload handling: base64 payloads in, parse results out."""

import base64
import binascii
from typing import Optional

from resume_extractor.config import ParserConfig
from resume_extractor.detector import DocumentDetector
from resume_extractor.exceptions import InvalidBase64Error
from resume_extractor.logger import Timer, get_logger
from resume_extractor.models import Document, ParseResult
from resume_extractor.orchestrator import MultiStrategyParser

logger = get_logger(__name__)


class DocumentHandler:
    def __init__(
        self,
        parser: Optional[MultiStrategyParser] = None,
        detector: Optional[DocumentDetector] = None,
        config: Optional[ParserConfig] = None,
    ) -> None:
        """Initialize document handler.

        Args:
            parser: Multi-strategy parser. If None, creates default with config.
            detector: Document type detector. If None, creates default.
            config: Parser configuration. Only used if parser is None.
        """
        self.detector = detector or DocumentDetector()
        self.parser = parser or MultiStrategyParser(config=config)

    def decode_file(self, encoded: str) -> bytes:
        """Decode base64-encoded file.

        Args:
            encoded: Base64-encoded file content

        Returns:
            Decoded bytes

        Raises:
            InvalidBase64Error: If decoding fails
        """
        try:
            with Timer("base64_decode") as timer:
                decoded = base64.b64decode(encoded, validate=True)
        except (TypeError, ValueError, binascii.Error) as exc:
            logger.error(
                "Failed to decode base64 string",
                extra_data={
                    "error_type": type(exc).__name__,
                    "encoded_length": len(encoded) if encoded else 0,
                },
            )
            raise InvalidBase64Error("file_base64 must be a valid base64 string") from exc

        logger.debug(
            "Decoded base64 upload",
            extra_data={
                "decoded_size_bytes": len(decoded),
                "decode_time_ms": round(timer.get_elapsed_ms(), 2),
            },
        )
        return decoded

    def extract(self, encoded: str, mime_type: Optional[str], file_name: str) -> ParseResult:
        """Extract text from an encoded upload.

        Problems with the document itself are reported in the result;
        only a malformed payload raises.

        Args:
            encoded: Base64-encoded file content
            mime_type: Declared MIME type, may be empty
            file_name: Original filename

        Returns:
            ParseResult from the multi-strategy parser

        Raises:
            InvalidBase64Error: If base64 decoding fails
        """
        file_bytes = self.decode_file(encoded)

        media_type = self.detector.detect(
            file_bytes=file_bytes, mime_type=mime_type, file_name=file_name
        )
        document = Document(data=file_bytes, media_type=media_type, filename=file_name)
        return self.parser.parse(document)
