"""Document media type detection."""

import mimetypes
from typing import Optional

from resume_extractor.logger import get_logger

logger = get_logger(__name__)


PDF_SIGNATURE = b"%PDF"
ZIP_SIGNATURE = b"PK\x03\x04"
PNG_SIGNATURE = b"\x89PNG"
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0"  # Legacy Office container
JPEG_SIGNATURE = b"\xff\xd8\xff"
GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
BMP_SIGNATURE = b"BM"
TIFF_SIGNATURES = (b"II*\x00", b"MM\x00*")
RTF_SIGNATURE = b"{\\rtf"

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"
DEFAULT_MIME = "application/octet-stream"


class DocumentDetector:
    """Works out the media type of an upload.

    The file signature wins over the declared type, the declared type wins
    over the extension. Detection never rejects a document; whether a type is
    supported is decided by the strategy registry.
    """

    def detect(self, file_bytes: bytes, mime_type: Optional[str], file_name: str) -> str:
        original_mime_type = mime_type

        sniffed_type = self._sniff_mime(file_bytes or b"", file_name)
        if sniffed_type:
            mime_type = sniffed_type
        elif not mime_type or mime_type == DEFAULT_MIME:
            guessed, _ = mimetypes.guess_type(file_name or "")
            mime_type = guessed or DEFAULT_MIME

        logger.debug(
            "Document type detected",
            extra_data={
                "file_name": file_name,
                "final_mime_type": mime_type,
                "original_mime_type": original_mime_type,
                "mime_type_changed": mime_type != original_mime_type,
                "sniffed": sniffed_type is not None,
            },
        )
        return mime_type

    @staticmethod
    def _sniff_mime(file_bytes: bytes, file_name: str) -> Optional[str]:
        """Detect MIME type from file signature/magic bytes."""
        if file_bytes.startswith(PDF_SIGNATURE):
            return "application/pdf"
        if file_bytes.startswith(ZIP_SIGNATURE):
            # DOCX files are ZIP archives
            return DOCX_MIME
        if file_bytes.startswith(OLE_SIGNATURE):
            # Spreadsheets share the container; only claim it for Word names
            if (file_name or "").lower().endswith((".doc", ".dot")):
                return DOC_MIME
            return None
        if file_bytes.startswith(PNG_SIGNATURE):
            return "image/png"
        if file_bytes.startswith(JPEG_SIGNATURE):
            return "image/jpeg"
        if file_bytes.startswith(GIF_SIGNATURES):
            return "image/gif"
        if file_bytes.startswith(TIFF_SIGNATURES):
            return "image/tiff"
        if file_bytes.startswith(RTF_SIGNATURE):
            return "application/rtf"
        if file_bytes.startswith(BMP_SIGNATURE) and len(file_bytes) >= 14:
            # "BM" alone is too common at the start of plain text
            declared_size = int.from_bytes(file_bytes[2:6], "little")
            if declared_size == len(file_bytes):
                return "image/bmp"
        return None
