"""Extraction engines: PyMuPDF4LLM page text, Tesseract OCR and Word conversion.

Each engine is a narrow adapter over a third-party library. Engines raise
``ExtractionError`` (or let the library's own exception through) and never
judge the quality of what they return; that is the strategies' job.
"""

import io
import os
import re
import shutil
import subprocess
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF
import pymupdf4llm
import pytesseract
from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from PIL import Image

from resume_extractor.config import EngineConfiguration, OCRConfig, PDFExtractionConfig
from resume_extractor.exceptions import ExtractionError
from resume_extractor.logger import Timer, get_logger

logger = get_logger(__name__)

OLE_SIGNATURE = b"\xd0\xcf\x11\xe0"
ZIP_SIGNATURE = b"PK"

_MARKDOWN_HEADING = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_MARKDOWN_EMPHASIS = re.compile(r"(\*\*|__|\*|`)(.+?)\1")
_MARKDOWN_RULE = re.compile(r"^-{3,}\s*$", re.MULTILINE)


@dataclass(frozen=True)
class PageText:
    number: int
    text: str


@dataclass(frozen=True)
class Recognition:
    text: str
    confidence: float


@dataclass(frozen=True)
class Conversion:
    text: str
    diagnostics: tuple[str, ...] = ()
    legacy_format: bool = False


def _open_pdf(data: bytes) -> "fitz.Document":
    try:
        document = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise ExtractionError(f"Invalid PDF: {exc}") from exc
    if document.needs_pass:
        document.close()
        raise ExtractionError("PDF is password protected")
    return document


class PyMuPDFPageExtractor:
    """Layout-aware per-page text extraction via PyMuPDF4LLM.

    Does NOT include OCR: scanned pages come back empty.
    """

    def __init__(self, config: Optional[PDFExtractionConfig] = None):
        self.config = config or PDFExtractionConfig()

    def extract_pages(self, data: bytes) -> list[PageText]:
        """Extract text from every page.

        Args:
            data: Raw PDF bytes

        Returns:
            One PageText per page, in page order

        Raises:
            ExtractionError: If the PDF cannot be opened or is password protected
        """
        document = _open_pdf(data)
        try:
            with Timer("pdf_native_extraction") as timer:
                chunks = pymupdf4llm.to_markdown(
                    document,
                    page_chunks=True,
                    table_strategy=self.config.table_strategy,
                    force_text=self.config.force_text,
                    write_images=False,
                    ignore_images=True,
                    fontsize_limit=self.config.fontsize_limit,
                )
            pages = [
                PageText(number=index + 1, text=_strip_markdown(chunk.get("text", "")))
                for index, chunk in enumerate(chunks)
            ]
        finally:
            document.close()

        logger.debug(
            "PDF native text extraction completed",
            extra_data={
                "page_count": len(pages),
                "characters_extracted": sum(len(page.text) for page in pages),
                "extraction_time_ms": timer.get_elapsed_ms(),
            },
        )
        return pages


class PyMuPDFPageRenderer:
    """Renders PDF pages to PIL images for recognition."""

    def render_pages(self, data: bytes, dpi: int) -> list[Image.Image]:
        document = _open_pdf(data)
        images = []
        try:
            for page in document:
                pix = page.get_pixmap(dpi=dpi)
                images.append(Image.open(io.BytesIO(pix.tobytes("png"))))
        finally:
            document.close()

        logger.debug("Rendered PDF pages", extra_data={"page_count": len(images), "dpi": dpi})
        return images


class TesseractRecognizer:
    """Tesseract OCR through pytesseract."""

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig()

        # Set Tesseract environment variables if provided
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
        if self.config.tessdata_prefix:
            os.environ["TESSDATA_PREFIX"] = self.config.tessdata_prefix

    def recognize(
        self, image: Image.Image, configuration: EngineConfiguration, languages: str
    ) -> Recognition:
        """Recognize text in one image with one engine configuration.

        Args:
            image: Page image
            configuration: Engine mode and segmentation settings
            languages: Tesseract language string, e.g. "eng+fra"

        Returns:
            Recognition with text rebuilt line by line and the mean word confidence

        Raises:
            pytesseract.TesseractNotFoundError: If the tesseract binary is missing
            pytesseract.TesseractError: If tesseract fails on the image
        """
        data = pytesseract.image_to_data(
            image,
            lang=languages,
            config=configuration.tesseract_args(),
            output_type=pytesseract.Output.DICT,
        )

        lines: dict[tuple[int, int, int], list[str]] = {}
        confidences = []
        for index, word in enumerate(data.get("text", [])):
            word = (word or "").strip()
            if not word:
                continue
            key = (data["block_num"][index], data["par_num"][index], data["line_num"][index])
            lines.setdefault(key, []).append(word)
            confidence = float(data["conf"][index])
            if confidence >= 0:
                confidences.append(confidence)

        text_lines = []
        previous_block = None
        for (block, _, _), words in lines.items():
            if previous_block is not None and block != previous_block:
                text_lines.append("")
            text_lines.append(" ".join(words))
            previous_block = block

        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return Recognition(text="\n".join(text_lines).strip(), confidence=confidence)


class WordDocumentConverter:
    """Word documents to plain text: python-docx for DOCX, system tools for .doc."""

    def convert(self, data: bytes, filename: str) -> Conversion:
        """Convert a Word document to text.

        Raises:
            ExtractionError: If the container is corrupt or no converter is available
        """
        if data.startswith(OLE_SIGNATURE):
            return Conversion(text=self._convert_doc(data, filename), legacy_format=True)
        if not data.startswith(ZIP_SIGNATURE):
            raise ExtractionError(
                f"{filename} is not a valid zip file or legacy Word container"
            )
        return self._convert_docx(data, filename)

    def _convert_docx(self, data: bytes, filename: str) -> Conversion:
        try:
            with Timer("docx_extraction") as timer:
                doc = Document(io.BytesIO(data))
        except (zipfile.BadZipFile, PackageNotFoundError, KeyError) as exc:
            raise ExtractionError(f"{filename} is not a valid zip file: {exc}") from exc

        paragraphs = [para.text.strip() for para in doc.paragraphs if para.text.strip()]

        # Tables (markdown format)
        tables = []
        for table in doc.tables:
            rows = []
            for i, row in enumerate(table.rows):
                cells = [cell.text.strip() for cell in row.cells]
                rows.append(" | ".join(cells))
                if i == 0:
                    rows.append(" | ".join(["---"] * len(cells)))
            if rows:
                tables.append("\n".join(rows))

        diagnostics = []
        image_count = len(doc.inline_shapes)
        if image_count:
            diagnostics.append(f"Skipped {image_count} embedded image(s)")

        result = "\n\n".join(paragraphs + tables)

        logger.debug(
            "DOCX extraction completed",
            extra_data={
                "file_name": filename,
                "paragraph_count": len(paragraphs),
                "table_count": len(tables),
                "characters_extracted": len(result),
                "extraction_time_ms": timer.get_elapsed_ms(),
            },
        )
        return Conversion(text=result, diagnostics=tuple(diagnostics))

    def _convert_doc(self, data: bytes, filename: str) -> str:
        """Extract text from legacy .doc using system converters if available."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir) / "source.doc"
            tmp_path.write_bytes(data)

            # Prefer macOS textutil if present
            if shutil.which("textutil"):
                result = subprocess.run(
                    ["textutil", "-convert", "txt", str(tmp_path), "-stdout"],
                    capture_output=True,
                    text=True,
                )
                if result.returncode == 0 and result.stdout.strip():
                    logger.info(
                        "DOC extraction completed via textutil",
                        extra_data={"file_name": filename, "characters": len(result.stdout)},
                    )
                    return result.stdout.strip()

            soffice = shutil.which("soffice") or shutil.which("libreoffice")
            if soffice:
                out_dir = Path(tmp_dir) / "out"
                conversion = subprocess.run(
                    [soffice, "--headless", "--convert-to", "txt:Text", str(tmp_path),
                     "--outdir", str(out_dir)],
                    capture_output=True,
                    text=True,
                )
                out_path = out_dir / "source.txt"
                if conversion.returncode == 0 and out_path.exists():
                    content = out_path.read_text(encoding="utf-8", errors="ignore").strip()
                    logger.info(
                        "DOC extraction completed via soffice",
                        extra_data={"file_name": filename, "characters": len(content)},
                    )
                    return content

        raise ExtractionError(
            "Failed to extract .doc file. Install textutil (macOS) or LibreOffice, "
            "or convert to DOCX."
        )


def _strip_markdown(text: str) -> str:
    text = _MARKDOWN_HEADING.sub("", text)
    text = _MARKDOWN_EMPHASIS.sub(r"\2", text)
    text = _MARKDOWN_RULE.sub("", text)
    return text.strip()
