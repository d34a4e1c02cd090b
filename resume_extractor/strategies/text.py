"""Plain text and RTF extraction."""

import codecs
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from resume_extractor.classification import ErrorClassifier
from resume_extractor.exceptions import DecodingError
from resume_extractor.logger import Timer, get_logger
from resume_extractor.models import Document, ParseResult, ParseWarning, WarningKind
from resume_extractor.strategies.base import ParsingStrategy, ProgressCallback, StrategyKind

logger = get_logger(__name__)

MIN_PRINTABLE_RATIO = 0.7
GOOD_PRINTABLE_RATIO = 0.8

RTF_SIGNATURE = "{\\rtf"
# Groups whose content is never document text
_RTF_DESTINATIONS = frozenset(
    {
        "fonttbl", "colortbl", "stylesheet", "info", "pict", "header", "footer",
        "headerl", "headerr", "footerl", "footerr", "listtable", "listoverridetable",
        "revtbl", "rsidtbl", "generator", "xmlnstbl", "themedata", "colorschememapping",
        "latentstyles", "datastore", "object", "fldinst",
    }
)
_RTF_TOKEN = re.compile(
    r"\\([a-zA-Z]+)(-?\d+)? ?|\\'([0-9a-fA-F]{2})|\\([^a-zA-Z])|([{}])|[\r\n]+|([^\\{}\r\n]+)"
)
_RTF_BREAKS = {"par": "\n", "line": "\n", "sect": "\n\n", "page": "\n\n", "tab": "\t", "cell": " ", "row": "\n"}
_RTF_SYMBOLS = {
    "emdash": "-", "endash": "-", "bullet": "-", "lquote": "'", "rquote": "'",
    "ldblquote": '"', "rdblquote": '"', "emspace": " ", "enspace": " ",
}


@dataclass(frozen=True)
class DecodedText:
    text: str
    encoding: str
    printable_ratio: float
    fallback: bool = False
    lossy: bool = False


class PlainTextStrategy(ParsingStrategy):
    """Decodes text files, trying UTF-8 first and then fallback encodings."""

    kind = StrategyKind.PLAIN_TEXT
    name = "Plain Text Parser"
    priority = 3
    supported_types = ("text/plain", "text/rtf", "application/rtf", "text/markdown")
    expected_extensions = frozenset({"txt", "text", "rtf"})
    min_text_length = 20

    def __init__(
        self,
        fallback_encodings: Sequence[str] = ("cp1252", "latin-1"),
        classifier: Optional[ErrorClassifier] = None,
    ):
        super().__init__(classifier)
        self.fallback_encodings = tuple(fallback_encodings)

    def parse(self, document: Document, on_progress: Optional[ProgressCallback] = None) -> ParseResult:
        self._report(on_progress, 0, 100, "Decoding text")

        with Timer("plain_text") as timer:
            try:
                decoded = self.decode(document.data)
            except DecodingError as exc:
                return self._failure(document, exc, timer.get_elapsed_ms())

            warnings = []
            if decoded.lossy:
                warnings.append(
                    ParseWarning(
                        kind=WarningKind.FORMAT_ISSUES,
                        message="Text encoding could not be determined; some characters were replaced",
                        impact="medium",
                    )
                )
            elif decoded.fallback:
                warnings.append(
                    ParseWarning(
                        kind=WarningKind.FORMAT_ISSUES,
                        message=f"Text decoded as {decoded.encoding} instead of UTF-8",
                        impact="low",
                    )
                )

            text = decoded.text
            is_rtf = self._is_rtf(document, text)
            if is_rtf:
                self._report(on_progress, 40, 100, "Stripping RTF formatting")
                text = strip_rtf(text)

            content = self.clean_text(text)
            if not content:
                return self._failure(
                    document,
                    "No text extracted from file",
                    timer.get_elapsed_ms(),
                    warnings=warnings,
                )
            _, length_warnings = self.validate_extracted_text(content)
            warnings.extend(length_warnings)

            confidence = 100
            if decoded.fallback:
                confidence -= 15
            if decoded.printable_ratio < GOOD_PRINTABLE_RATIO:
                confidence -= 20
            if is_rtf:
                confidence -= 5
            if len(content) < self.min_text_length:
                confidence -= 40

        logger.debug(
            "Plain text decoded",
            extra_data={
                "file_name": document.filename,
                "encoding": decoded.encoding,
                "rtf": is_rtf,
                "characters": len(content),
            },
        )
        self._report(on_progress, 100, 100, "Text extraction complete")
        return self._result(
            document,
            content,
            confidence,
            timer.get_elapsed_ms(),
            warnings=warnings,
            details={"encoding": decoded.encoding, "rtf": is_rtf},
        )

    def decode(self, data: bytes) -> DecodedText:
        """Decode bytes: UTF-8, UTF-16 with a BOM, then the fallback encodings.

        A fallback encoding is accepted only if more than 70% of the decoded
        characters are printable. As a last resort UTF-8 is decoded with
        replacement characters.
        """
        try:
            text = data.decode("utf-8-sig")
            return DecodedText(text, "utf-8", printable_ratio(text))
        except UnicodeDecodeError:
            pass

        if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
            try:
                text = data.decode("utf-16")
                return DecodedText(text, "utf-16", printable_ratio(text))
            except UnicodeDecodeError:
                pass

        for encoding in self.fallback_encodings:
            try:
                text = data.decode(encoding)
            except (UnicodeDecodeError, LookupError):
                continue
            ratio = printable_ratio(text)
            if ratio > MIN_PRINTABLE_RATIO:
                return DecodedText(text, encoding, ratio, fallback=True)

        text = data.decode("utf-8", errors="replace")
        ratio = printable_ratio(text)
        if ratio <= MIN_PRINTABLE_RATIO:
            raise DecodingError("Unable to decode text file: content does not look like text")
        return DecodedText(text, "utf-8", ratio, fallback=True, lossy=True)

    @staticmethod
    def _is_rtf(document: Document, text: str) -> bool:
        return (
            "rtf" in (document.media_type or "").lower()
            or document.extension == "rtf"
            or text.lstrip().startswith(RTF_SIGNATURE)
        )


def printable_ratio(text: str) -> float:
    if not text:
        return 1.0
    printable = sum(
        1 for char in text if (char.isprintable() and char != "\ufffd") or char in "\t\n\r"
    )
    return printable / len(text)


def strip_rtf(rtf: str) -> str:
    """Extract the visible text of an RTF document.

    Destination groups (font and colour tables, stylesheets, ``{\\*...}``
    groups) are skipped; ``\\'hh`` and ``\\uN`` escapes are decoded.
    """
    if not rtf.lstrip().startswith(RTF_SIGNATURE):
        return rtf

    out = []
    stack = []
    skipping = False
    unicode_skip = 1
    pending_skip = 0  # fallback characters still to drop after \uN

    for match in _RTF_TOKEN.finditer(rtf):
        word, argument, hex_code, symbol, brace, text = match.groups()

        if brace == "{":
            stack.append((skipping, unicode_skip))
            continue
        if brace == "}":
            if stack:
                skipping, unicode_skip = stack.pop()
            continue

        if symbol is not None:
            if symbol == "*":
                skipping = True
            elif not skipping and symbol in "\\{}":
                out.append(symbol)
            elif not skipping and symbol == "~":
                out.append(" ")
            elif not skipping and symbol in "-_":
                out.append("-" if symbol == "_" else "")
            continue

        if word is not None:
            if word in _RTF_DESTINATIONS:
                skipping = True
            elif word == "uc" and argument is not None:
                unicode_skip = int(argument)
            elif word == "u" and argument is not None:
                if not skipping:
                    code = int(argument)
                    out.append(chr(code + 65536 if code < 0 else code))
                pending_skip = unicode_skip
            elif not skipping:
                if word in _RTF_BREAKS:
                    out.append(_RTF_BREAKS[word])
                elif word in _RTF_SYMBOLS:
                    out.append(_RTF_SYMBOLS[word])
            continue

        if hex_code is not None:
            if pending_skip:
                pending_skip -= 1
            elif not skipping:
                out.append(bytes([int(hex_code, 16)]).decode("cp1252", errors="replace"))
            continue

        if text is not None and not skipping:
            if pending_skip:
                dropped = min(pending_skip, len(text))
                text = text[dropped:]
                pending_skip -= dropped
            out.append(text)

    return "".join(out).strip()
