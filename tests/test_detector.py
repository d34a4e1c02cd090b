import pytest

from resume_extractor.detector import DOC_MIME, DOCX_MIME, DocumentDetector


@pytest.fixture
def detector():
    return DocumentDetector()


def _bmp(size=32):
    return b"BM" + size.to_bytes(4, "little") + b"\x00" * (size - 6)


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"%PDF-1.7\n...", "application/pdf"),
        (b"PK\x03\x04rest", DOCX_MIME),
        (b"\xff\xd8\xff\xe0JFIF", "image/jpeg"),
        (b"GIF89a....", "image/gif"),
        (b"II*\x00....", "image/tiff"),
        (b"{\\rtf1\\ansi Jane}", "application/rtf"),
        (_bmp(), "image/bmp"),
    ],
)
def test_signature_wins_over_declared_type(detector, data, expected):
    assert detector.detect(data, "text/plain", "upload.bin") == expected


def test_png(detector, png_bytes):
    assert detector.detect(png_bytes, "", "scan") == "image/png"


def test_ole_container_needs_word_name(detector):
    ole = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64

    assert detector.detect(ole, "", "cv.doc") == DOC_MIME
    assert detector.detect(ole, "application/vnd.ms-excel", "sheet.xls") == "application/vnd.ms-excel"


def test_text_starting_with_bm_is_not_bitmap(detector):
    text = b"BMW service technician with ten years of experience"

    assert detector.detect(text, "text/plain", "cv.txt") == "text/plain"


def test_declared_type_kept_without_signature(detector):
    assert detector.detect(b"Jane Doe", "text/markdown", "cv.md") == "text/markdown"


def test_type_guessed_from_name(detector):
    assert detector.detect(b"Jane Doe", "", "cv.txt") == "text/plain"
    assert detector.detect(b"broken", "application/octet-stream", "cv.pdf") == "application/pdf"


def test_unknown_defaults_to_octet_stream(detector):
    assert detector.detect(b"", None, "") == "application/octet-stream"
    assert detector.detect(b"data", None, "blob") == "application/octet-stream"
