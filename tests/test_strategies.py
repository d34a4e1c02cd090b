"""Tests for the individual parsing strategies."""

import codecs

import pytest

from resume_extractor.engines import Recognition
from resume_extractor.exceptions import DecodingError, ExtractionError
from resume_extractor.models import ParseStatus, WarningKind
from resume_extractor.strategies import (
    OCRStrategy,
    ParsingStrategy,
    PDFTextStrategy,
    PlainTextStrategy,
    WordDocumentStrategy,
)
from resume_extractor.strategies.docx import clean_word_artifacts
from resume_extractor.strategies.ocr import correct_ocr_text
from resume_extractor.strategies.text import strip_rtf
from tests.fakes import FakeConverter, FakePageExtractor, FakeRecognizer, FakeRenderer


class TestCapability:
    def test_confidence_score_prefers_exact_match(self, make_document):
        pdf = make_document(b"%PDF" + b"x" * 2048, "application/pdf", "resume.pdf")

        assert PDFTextStrategy(extractor=FakePageExtractor()).confidence_score(pdf) == 100
        assert OCRStrategy(recognizer=FakeRecognizer()).confidence_score(pdf) == 80

    def test_confidence_score_small_and_unhandled(self, make_document):
        small = make_document(b"%PDF", "application/pdf", "resume.pdf")
        strategy = PDFTextStrategy(extractor=FakePageExtractor())

        assert strategy.confidence_score(small) == 80
        assert strategy.confidence_score(make_document(b"hello", "text/plain", "a.txt")) == 0

    def test_can_handle_by_extension(self, make_document):
        document = make_document(b"{\\rtf1 hi}", "", "resume.rtf")

        assert PlainTextStrategy().can_handle(document)
        assert not WordDocumentStrategy(converter=FakeConverter()).can_handle(document)

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Python3  developer\r\nsince 2019", "Python 3 developer\nsince 2019"),
            ("jane.doe2@mail.com", "jane.doe2@mail.com"),
            ("1st place", "1st place"),
            ("a\n\n\n\n\nb", "a\n\nb"),
            ("2019Berlin office", "2019 Berlin office"),
        ],
    )
    def test_clean_text(self, raw, expected):
        assert ParsingStrategy.clean_text(raw) == expected


class TestPDFTextStrategy:
    def test_text_layer(self, make_document, resume_text):
        strategy = PDFTextStrategy(extractor=FakePageExtractor(pages=[resume_text, "Page two"]))

        result = strategy.parse(make_document(b"%PDF-1.4", "application/pdf", "cv.pdf"))

        assert result.success
        assert result.confidence == 100
        assert result.metadata.pages_processed == 2
        assert result.metadata.details["quality_score"] == 100
        assert any("Page 2" in w.message for w in result.warnings)

    def test_empty_pages_suggest_ocr(self, make_document):
        strategy = PDFTextStrategy(extractor=FakePageExtractor(pages=["", ""]))

        result = strategy.parse(make_document(b"%PDF-1.4", "application/pdf", "scan.pdf"))

        assert result.status is ParseStatus.FAILURE
        assert result.errors[0].code == "TEXT_EXTRACTION_FAILED"
        assert any("OCR" in s for s in result.errors[0].suggestions)
        assert result.errors[0].diagnostic_info == "Extracted 0 characters from 2 pages"

    def test_short_text_returned_with_failure(self, make_document):
        strategy = PDFTextStrategy(extractor=FakePageExtractor(pages=["Jane Doe, Engineer"]))

        result = strategy.parse(make_document(b"%PDF-1.4", "application/pdf", "thin.pdf"))

        assert not result.success
        assert result.content == "Jane Doe, Engineer"
        assert result.confidence == 20
        assert result.errors[0].code == "NO_TEXT_CONTENT"

    def test_password_protected(self, make_document):
        strategy = PDFTextStrategy(
            extractor=FakePageExtractor(error=ExtractionError("PDF is password protected"))
        )

        result = strategy.parse(make_document(b"%PDF-1.4", "application/pdf", "locked.pdf"))

        assert result.errors[0].code == "PASSWORD_PROTECTED"
        assert result.errors[0].context["strategy"] == "pdf_text"

    def test_quality_penalizes_image_heavy_files(self, resume_text):
        strategy = PDFTextStrategy(extractor=FakePageExtractor())

        assert strategy.quality_score(resume_text, 100) == 100
        assert strategy.quality_score(resume_text, 100_000_000) == 75
        assert strategy.quality_score("", 100) == 0


class TestOCRStrategy:
    def test_image_recognition(self, make_document, png_bytes, resume_text):
        recognizer = FakeRecognizer(text=resume_text, confidence=92)
        strategy = OCRStrategy(recognizer=recognizer, renderer=FakeRenderer())

        result = strategy.parse(make_document(png_bytes, "image/png", "scan.png"))

        assert result.success
        assert result.confidence >= 70
        assert result.metadata.ocr_used
        assert result.metadata.details["reliability"] == "high"
        # clearly good text stops the configuration search
        assert recognizer.configurations == ["dense_text"]

    def test_best_configuration_wins(self, make_document, png_bytes, resume_text):
        recognizer = FakeRecognizer(
            by_configuration={
                "dense_text": Recognition(text="J4ne D0e", confidence=40),
                "uniform_block": Recognition(text=resume_text, confidence=75),
                "single_column": RuntimeError("crash"),
                "legacy_fallback": Recognition(text="", confidence=0),
            }
        )
        strategy = OCRStrategy(recognizer=recognizer)

        result = strategy.parse(make_document(png_bytes, "image/png", "scan.png"))

        assert result.success
        assert result.metadata.details["configurations"] == ["uniform_block"]
        assert len(recognizer.configurations) == 4

    def test_pdf_pages_are_rendered(self, make_document, page_image, resume_text):
        renderer = FakeRenderer(images=[page_image, page_image])
        strategy = OCRStrategy(
            recognizer=FakeRecognizer(text=resume_text, confidence=88), renderer=renderer
        )

        result = strategy.parse(make_document(b"%PDF-1.4", "application/pdf", "scan.pdf"))

        assert result.success
        assert result.metadata.pages_processed == 2
        assert renderer.dpis == [300]

    def test_engine_unavailable(self, make_document, png_bytes):
        error = RuntimeError("tesseract is not installed or it's not in your PATH")
        strategy = OCRStrategy(recognizer=FakeRecognizer(error=error))

        result = strategy.parse(make_document(png_bytes, "image/png", "scan.png"))

        assert not result.success
        assert result.errors[0].code == "OCR_ENGINE_UNAVAILABLE"

    def test_low_quality_keeps_text(self, make_document, png_bytes):
        text = "Jane Doe Software Engineer Python Developer Remote Worker"
        strategy = OCRStrategy(recognizer=FakeRecognizer(text=text, confidence=20))

        result = strategy.parse(make_document(png_bytes, "image/png", "blurry.png"))

        assert not result.success
        assert result.content == text
        assert result.confidence <= 30
        assert result.errors[0].code == "LOW_OCR_CONFIDENCE"

    def test_nothing_recognized(self, make_document, png_bytes):
        strategy = OCRStrategy(recognizer=FakeRecognizer(text="", confidence=0))

        result = strategy.parse(make_document(png_bytes, "image/png", "blank.png"))

        assert result.errors[0].code == "OCR_FAILED"

    def test_unreadable_image(self, make_document):
        strategy = OCRStrategy(recognizer=FakeRecognizer())

        result = strategy.parse(make_document(b"not an image", "image/png", "broken.png"))

        assert not result.success
        assert result.errors[0].code == "UNSUPPORTED_FORMAT"

    def test_assess_quality_low_engine_confidence(self, resume_text):
        strategy = OCRStrategy(recognizer=FakeRecognizer())

        confidence, acceptable, warnings = strategy.assess_quality(resume_text, 35, 90)

        assert confidence == 40
        assert acceptable
        assert warnings[0].kind is WarningKind.LOW_CONFIDENCE
        assert warnings[0].impact == "high"

    def test_assess_quality_unusable_text(self):
        strategy = OCRStrategy(recognizer=FakeRecognizer())

        assert strategy.assess_quality("tiny", 99, 99) == (0, False, [])

    def test_longer_text_beats_higher_engine_confidence(self, make_document, png_bytes, resume_text):
        long_text = (resume_text + "\n") * 2
        recognizer = FakeRecognizer(
            by_configuration={
                "dense_text": Recognition(text=long_text[:400], confidence=85),
                "uniform_block": Recognition(text=long_text[:900], confidence=55),
            }
        )
        strategy = OCRStrategy(recognizer=recognizer)

        result = strategy.parse(make_document(png_bytes, "image/png", "scan.png"))

        assert result.metadata.details["configurations"] == ["uniform_block"]
        assert result.metadata.details["engine_confidence"] == 55
        assert recognizer.configurations[:2] == ["dense_text", "uniform_block"]

    def test_confident_read_beats_longer_noise(self, make_document, png_bytes, resume_text):
        recognizer = FakeRecognizer(
            by_configuration={
                "dense_text": Recognition(text=resume_text + " ~~ ~~" * 40, confidence=30),
                "uniform_block": Recognition(text=resume_text, confidence=75),
            }
        )
        strategy = OCRStrategy(recognizer=recognizer)

        result = strategy.parse(make_document(png_bytes, "image/png", "scan.png"))

        assert result.metadata.details["configurations"] == ["uniform_block"]


class TestOCRCorrections:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("|nternational", "International"),
            ("C0mputer", "Computer"),
            ("Sa1es", "Sales"),
            ("0ffice", "Office"),
            ("rnanagement", "management"),
            ("vvork", "work"),
            ("Kubernetes", "Kubernetes"),
            ("Python|Java", "Python|Java"),
            ("jane0doe@mail.com", "jane0doe@mail.com"),
            ("555-0100", "555-0100"),
            ("2nd", "2nd"),
        ],
    )
    def test_corrections(self, raw, expected):
        assert correct_ocr_text(raw) == expected

    def test_line_structure_preserved(self):
        assert correct_ocr_text("C0de\n\nTearn lead") == "Code\n\nTeam lead"


class TestWordDocumentStrategy:
    def test_conversion(self, make_document):
        converter = FakeConverter(
            text="“Jane Doe”\n• Led the platform team – 2019\n•\tMentored engineers",
            diagnostics=("Skipped 1 embedded image(s)",),
        )

        result = WordDocumentStrategy(converter=converter).parse(
            make_document(b"PK\x03\x04", "application/msword", "cv.docx")
        )

        assert result.success
        assert result.content == '"Jane Doe"\n- Led the platform team - 2019\n- Mentored engineers'
        assert result.confidence == 90
        assert [w.kind for w in result.warnings] == [WarningKind.FORMAT_ISSUES]

    def test_legacy_document(self, make_document):
        converter = FakeConverter(text="Jane Doe, senior engineer with ten years", legacy_format=True)

        result = WordDocumentStrategy(converter=converter).parse(
            make_document(b"\xd0\xcf\x11\xe0", "application/msword", "cv.doc")
        )

        assert result.confidence == 85
        assert any("Legacy" in w.message for w in result.warnings)

    def test_empty_document(self, make_document):
        result = WordDocumentStrategy(converter=FakeConverter(text="  \n ")).parse(
            make_document(b"PK\x03\x04", "application/msword", "blank.docx")
        )

        assert not result.success
        assert result.errors[0].code == "EMPTY_DOCUMENT"

    def test_corrupt_container(self, make_document):
        converter = FakeConverter(error=ExtractionError("cv.docx is not a valid zip file: bad header"))

        result = WordDocumentStrategy(converter=converter).parse(
            make_document(b"PK\x03\x04", "application/msword", "cv.docx")
        )

        assert result.errors[0].code == "CORRUPT_DOCX"
        assert result.errors[0].context["exception_type"] == "ExtractionError"

    def test_clean_word_artifacts(self):
        assert clean_word_artifacts("\u2022 Python\fJava\u200b") == "- Python\nJava"


class TestPlainTextStrategy:
    def test_utf8(self, make_document):
        result = PlainTextStrategy().parse(make_document("José García, Engineer".encode()))

        assert result.success
        assert result.confidence == 100
        assert result.metadata.details["encoding"] == "utf-8"

    def test_cp1252_fallback(self, make_document):
        data = "José García, Senior Developer, Montréal".encode("cp1252")

        result = PlainTextStrategy().parse(make_document(data))

        assert result.content == "José García, Senior Developer, Montréal"
        assert result.confidence == 85
        assert result.metadata.details["encoding"] == "cp1252"
        assert result.warnings[0].kind is WarningKind.FORMAT_ISSUES

    def test_utf16_with_bom(self, make_document):
        data = codecs.BOM_UTF16_LE + "Jane Doe, Software Engineer".encode("utf-16-le")

        decoded = PlainTextStrategy().decode(data)

        assert decoded.encoding == "utf-16"
        assert decoded.text == "Jane Doe, Software Engineer"

    def test_binary_content_rejected(self, make_document):
        data = bytes(range(0x80, 0xA0)) * 8

        with pytest.raises(DecodingError):
            PlainTextStrategy().decode(data)

        result = PlainTextStrategy().parse(make_document(data))
        assert result.errors[0].code == "ENCODING_ERROR"

    def test_rtf(self, make_document):
        data = rb"{\rtf1\ansi{\fonttbl{\f0 Arial;}}\f0\pard Jane Doe\par Software Engineer\par Caf\'e9 owner\par}"

        result = PlainTextStrategy().parse(make_document(data, "application/rtf", "cv.rtf"))

        assert result.content == "Jane Doe\nSoftware Engineer\nCafé owner"
        assert result.confidence == 95
        assert result.metadata.details["rtf"]

    def test_short_text_warns(self, make_document):
        result = PlainTextStrategy().parse(make_document(b"Jane Doe"))

        assert result.success
        assert result.confidence == 60
        assert result.warnings[0].kind is WarningKind.PARTIAL_EXTRACTION

    def test_whitespace_only(self, make_document):
        result = PlainTextStrategy().parse(make_document(b"  \n\t "))

        assert not result.success
        assert result.errors[0].code == "TEXT_EXTRACTION_FAILED"


class TestStripRTF:
    def test_unicode_escape_skips_fallback(self):
        assert strip_rtf(r"{\rtf1\uc1 Caf\u233?\par}") == "Café"

    def test_ignored_destinations(self):
        rtf = r"{\rtf1{\*\generator Riched20;}{\info{\author X}}Body text\par}"
        assert strip_rtf(rtf) == "Body text"

    def test_escaped_braces(self):
        assert strip_rtf(r"{\rtf1 a \{b\} c}") == "a {b} c"

    def test_not_rtf(self):
        assert strip_rtf("plain") == "plain"
