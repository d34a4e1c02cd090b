import io

import pytest
from PIL import Image

from resume_extractor.config import ParserConfig
from resume_extractor.models import Document
from resume_extractor.orchestrator import MultiStrategyParser
from resume_extractor.recovery import RecoveryManager
from resume_extractor.registry import default_registry
from tests.fakes import FakeConverter, FakePageExtractor, FakeRecognizer, FakeRenderer

RESUME_TEXT = """Jane Doe
Senior Software Engineer
jane.doe@example.com | 555-123-4567 | linkedin.com/in/janedoe

Summary
Backend engineer with eight years of experience building data platforms and APIs for the retail and finance industries.

Experience
Acme Corp, Lead Engineer, Jan 2019 - Present
Designed the order processing pipeline and led a team of five engineers.
Initech, Software Engineer, 2015 - 2018
Built reporting services in Python and maintained the billing system for the sales team.

Education
University of Somewhere, BSc Computer Science, 2011 - 2015

Skills
Python, Go, PostgreSQL, Kafka, Docker, Kubernetes, Terraform, Airflow"""


@pytest.fixture
def resume_text():
    return RESUME_TEXT


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (64, 32), "white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_document():
    def _make(data, media_type="text/plain", filename="resume.txt"):
        return Document(data=data, media_type=media_type, filename=filename)

    return _make


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def recovery(sleeps):
    """Recovery manager whose retry delay records instead of sleeping."""
    return RecoveryManager(sleep=sleeps.append)


@pytest.fixture
def make_parser(recovery):
    def _make(
        config=None,
        page_extractor=None,
        renderer=None,
        recognizer=None,
        converter=None,
        registry=None,
    ):
        config = config or ParserConfig()
        registry = registry or default_registry(
            config,
            page_extractor=page_extractor or FakePageExtractor(),
            renderer=renderer or FakeRenderer(),
            recognizer=recognizer or FakeRecognizer(),
            converter=converter or FakeConverter(),
        )
        return MultiStrategyParser(registry=registry, recovery=recovery, config=config)

    return _make


@pytest.fixture
def page_image(png_bytes):
    return Image.open(io.BytesIO(png_bytes))
