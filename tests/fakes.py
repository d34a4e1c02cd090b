"""In-memory stand-ins for the extraction engines."""

import threading

from resume_extractor.engines import Conversion, PageText, Recognition
from resume_extractor.strategies import PlainTextStrategy


class FakePageExtractor:
    def __init__(self, pages=(), error=None):
        self.pages = list(pages)
        self.error = error
        self.calls = 0

    def extract_pages(self, data):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [PageText(number=index + 1, text=text) for index, text in enumerate(self.pages)]


class FakeRenderer:
    def __init__(self, images=(), error=None):
        self.images = list(images)
        self.error = error
        self.dpis = []

    def render_pages(self, data, dpi):
        self.dpis.append(dpi)
        if self.error is not None:
            raise self.error
        return list(self.images)


class FakeRecognizer:
    """Returns the same recognition for every configuration unless told otherwise."""

    def __init__(self, text="", confidence=0.0, error=None, by_configuration=None):
        self.text = text
        self.confidence = confidence
        self.error = error
        self.by_configuration = by_configuration or {}
        self.configurations = []

    def recognize(self, image, configuration, languages):
        self.configurations.append(configuration.name)
        outcome = self.by_configuration.get(configuration.name)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is not None:
            return outcome
        if self.error is not None:
            raise self.error
        return Recognition(text=self.text, confidence=self.confidence)


class FakeConverter:
    def __init__(self, text="", diagnostics=(), legacy_format=False, error=None):
        self.conversion = Conversion(
            text=text, diagnostics=tuple(diagnostics), legacy_format=legacy_format
        )
        self.error = error

    def convert(self, data, filename):
        if self.error is not None:
            raise self.error
        return self.conversion


class FlakyTextStrategy(PlainTextStrategy):
    """Raises on the first ``failures`` calls, then parses normally."""

    def __init__(self, error, failures=1):
        super().__init__()
        self.error = error
        self.failures = failures
        self.calls = 0

    def parse(self, document, on_progress=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return super().parse(document, on_progress)


class BlockingTextStrategy(PlainTextStrategy):
    """Blocks until released, to exercise strategy timeouts."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def parse(self, document, on_progress=None):
        self.release.wait(5)
        return super().parse(document, on_progress)
