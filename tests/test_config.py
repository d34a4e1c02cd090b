import pytest

from resume_extractor.config import EngineConfiguration, ParserConfig


def test_defaults():
    config = ParserConfig()

    assert config.accept_confidence == 70
    assert config.retain_confidence == 40
    assert config.max_file_size_bytes == 50 * 1024 * 1024
    assert [c.name for c in config.ocr.engine_configurations] == [
        "dense_text",
        "uniform_block",
        "single_column",
        "legacy_fallback",
    ]


@pytest.mark.parametrize(
    "name, max_retries, timeout, enable_ocr",
    [
        ("fast", 1, 30.0, False),
        ("comprehensive", 5, 120.0, True),
        ("ocr_focused", 2, 90.0, True),
        ("production", 3, 60.0, True),
    ],
)
def test_presets(name, max_retries, timeout, enable_ocr):
    config = ParserConfig.preset(name)

    assert config.max_retries == max_retries
    assert config.timeout_seconds == timeout
    assert config.enable_ocr is enable_ocr


def test_ocr_focused_preset_prefers_uniform_block():
    config = ParserConfig.preset("ocr_focused")

    assert config.ocr.dpi == 400
    assert config.ocr.engine_configurations[0].psm == 6
    assert len(config.ocr.engine_configurations) == 4
    # the default instance is untouched
    assert ParserConfig().ocr.dpi == 300


def test_unknown_preset():
    with pytest.raises(ValueError, match="Unknown configuration preset: turbo"):
        ParserConfig.preset("turbo")


def test_tesseract_args():
    dense = EngineConfiguration("dense", oem=1, psm=3, options={"preserve_interword_spaces": 1})
    legacy = EngineConfiguration("legacy", oem=0, psm=1)

    assert dense.tesseract_args() == "--oem 1 --psm 3 -c preserve_interword_spaces=1"
    assert legacy.tesseract_args() == "--oem 0 --psm 1"
