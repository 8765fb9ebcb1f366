"""
Test ValueExtractor (extraction gateway)

Verifies key normalisation, null handling, albumin unit conversion and
failure modes with a mocked HuggingFace client and OCR engine.
"""

import json

import pytest

from pedibga.contracts import MeasurementField
from pedibga.core.value_extractor import ValueExtractor
from pedibga.errors import ExtractionError
from pedibga.utils.image_encoding import EncodedImage


class MockHFClient:
    """Mock HuggingFace client for testing"""

    def __init__(self, response=None, should_fail=False, loaded=True):
        self.response = response
        self.should_fail = should_fail
        self.loaded = loaded
        self.prompts = []

    def is_loaded(self):
        return self.loaded

    def generate_json(self, prompt, max_tokens, temperature):
        self.prompts.append(prompt)
        if self.should_fail:
            raise RuntimeError("CUDA out of memory")
        return self.response


class MockOCR:
    """Mock OCR engine"""

    def __init__(self, text="pH 7.21  pCO2 60 mmHg", error=None):
        self.text = text
        self.error = error
        self.calls = 0

    def image_to_text(self, encoded_image):
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


IMAGE = EncodedImage(mime_type="image/png", data="aGVsbG8=")


# ========== Initialization ==========

def test_requires_generate_json():
    with pytest.raises(TypeError, match="generate_json"):
        ValueExtractor(object())


def test_requires_loaded_model():
    with pytest.raises(RuntimeError, match="not loaded"):
        ValueExtractor(MockHFClient(loaded=False))


def test_requires_ocr_interface():
    with pytest.raises(TypeError, match="image_to_text"):
        ValueExtractor(MockHFClient(), ocr_engine=object())


# ========== Text extraction ==========

def test_extract_canonical_keys():
    client = MockHFClient(response=json.dumps({
        "pH": "7.21", "pCO2": "60", "pO2": None, "HCO3": "23.5",
        "BE": "-4", "Lactate": None, "Na": None, "K": None,
        "Cl": None, "Glucose": None, "Albumin": None,
    }))
    extractor = ValueExtractor(client)

    result = extractor.extract_from_text("pH 7.21 pCO2 60 HCO3 23.5 BE -4")

    assert result[MeasurementField.PH] == "7.21"
    assert result[MeasurementField.PCO2] == "60"
    assert result[MeasurementField.HCO3] == "23.5"
    assert result[MeasurementField.BE] == "-4"
    assert result[MeasurementField.PO2] is None
    assert "pH 7.21 pCO2 60" in client.prompts[0]


def test_extract_resolves_report_style_keys():
    client = MockHFClient(response='{"PaCO2": 45, "Bicarbonate": "22", "Base Excess": "-2.1", "Hb": "14"}')
    result = ValueExtractor(client).extract_from_text("...")

    assert result == {
        MeasurementField.PCO2: "45",
        MeasurementField.HCO3: "22",
        MeasurementField.BE: "-2.1",
    }


def test_null_markers_become_none():
    client = MockHFClient(response='{"pH": "7.40", "pCO2": "N/A", "HCO3": "", "BE": "null"}')
    result = ValueExtractor(client).extract_from_text("pH 7.40")

    assert result[MeasurementField.PH] == "7.40"
    assert result[MeasurementField.PCO2] is None
    assert result[MeasurementField.HCO3] is None
    assert result[MeasurementField.BE] is None


def test_first_non_null_alias_wins():
    client = MockHFClient(response='{"HCO3": null, "HCO3-": "19", "Bicarbonate": "25"}')
    result = ValueExtractor(client).extract_from_text("...")
    assert result[MeasurementField.HCO3] == "19"


@pytest.mark.parametrize("raw, expected", [
    ("35", "3.5"),
    ("42.0", "4.2"),
    ("3.8", "3.8"),
    ("low", "low"),
])
def test_albumin_g_per_l_converted(raw, expected):
    client = MockHFClient(response=json.dumps({"pH": "7.3", "Albumin": raw}))
    result = ValueExtractor(client).extract_from_text("...")
    assert result[MeasurementField.ALBUMIN] == expected


# ========== Failure modes ==========

def test_all_null_is_failure():
    client = MockHFClient(response='{"pH": null, "pCO2": null}')
    with pytest.raises(ExtractionError, match="No blood gas values"):
        ValueExtractor(client).extract_from_text("hello there")


def test_invalid_json_is_failure():
    client = MockHFClient(response="{invalid json")
    with pytest.raises(ExtractionError, match="Invalid JSON"):
        ValueExtractor(client).extract_from_text("pH 7.3")


def test_non_object_json_is_failure():
    client = MockHFClient(response='["7.3"]')
    with pytest.raises(ExtractionError, match="Expected JSON object"):
        ValueExtractor(client).extract_from_text("pH 7.3")


def test_generation_failure_is_wrapped():
    client = MockHFClient(should_fail=True)
    with pytest.raises(ExtractionError, match="Generation failed"):
        ValueExtractor(client).extract_from_text("pH 7.3")


def test_empty_text_never_reaches_model():
    client = MockHFClient(response='{"pH": "7.3"}')
    with pytest.raises(ExtractionError):
        ValueExtractor(client).extract_from_text("   ")
    assert client.prompts == []


# ========== Image extraction ==========

def test_image_goes_through_ocr_prompt():
    client = MockHFClient(response='{"pH": "7.21", "pCO2": "60"}')
    ocr = MockOCR()
    result = ValueExtractor(client, ocr_engine=ocr).extract_from_image(IMAGE)

    assert ocr.calls == 1
    assert result[MeasurementField.PH] == "7.21"
    assert "OCR output" in client.prompts[0]
    assert "pH 7.21  pCO2 60 mmHg" in client.prompts[0]


def test_image_without_ocr_engine():
    with pytest.raises(ExtractionError, match="no OCR engine"):
        ValueExtractor(MockHFClient()).extract_from_image(IMAGE)


def test_ocr_error_is_wrapped():
    ocr = MockOCR(error=OSError("tesseract is not installed"))
    with pytest.raises(ExtractionError, match="OCR failed"):
        ValueExtractor(MockHFClient(), ocr_engine=ocr).extract_from_image(IMAGE)


def test_ocr_blank_text():
    client = MockHFClient(response='{"pH": "7.3"}')
    with pytest.raises(ExtractionError, match="no text"):
        ValueExtractor(client, ocr_engine=MockOCR(text="  \n")).extract_from_image(IMAGE)
    assert client.prompts == []
