"""
Integration tests with a real (tiny) HuggingFace model

Verifies the client and both gateways run end to end without crashing.
Output quality is not checked. Skipped when the model cannot be loaded.
Run with: pytest -m slow
"""

import pytest

from pedibga.contracts import INITIAL_STATE, MeasurementField, Scenario
from pedibga.core import transitions
from pedibga.core.report_generator import ReportGenerator
from pedibga.core.value_extractor import ValueExtractor
from pedibga.errors import ExtractionError, ReportError

TINY_MODEL = "sshleifer/tiny-gpt2"


@pytest.mark.slow
class TestHuggingFaceIntegration:

    @pytest.fixture(scope="class")
    def hf_client(self):
        try:
            from pedibga.utils.hf_client import HuggingFaceClient
            return HuggingFaceClient(model_name=TINY_MODEL, load_in_4bit=False, device="cpu")
        except Exception as e:
            pytest.skip(f"Could not load HF client: {e}")

    def test_model_info(self, hf_client):
        info = hf_client.get_model_info()
        assert info['is_loaded'] is True
        assert info['device'] == "cpu"

    def test_generate_returns_text(self, hf_client):
        result = hf_client.generate("pH 7.35", max_tokens=8, return_diagnostics=True)
        assert isinstance(result['text'], str)
        assert result['diagnostics']['prompt_tokens'] > 0

    def test_extractor_result_or_extraction_error(self, hf_client):
        extractor = ValueExtractor(hf_client, max_tokens=16)
        try:
            result = extractor.extract_from_text("pH 7.35, pCO2 45, HCO3 24")
        except ExtractionError:
            return
        assert all(isinstance(key, MeasurementField) for key in result)

    def test_report_generator_runs(self, hf_client):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.GENERAL)
        generator = ReportGenerator(hf_client, max_tokens=16)
        try:
            report = generator.generate_report(state)
        except ReportError:
            return
        assert report.strip() == report
