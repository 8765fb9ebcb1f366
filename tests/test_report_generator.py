"""
Unit tests for ReportGenerator (report gateway)
"""

import pytest

from pedibga.contracts import INITIAL_STATE, MeasurementField, NeonatalField, Scenario
from pedibga.core.report_generator import ReportGenerator
from pedibga.core import transitions
from pedibga.errors import ReportError


class MockHFClient:
    """Mock HuggingFace client recording generate() calls"""

    def __init__(self, response="## 1. Diagnostic Conclusion\n...", error=None):
        self.response = response
        self.error = error
        self.calls = []

    def is_loaded(self):
        return True

    def generate(self, prompt, max_tokens, temperature, system_instruction=None):
        self.calls.append({
            'prompt': prompt,
            'max_tokens': max_tokens,
            'temperature': temperature,
            'system_instruction': system_instruction,
        })
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def neonatal_state():
    state = transitions.select_scenario(INITIAL_STATE, Scenario.NEONATAL_CORD)
    state = transitions.update_context_field(state, NeonatalField.APGAR_1, "3")
    state = transitions.go_to_input(state)
    state = transitions.update_measurement(state, MeasurementField.PH, "6.98")
    return state


class TestReportGenerator:

    def test_init_validates_client(self):
        with pytest.raises(TypeError, match="generate"):
            ReportGenerator(object())

    def test_report_is_stripped(self, neonatal_state):
        client = MockHFClient(response="\n\n## Report\n  ")
        assert ReportGenerator(client).generate_report(neonatal_state) == "## Report"

    def test_call_parameters(self, neonatal_state):
        client = MockHFClient()
        ReportGenerator(client, temperature=0.4, max_tokens=1024, language="English").generate_report(
            neonatal_state
        )

        call = client.calls[0]
        assert call['temperature'] == 0.4
        assert call['max_tokens'] == 1024
        assert "PediBGA" in call['system_instruction']
        assert "Language: English." in call['system_instruction']
        assert "SCENARIO: A (UABGA - Neonatal)" in call['prompt']
        assert '"apgar1": "3"' in call['prompt']
        assert '"pH": "6.98"' in call['prompt']

    def test_empty_report_is_failure(self, neonatal_state):
        with pytest.raises(ReportError, match="Empty report"):
            ReportGenerator(MockHFClient(response="   ")).generate_report(neonatal_state)

    def test_generation_error_is_wrapped(self, neonatal_state):
        client = MockHFClient(error=RuntimeError("CUDA out of memory"))
        with pytest.raises(ReportError, match="Generation failed"):
            ReportGenerator(client).generate_report(neonatal_state)

    def test_no_scenario_is_failure(self):
        client = MockHFClient()
        with pytest.raises(ReportError, match="scenario"):
            ReportGenerator(client).generate_report(INITIAL_STATE)
        assert client.calls == []
