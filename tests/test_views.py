"""
Tests for the view projection (render_view)
"""

from dataclasses import replace

from pedibga.contracts import (
    INITIAL_STATE,
    AcquisitionMode,
    MeasurementField,
    NeonatalField,
    OperationKind,
    Scenario,
    Step,
)
from pedibga.core import acquisition, transitions
from pedibga.utils.messages import DISCLAIMER
from pedibga.views import render_view, step_indicator


def neonatal_input():
    state = transitions.select_scenario(INITIAL_STATE, Scenario.NEONATAL_CORD)
    return transitions.go_to_input(state)


class TestStepIndicator:

    def test_statuses(self):
        statuses = [item['status'] for item in step_indicator(Step.INPUT)]
        assert statuses == ["completed", "completed", "current", "upcoming"]

    def test_first_step(self):
        statuses = [item['status'] for item in step_indicator(Step.SCENARIO)]
        assert statuses == ["current", "upcoming", "upcoming", "upcoming"]


class TestRenderView:

    def test_scenario_page(self):
        view = render_view(INITIAL_STATE)

        assert view['step'] == "scenario"
        assert [card['id'] for card in view['page']['cards']] == ["A", "B"]
        assert not any(card['selected'] for card in view['page']['cards'])

    def test_details_page_uses_active_variant(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.NEONATAL_CORD)
        state = transitions.update_context_field(state, NeonatalField.GESTATIONAL_AGE, "38+2")

        page = render_view(state)['page']
        fields = {f['id']: f for f in page['fields']}

        assert page['scenario'] == "A"
        assert set(fields) == {f.value for f in NeonatalField}
        assert fields['gestationalAge']['value'] == "38+2"
        assert fields['sampleType']['value'] == "Umbilical Artery"
        assert fields['delayedCordClamping']['value'] is False
        assert fields['deliveryMode']['choices'][0] == {'value': "Natural", 'label': "Vaginal delivery"}

    def test_input_page_manual(self):
        state = transitions.update_measurement(neonatal_input(), MeasurementField.PH, "7.01")
        page = render_view(state)['page']

        fields = {f['id']: f for f in page['fields']}
        assert page['mode'] == "manual"
        assert fields['pH']['value'] == "7.01"
        assert fields['pH']['required'] is True
        assert fields['Lactate']['required'] is False
        assert fields['Albumin']['tooltip']
        assert page['actions']['analyze'] == {'label': "Generate report", 'disabled': False}

    def test_input_page_text_mode_busy(self):
        state = acquisition.set_mode(neonatal_input(), AcquisitionMode.TEXT_EXTRACT)
        state = acquisition.set_pasted_text(state, "pH 7.2")
        state = acquisition.begin_extraction(state, OperationKind.TEXT_EXTRACTION, "t1")

        view = render_view(state)
        page = view['page']

        assert view['busy'] == {'extracting': True, 'analyzing': False}
        assert page['paste']['label'] == "Parsing..."
        assert page['paste']['disabled'] is True
        assert page['paste']['text'] == "pH 7.2"
        assert page['actions']['analyze']['disabled'] is True
        assert page['actions']['back'] is False
        assert [tab['active'] for tab in page['tabs']] == [False, False, True]

    def test_input_page_image_mode(self):
        state = acquisition.set_mode(neonatal_input(), AcquisitionMode.IMAGE_EXTRACT)
        page = render_view(state)['page']
        assert page['upload'] == {'label': "Choose image", 'disabled': False}

    def test_analysis_page(self):
        state = replace(neonatal_input(), step=Step.ANALYSIS, report="## Report")
        page = render_view(state)['page']

        assert page['report'] == "## Report"
        assert page['disclaimer'] == DISCLAIMER

    def test_error_is_projected(self):
        state = transitions.replace_error(neonatal_input(), "boom")
        assert render_view(state)['error'] == "boom"

    def test_top_level_keys(self):
        view = render_view(INITIAL_STATE)
        assert set(view) == {'step', 'step_indicator', 'error', 'busy', 'page'}
