"""
Unit tests for the step machine (pedibga.core.transitions)

Pure functions, no mocks needed.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dataclasses import replace

import pytest

from pedibga.contracts import (
    INITIAL_STATE,
    AcquisitionMode,
    GeneralContext,
    GeneralField,
    MeasurementField,
    NeonatalContext,
    NeonatalField,
    Scenario,
    Step,
    empty_context,
)
from pedibga.core import acquisition, transitions
from pedibga.errors import IllegalTransition, ValidationError
from pedibga.utils.messages import REQUIRED_FIELDS_MESSAGE


def on_input(scenario=Scenario.GENERAL):
    state = transitions.select_scenario(INITIAL_STATE, scenario)
    return transitions.go_to_input(state)


def with_required(state, ph="7.35", pco2="40", hco3="24"):
    state = transitions.update_measurement(state, MeasurementField.PH, ph)
    state = transitions.update_measurement(state, MeasurementField.PCO2, pco2)
    return transitions.update_measurement(state, MeasurementField.HCO3, hco3)


class TestNavigation:

    def test_select_scenario_moves_to_details(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.NEONATAL_CORD)

        assert state.step is Step.DETAILS
        assert state.scenario is Scenario.NEONATAL_CORD
        assert isinstance(state.context, NeonatalContext)

    def test_select_scenario_only_on_scenario_step(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.GENERAL)

        with pytest.raises(IllegalTransition, match="select_scenario"):
            transitions.select_scenario(state, Scenario.NEONATAL_CORD)

    def test_reselecting_same_scenario_keeps_context(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.GENERAL)
        state = transitions.update_context_field(state, GeneralField.AGE, "3 years")
        state = transitions.go_back(state)

        state = transitions.select_scenario(state, Scenario.GENERAL)
        assert state.context.age == "3 years"

    def test_switching_scenario_starts_fresh_context(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.GENERAL)
        state = transitions.update_context_field(state, GeneralField.AGE, "3 years")
        state = transitions.go_back(state)

        state = transitions.select_scenario(state, Scenario.NEONATAL_CORD)
        assert isinstance(state.context, NeonatalContext)
        assert state.context.gestational_age == ""

    def test_go_back_keeps_data(self):
        state = on_input()
        state = transitions.update_measurement(state, MeasurementField.PH, "7.30")

        state = transitions.go_back(state)
        assert state.step is Step.DETAILS
        state = transitions.go_back(state)
        assert state.step is Step.SCENARIO
        assert state.measurements.get(MeasurementField.PH) == "7.30"

    def test_go_back_from_scenario_is_illegal(self):
        with pytest.raises(IllegalTransition):
            transitions.go_back(INITIAL_STATE)

    def test_navigation_clears_error(self):
        state = replace(on_input(), error="old error")
        assert transitions.go_back(state).error is None

    def test_reset_returns_initial_state(self):
        state = replace(on_input(), analyzing=True, pending_token="abc")
        assert transitions.reset(state) == INITIAL_STATE


class TestDataEntry:

    def test_context_field_must_match_scenario(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.GENERAL)

        with pytest.raises(IllegalTransition, match="does not belong"):
            transitions.update_context_field(state, NeonatalField.BIRTH_WEIGHT, "3200")

    def test_context_field_editable_on_input_step(self):
        state = transitions.update_context_field(on_input(), GeneralField.WEIGHT, "14")
        assert state.context.weight == "14"

    def test_context_field_not_on_scenario_step(self):
        with pytest.raises(IllegalTransition):
            transitions.update_context_field(INITIAL_STATE, GeneralField.AGE, "3")

    def test_bad_context_value_becomes_illegal_transition(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.NEONATAL_CORD)
        with pytest.raises(IllegalTransition):
            transitions.update_context_field(state, NeonatalField.DELAYED_CORD_CLAMPING, "perhaps")

    def test_measurement_only_on_input_step(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.GENERAL)
        with pytest.raises(IllegalTransition):
            transitions.update_measurement(state, MeasurementField.PH, "7.35")

    def test_measurement_stored_verbatim(self):
        state = transitions.update_measurement(on_input(), MeasurementField.BE, "-12.5 ")
        assert state.measurements.get(MeasurementField.BE) == "-12.5 "

    def test_measurement_sequence_last_write_wins(self):
        writes = [
            (MeasurementField.PH, "7.30"),
            (MeasurementField.NA, "138"),
            (MeasurementField.PH, "7.28"),
            (MeasurementField.LACTATE, "2.1"),
            (MeasurementField.NA, ""),
            (MeasurementField.LACTATE, "4.5"),
        ]
        state = on_input()
        for field, value in writes:
            state = transitions.update_measurement(state, field, value)

        expected = {MeasurementField.PH: "7.28", MeasurementField.NA: "", MeasurementField.LACTATE: "4.5"}
        for field in MeasurementField:
            assert state.measurements.get(field) == expected.get(field, ""), field

    def test_no_edits_while_analyzing(self):
        state = replace(on_input(), analyzing=True, pending_token="t1")

        with pytest.raises(IllegalTransition):
            transitions.update_measurement(state, MeasurementField.PH, "7.1")
        with pytest.raises(IllegalTransition):
            transitions.update_context_field(state, GeneralField.AGE, "2")


class TestAnalysis:

    def test_missing_required_fields(self):
        state = transitions.update_measurement(on_input(), MeasurementField.PH, "7.35")
        state = transitions.update_measurement(state, MeasurementField.PCO2, "   ")

        missing = transitions.missing_required_fields(state)
        assert missing == (MeasurementField.PCO2, MeasurementField.HCO3)

    def test_begin_analysis_validates(self):
        with pytest.raises(ValidationError) as exc_info:
            transitions.begin_analysis(on_input(), "t1")

        assert str(exc_info.value) == REQUIRED_FIELDS_MESSAGE
        assert exc_info.value.missing_fields == ("pH", "pCO2", "HCO3")

    def test_begin_analysis_sets_busy(self):
        state = transitions.begin_analysis(with_required(on_input()), "t1")

        assert state.analyzing
        assert state.pending_token == "t1"
        assert state.step is Step.INPUT

    def test_begin_analysis_rejected_while_busy(self):
        state = transitions.begin_analysis(with_required(on_input()), "t1")
        with pytest.raises(IllegalTransition, match="in progress"):
            transitions.begin_analysis(state, "t2")

    def test_complete_analysis(self):
        state = transitions.begin_analysis(with_required(on_input()), "t1")
        state = transitions.complete_analysis(state, "t1", "## 1. Diagnostic Conclusion")

        assert state.step is Step.ANALYSIS
        assert state.report == "## 1. Diagnostic Conclusion"
        assert not state.analyzing
        assert state.pending_token is None

    def test_fail_analysis_stays_on_input(self):
        state = transitions.begin_analysis(with_required(on_input()), "t1")
        state = transitions.fail_analysis(state, "t1", "failed")

        assert state.step is Step.INPUT
        assert state.error == "failed"
        assert state.report is None
        assert not state.analyzing

    def test_stale_token_rejected(self):
        state = transitions.begin_analysis(with_required(on_input()), "t1")
        with pytest.raises(IllegalTransition, match="Stale"):
            transitions.complete_analysis(state, "other", "report")

    def test_completion_after_reset_rejected(self):
        state = transitions.begin_analysis(with_required(on_input()), "t1")
        state = transitions.reset(state)
        with pytest.raises(IllegalTransition):
            transitions.complete_analysis(state, "t1", "report")

    def test_complete_analysis_requires_report_text(self):
        state = transitions.begin_analysis(with_required(on_input()), "t1")

        for report in (None, "", "   \n"):
            with pytest.raises(IllegalTransition, match="no report"):
                transitions.complete_analysis(state, "t1", report)
        assert state.analyzing


class TestReset:

    def test_reset_from_analysis_step(self):
        state = transitions.begin_analysis(with_required(on_input()), "t1")
        state = transitions.complete_analysis(state, "t1", "## Report")

        assert transitions.reset(state) == INITIAL_STATE

    def test_reset_from_text_mode_with_paste_buffer(self):
        state = acquisition.set_mode(on_input(), AcquisitionMode.TEXT_EXTRACT)
        state = acquisition.set_pasted_text(state, "pH 7.21 pCO2 60")

        assert transitions.reset(state) == INITIAL_STATE

    def test_reset_then_other_scenario_starts_empty(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.NEONATAL_CORD)
        state = transitions.update_context_field(state, NeonatalField.GESTATIONAL_AGE, "38+2")
        state = transitions.go_to_input(state)
        state = transitions.update_measurement(state, MeasurementField.PH, "7.01")

        state = transitions.reset(state)
        state = transitions.select_scenario(state, Scenario.GENERAL)

        assert isinstance(state.context, GeneralContext)
        assert state.context == empty_context(Scenario.GENERAL)
        assert state.measurements.get(MeasurementField.PH) == ""

    def test_reset_then_same_scenario_starts_empty(self):
        state = transitions.select_scenario(INITIAL_STATE, Scenario.GENERAL)
        state = transitions.update_context_field(state, GeneralField.AGE, "3 years")

        state = transitions.select_scenario(transitions.reset(state), Scenario.GENERAL)
        assert state.context.age == ""
