"""
Session transitions - pure step machine for the intake wizard

Responsibilities:
- Define every legal step transition (scenario -> details -> input -> analysis)
- Write patient context into the active scenario variant
- Write measurements verbatim
- Gate analysis on the required values and own its busy flag
- Reset to the initial snapshot

Design principles:
- Pure functions: SessionState in, new SessionState out
- Illegal transitions raise IllegalTransition (SessionManager turns them
  into IllegalCommand results); state is never partially applied
- The busy flag is authoritative: no new operation or step change while
  an extraction or analysis is in flight
- User-triggered step transitions clear the error
"""

import logging
from dataclasses import replace
from typing import Any, Tuple

from pedibga.contracts import (
    INITIAL_STATE,
    ContextField,
    MeasurementField,
    Scenario,
    SessionState,
    Step,
    empty_context,
)
from pedibga.errors import IllegalTransition, ValidationError
from pedibga.utils.field_mappings import REQUIRED_FOR_ANALYSIS
from pedibga.utils.messages import REQUIRED_FIELDS_MESSAGE

logger = logging.getLogger(__name__)

# Back navigation edges
PREVIOUS_STEP = {
    Step.DETAILS: Step.SCENARIO,
    Step.INPUT: Step.DETAILS,
}


# ==================== GUARDS ====================

def require_step(state: SessionState, action: str, *allowed: Step) -> None:
    """Raise IllegalTransition unless state.step is one of allowed"""
    if state.step not in allowed:
        expected = ", ".join(s.value for s in allowed)
        raise IllegalTransition(
            f"{action} not allowed on step '{state.step.value}' (expected: {expected})"
        )


def require_idle(state: SessionState, action: str) -> None:
    """Raise IllegalTransition while an extraction or analysis is in flight"""
    if state.extracting:
        raise IllegalTransition(f"{action} not allowed while extraction is in progress")
    if state.analyzing:
        raise IllegalTransition(f"{action} not allowed while analysis is in progress")


def require_pending(state: SessionState, token: str) -> None:
    """Raise IllegalTransition unless token matches the in-flight operation"""
    if state.pending_token is None or state.pending_token != token:
        raise IllegalTransition(
            f"Stale operation {token}: session is not waiting for it"
        )


# ==================== NAVIGATION ====================

def select_scenario(state: SessionState, scenario: Scenario) -> SessionState:
    """
    Choose the scenario and move to details.

    Legal only on the scenario step. Re-selecting the scenario already
    held (after going back) keeps its context; choosing the other one
    starts a fresh variant, so data never crosses scenarios.
    """
    require_step(state, "select_scenario", Step.SCENARIO)
    require_idle(state, "select_scenario")

    if not isinstance(scenario, Scenario):
        raise IllegalTransition(f"Unknown scenario: {scenario!r}")

    if state.scenario == scenario and state.context is not None:
        context = state.context
    else:
        context = empty_context(scenario)

    logger.info(f"Scenario selected: {scenario.value}")
    return replace(
        state,
        scenario=scenario,
        context=context,
        step=Step.DETAILS,
        error=None,
    )


def go_to_input(state: SessionState) -> SessionState:
    """Details -> input. Deliberately no validation: all context is optional."""
    require_step(state, "go_to_input", Step.DETAILS)
    require_idle(state, "go_to_input")
    return replace(state, step=Step.INPUT, error=None)


def go_back(state: SessionState) -> SessionState:
    """Step back one page without clearing any data"""
    require_step(state, "go_back", *PREVIOUS_STEP)
    require_idle(state, "go_back")
    return replace(state, step=PREVIOUS_STEP[state.step], error=None)


def reset(state: SessionState) -> SessionState:
    """
    Return to the initial snapshot from any step.

    Also drops any pending token, so a late gateway completion for the
    discarded session is rejected as stale.
    """
    if state.pending_token is not None:
        logger.info(f"Reset discards in-flight operation {state.pending_token}")
    return INITIAL_STATE


# ==================== DATA ENTRY ====================

def update_context_field(state: SessionState, field: ContextField, value: Any) -> SessionState:
    """
    Shallow-replace one field of the active context variant.

    The other scenario's variant does not exist in the session, so it
    cannot be touched. A field identifier from the wrong scenario is
    rejected.
    """
    require_step(state, "update_context_field", Step.DETAILS, Step.INPUT)
    if state.analyzing:
        raise IllegalTransition("update_context_field not allowed while analysis is in progress")

    context = state.context
    if context is None:
        raise IllegalTransition("update_context_field requires a selected scenario")

    if not isinstance(field, context.field_type):
        raise IllegalTransition(
            f"Field {getattr(field, 'value', field)!r} does not belong to "
            f"scenario {context.scenario.value}"
        )

    try:
        updated = context.with_value(field, value)
    except TypeError as e:
        raise IllegalTransition(str(e)) from e

    return replace(state, context=updated)


def update_measurement(state: SessionState, field: MeasurementField, value: str) -> SessionState:
    """Shallow-replace one measurement, stored verbatim"""
    require_step(state, "update_measurement", Step.INPUT)
    if state.analyzing:
        raise IllegalTransition("update_measurement not allowed while analysis is in progress")

    if not isinstance(field, MeasurementField):
        raise IllegalTransition(f"Unknown measurement field: {field!r}")

    try:
        measurements = state.measurements.with_value(field, value)
    except TypeError as e:
        raise IllegalTransition(str(e)) from e

    return replace(state, measurements=measurements)


# ==================== ANALYSIS ====================

def replace_error(state: SessionState, message: str) -> SessionState:
    """Set the visible error without any other change"""
    return replace(state, error=message)


def missing_required_fields(state: SessionState) -> Tuple[MeasurementField, ...]:
    """Required measurements that are empty or whitespace"""
    return tuple(
        f for f in REQUIRED_FOR_ANALYSIS
        if not state.measurements.get(f).strip()
    )


def begin_analysis(state: SessionState, token: str) -> SessionState:
    """
    Raise the analyzing flag for a new report request.

    Raises:
        IllegalTransition: wrong step or another operation in flight
        ValidationError: pH, pCO2 or HCO3 empty (no state change)
    """
    require_step(state, "analyze", Step.INPUT)
    require_idle(state, "analyze")

    missing = missing_required_fields(state)
    if missing:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE, [f.value for f in missing])

    return replace(state, analyzing=True, error=None, pending_token=token)


def complete_analysis(state: SessionState, token: str, report: str) -> SessionState:
    """Store the report and enter the terminal step"""
    require_pending(state, token)
    if not state.analyzing:
        raise IllegalTransition(f"Operation {token} is not an analysis")
    if not isinstance(report, str) or not report.strip():
        raise IllegalTransition(f"Operation {token} produced no report")

    logger.info("Report stored, entering analysis step")
    return replace(
        state,
        analyzing=False,
        report=report,
        step=Step.ANALYSIS,
        pending_token=None,
    )


def fail_analysis(state: SessionState, token: str, message: str) -> SessionState:
    """Drop the busy flag and surface message; step stays on input"""
    require_pending(state, token)
    if not state.analyzing:
        raise IllegalTransition(f"Operation {token} is not an analysis")

    return replace(state, analyzing=False, error=message, pending_token=None)
