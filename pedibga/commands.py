"""
Command types for SessionManager control flow.

Commands are the ONLY public interface to SessionManager.
The presentation layer never mutates SessionState; it issues commands
and renders whatever snapshot comes back.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from pedibga.contracts import (
    AcquisitionMode,
    ContextField,
    MeasurementField,
    OperationOutcome,
    Scenario,
)


@dataclass(frozen=True)
class SelectScenario:
    """
    Choose the clinical scenario.

    Legal only on the scenario step.
    Returns: CommandResult on the details step.
    """
    scenario: Scenario


@dataclass(frozen=True)
class GoToInput:
    """Advance from details to input. No validation."""
    pass


@dataclass(frozen=True)
class GoBack:
    """Step back one page (details -> scenario, input -> details)"""
    pass


@dataclass(frozen=True)
class UpdateContextField:
    """
    Write one patient-context field into the active variant.

    field must belong to the active scenario's field set.
    """
    field: ContextField
    value: Any


@dataclass(frozen=True)
class UpdateMeasurement:
    """Write one measurement verbatim (manual entry keystroke)"""
    field: MeasurementField
    value: str


@dataclass(frozen=True)
class SetAcquisitionMode:
    """Switch between manual, image and text capture on the input step"""
    mode: AcquisitionMode


@dataclass(frozen=True)
class SetPastedText:
    """Replace the paste buffer (does not trigger parsing)"""
    text: str


@dataclass(frozen=True)
class ExtractFromImage:
    """
    Start image recognition.

    image is the raw file content or a base64 data URL.
    Returns: PendingOperation, or CommandResult (no-op) for empty input.
    """
    image: Union[bytes, str]
    filename: Optional[str] = None


@dataclass(frozen=True)
class ExtractFromText:
    """
    Start parsing the paste buffer.

    Returns: PendingOperation, or CommandResult (no-op) when the buffer
    is blank.
    """
    pass


@dataclass(frozen=True)
class Analyze:
    """
    Validate required values and request the report.

    Returns: PendingOperation, or CommandResult carrying the validation
    message when pH, pCO2 or HCO3 is empty.
    """
    pass


@dataclass(frozen=True)
class Reset:
    """Discard the session and return to the initial snapshot"""
    pass


@dataclass(frozen=True)
class CompleteOperation:
    """
    Apply the outcome of a gateway round trip.

    Rejected as IllegalCommand when the outcome's ticket is stale.
    """
    outcome: OperationOutcome


# Command union type for type hints
Command = Union[
    SelectScenario,
    GoToInput,
    GoBack,
    UpdateContextField,
    UpdateMeasurement,
    SetAcquisitionMode,
    SetPastedText,
    ExtractFromImage,
    ExtractFromText,
    Analyze,
    Reset,
    CompleteOperation,
]
