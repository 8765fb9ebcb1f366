"""
Acquisition mode controller - manual / image / text capture on the input step

Responsibilities:
- Switch the active capture mode and hold the paste buffer
- Raise and drop the extracting flag around gateway round trips
- Merge partial extraction results into the shared measurement record

Merge rule: a returned field overwrites the record only when it carries a
value. Absent, null and blank fields leave the record untouched, and a
failed extraction changes nothing but the busy flag and the error. After
a successful extraction the mode flips to manual so the user reviews the
values before analysis.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pedibga.contracts import (
    AcquisitionMode,
    MeasurementField,
    MeasurementRecord,
    OperationKind,
    SessionState,
    Step,
)
from pedibga.core.transitions import require_idle, require_pending, require_step
from pedibga.errors import IllegalTransition

logger = logging.getLogger(__name__)

EXTRACTION_KINDS = {OperationKind.IMAGE_EXTRACTION, OperationKind.TEXT_EXTRACTION}


def set_mode(state: SessionState, mode: AcquisitionMode) -> SessionState:
    require_step(state, "set_acquisition_mode", Step.INPUT)
    if not isinstance(mode, AcquisitionMode):
        raise IllegalTransition(f"Unknown acquisition mode: {mode!r}")
    return replace(state, acquisition=replace(state.acquisition, mode=mode))


def set_pasted_text(state: SessionState, text: str) -> SessionState:
    require_step(state, "set_pasted_text", Step.INPUT)
    if not isinstance(text, str):
        raise IllegalTransition(f"pasted text must be str, got {type(text).__name__}")
    return replace(state, acquisition=replace(state.acquisition, pasted_text=text))


def begin_extraction(state: SessionState, kind: OperationKind, token: str,
                     has_input: bool = True) -> Optional[SessionState]:
    """
    Raise the extracting flag for a new extraction.

    Args:
        state: Current snapshot
        kind: IMAGE_EXTRACTION or TEXT_EXTRACTION
        token: Ticket token for the round trip
        has_input: False when there is nothing to send (no file chosen)

    Returns:
        New snapshot, or None when the request is a no-op (no image, or a
        blank paste buffer for text extraction)

    Raises:
        IllegalTransition: wrong step or another operation in flight
    """
    require_step(state, kind.value, Step.INPUT)
    require_idle(state, kind.value)

    if kind not in EXTRACTION_KINDS:
        raise IllegalTransition(f"{kind.value} is not an extraction")

    if not has_input:
        return None
    if kind is OperationKind.TEXT_EXTRACTION and not state.acquisition.pasted_text.strip():
        return None

    return replace(state, extracting=True, error=None, pending_token=token)


def merge_extracted(record: MeasurementRecord,
                    partial: Mapping[Any, Any]) -> Tuple[MeasurementRecord, List[str]]:
    """
    Overlay extracted values onto the record.

    Keys may be MeasurementField members or their wire names ("pH",
    "pCO2", ...). Unknown keys are skipped. Values are coerced to text.
    None, booleans and blank strings are skipped, so a partial result can
    never clear a field.

    Returns:
        (new record, wire names of the fields actually written)
    """
    updates: Dict[MeasurementField, str] = {}
    for key, value in partial.items():
        try:
            measurement = MeasurementField(key)
        except ValueError:
            logger.warning(f"Ignoring unknown extracted field: {key!r}")
            continue
        if value is None or isinstance(value, bool):
            continue
        text = value if isinstance(value, str) else str(value)
        if not text.strip():
            continue
        updates[measurement] = text.strip()

    applied = [m.value for m in MeasurementField if m in updates]
    return record.with_values(updates), applied


def complete_extraction(state: SessionState, token: str,
                        partial: Mapping[Any, Any]) -> Tuple[SessionState, List[str]]:
    """Apply a successful extraction and switch to manual review"""
    require_pending(state, token)
    if not state.extracting:
        raise IllegalTransition(f"Operation {token} is not an extraction")

    measurements, applied = merge_extracted(state.measurements, partial)
    logger.info(f"Extraction merged {len(applied)} field(s): {applied}")

    new_state = replace(
        state,
        measurements=measurements,
        extracting=False,
        pending_token=None,
        acquisition=replace(state.acquisition, mode=AcquisitionMode.MANUAL),
    )
    return new_state, applied


def fail_extraction(state: SessionState, token: str, message: str) -> SessionState:
    """Drop the busy flag and surface message; record and mode untouched"""
    require_pending(state, token)
    if not state.extracting:
        raise IllegalTransition(f"Operation {token} is not an extraction")

    return replace(state, extracting=False, error=message, pending_token=None)
