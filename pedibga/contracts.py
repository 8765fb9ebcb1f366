"""
Semantic contracts for the PediBGA blood gas intake wizard.

This module defines the immutable data structures shared by the state
machine, the gateways and the presentation layer. They define shape and
field identity; they do not validate clinical content.

Design principles:
- Frozen dataclasses (every transition returns a new snapshot)
- Closed enums for every field identifier, mapped to attributes through
  explicit tables (no runtime string indexing into records)
- Context data is a tagged union addressed by Scenario
- No dependencies on other project modules

Contents:
- Scenario, Step, AcquisitionMode, OperationKind: state enums
- MeasurementField, NeonatalField, GeneralField: field identifiers
- MeasurementRecord: the eleven blood gas values, stored as entered text
- NeonatalContext / GeneralContext: ContextData variants
- AcquisitionState: input-step sub-state (active mode + paste buffer)
- OperationTicket / OperationOutcome: request/response task envelopes
- SessionState: aggregate root, INITIAL_STATE

Usage:
    from pedibga.contracts import SessionState, MeasurementField, INITIAL_STATE
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union


class Scenario(str, Enum):
    """Clinical scenario, chosen once per session"""
    NEONATAL_CORD = "A"  # UABGA: umbilical cord blood gas at birth
    GENERAL = "B"        # pediatric/neonatal arterial blood gas


class Step(str, Enum):
    """Wizard step"""
    SCENARIO = "scenario"
    DETAILS = "details"
    INPUT = "input"
    ANALYSIS = "analysis"


STEP_ORDER: Tuple[Step, ...] = (Step.SCENARIO, Step.DETAILS, Step.INPUT, Step.ANALYSIS)


class AcquisitionMode(str, Enum):
    """How measurements are being captured on the input step"""
    MANUAL = "manual"
    IMAGE_EXTRACT = "image_extract"
    TEXT_EXTRACT = "text_extract"


class OperationKind(str, Enum):
    """External round trips the session can have in flight"""
    IMAGE_EXTRACTION = "image_extraction"
    TEXT_EXTRACTION = "text_extraction"
    ANALYSIS = "analysis"


class MeasurementField(str, Enum):
    """Blood gas measurement identifiers (values are wire names)"""
    PH = "pH"
    PCO2 = "pCO2"
    PO2 = "pO2"
    HCO3 = "HCO3"
    BE = "BE"
    LACTATE = "Lactate"
    NA = "Na"
    K = "K"
    CL = "Cl"
    GLUCOSE = "Glucose"
    ALBUMIN = "Albumin"


class NeonatalField(str, Enum):
    """Scenario A context identifiers"""
    GESTATIONAL_AGE = "gestationalAge"
    BIRTH_WEIGHT = "birthWeight"
    APGAR_1 = "apgar1"
    APGAR_5 = "apgar5"
    APGAR_10 = "apgar10"
    SAMPLE_TYPE = "sampleType"
    DELIVERY_MODE = "deliveryMode"
    RISK_FACTORS = "riskFactors"
    SAMPLE_TIME = "sampleTime"
    DELAYED_CORD_CLAMPING = "delayedCordClamping"


class GeneralField(str, Enum):
    """Scenario B context identifiers"""
    AGE = "age"
    WEIGHT = "weight"
    DIAGNOSIS = "diagnosis"
    FIO2 = "fiO2"
    VENTILATION = "ventilation"
    SAMPLE_TYPE = "sampleType"
    ALBUMIN = "albumin"


ContextField = Union[NeonatalField, GeneralField]

# Field identifier -> dataclass attribute. Exhaustive over each enum.
MEASUREMENT_ATTRIBUTES: Dict[MeasurementField, str] = {
    MeasurementField.PH: "ph",
    MeasurementField.PCO2: "pco2",
    MeasurementField.PO2: "po2",
    MeasurementField.HCO3: "hco3",
    MeasurementField.BE: "be",
    MeasurementField.LACTATE: "lactate",
    MeasurementField.NA: "na",
    MeasurementField.K: "k",
    MeasurementField.CL: "cl",
    MeasurementField.GLUCOSE: "glucose",
    MeasurementField.ALBUMIN: "albumin",
}

NEONATAL_ATTRIBUTES: Dict[NeonatalField, str] = {
    NeonatalField.GESTATIONAL_AGE: "gestational_age",
    NeonatalField.BIRTH_WEIGHT: "birth_weight",
    NeonatalField.APGAR_1: "apgar_1",
    NeonatalField.APGAR_5: "apgar_5",
    NeonatalField.APGAR_10: "apgar_10",
    NeonatalField.SAMPLE_TYPE: "sample_type",
    NeonatalField.DELIVERY_MODE: "delivery_mode",
    NeonatalField.RISK_FACTORS: "risk_factors",
    NeonatalField.SAMPLE_TIME: "sample_time",
    NeonatalField.DELAYED_CORD_CLAMPING: "delayed_cord_clamping",
}

GENERAL_ATTRIBUTES: Dict[GeneralField, str] = {
    GeneralField.AGE: "age",
    GeneralField.WEIGHT: "weight",
    GeneralField.DIAGNOSIS: "diagnosis",
    GeneralField.FIO2: "fio2",
    GeneralField.VENTILATION: "ventilation",
    GeneralField.SAMPLE_TYPE: "sample_type",
    GeneralField.ALBUMIN: "albumin",
}

# Boolean normalization for flags arriving as text (form posts)
TRUE_VALUES = {'true', 'yes', 'y', '1', 't', 'on'}
FALSE_VALUES = {'false', 'no', 'n', '0', 'f', 'off'}


@dataclass(frozen=True)
class MeasurementRecord:
    """
    Blood gas values exactly as entered or extracted.

    Every field defaults to "" so input controls always render a value.
    Values are text, never parsed floats.
    """
    ph: str = ""
    pco2: str = ""
    po2: str = ""
    hco3: str = ""
    be: str = ""
    lactate: str = ""
    na: str = ""
    k: str = ""
    cl: str = ""
    glucose: str = ""
    albumin: str = ""

    def get(self, measurement: MeasurementField) -> str:
        return getattr(self, MEASUREMENT_ATTRIBUTES[measurement])

    def with_value(self, measurement: MeasurementField, value: str) -> "MeasurementRecord":
        """Return a copy with one field replaced verbatim"""
        if not isinstance(value, str):
            raise TypeError(f"measurement value must be str, got {type(value).__name__}")
        return replace(self, **{MEASUREMENT_ATTRIBUTES[measurement]: value})

    def with_values(self, values: Mapping[MeasurementField, str]) -> "MeasurementRecord":
        """Return a copy with several fields replaced; unnamed fields untouched"""
        updates = {}
        for measurement, value in values.items():
            if not isinstance(value, str):
                raise TypeError(
                    f"measurement value for {measurement.value} must be str, "
                    f"got {type(value).__name__}"
                )
            updates[MEASUREMENT_ATTRIBUTES[measurement]] = value
        return replace(self, **updates)

    def to_json(self) -> Dict[str, str]:
        return {m.value: self.get(m) for m in MeasurementField}


@dataclass(frozen=True)
class NeonatalContext:
    """Scenario A (UABGA) patient context"""
    scenario: ClassVar[Scenario] = Scenario.NEONATAL_CORD
    field_type: ClassVar[type] = NeonatalField
    attributes: ClassVar[Dict[NeonatalField, str]] = NEONATAL_ATTRIBUTES

    gestational_age: str = ""
    birth_weight: str = ""
    apgar_1: str = ""
    apgar_5: str = ""
    apgar_10: str = ""
    sample_type: str = ""
    delivery_mode: str = ""
    risk_factors: str = ""
    sample_time: str = ""
    delayed_cord_clamping: Optional[bool] = None

    def get(self, context_field: NeonatalField) -> Any:
        return getattr(self, self.attributes[context_field])

    def with_value(self, context_field: NeonatalField, value: Any) -> "NeonatalContext":
        if context_field is NeonatalField.DELAYED_CORD_CLAMPING:
            return replace(self, delayed_cord_clamping=_coerce_flag(value))
        return replace(self, **{self.attributes[context_field]: _coerce_text(value)})

    def to_json(self, include_empty: bool = True) -> Dict[str, Any]:
        return _context_json(self, include_empty)


@dataclass(frozen=True)
class GeneralContext:
    """Scenario B (general pediatric ABG) patient context"""
    scenario: ClassVar[Scenario] = Scenario.GENERAL
    field_type: ClassVar[type] = GeneralField
    attributes: ClassVar[Dict[GeneralField, str]] = GENERAL_ATTRIBUTES

    age: str = ""
    weight: str = ""
    diagnosis: str = ""
    fio2: str = ""
    ventilation: str = ""
    sample_type: str = ""
    albumin: str = ""

    def get(self, context_field: GeneralField) -> Any:
        return getattr(self, self.attributes[context_field])

    def with_value(self, context_field: GeneralField, value: Any) -> "GeneralContext":
        return replace(self, **{self.attributes[context_field]: _coerce_text(value)})

    def to_json(self, include_empty: bool = True) -> Dict[str, Any]:
        return _context_json(self, include_empty)


ContextData = Union[NeonatalContext, GeneralContext]

CONTEXT_VARIANTS: Dict[Scenario, type] = {
    Scenario.NEONATAL_CORD: NeonatalContext,
    Scenario.GENERAL: GeneralContext,
}


def empty_context(scenario: Scenario) -> ContextData:
    """Fresh context variant for a scenario"""
    return CONTEXT_VARIANTS[scenario]()


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"context value must be str, got {type(value).__name__}")
    return value


def _coerce_flag(value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "":
            return None
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
    raise TypeError(f"flag value must be bool or yes/no text, got {value!r}")


def _context_json(context: ContextData, include_empty: bool) -> Dict[str, Any]:
    data = {}
    for context_field in context.field_type:
        value = context.get(context_field)
        if not include_empty and value in ("", None):
            continue
        data[context_field.value] = value
    return data


@dataclass(frozen=True)
class AcquisitionState:
    """Input-step sub-state: active capture mode and paste buffer"""
    mode: AcquisitionMode = AcquisitionMode.MANUAL
    pasted_text: str = ""


@dataclass(frozen=True)
class OperationTicket:
    """
    Request half of an external round trip.

    Issued when an extraction or analysis begins. The session keeps only
    the token; a completion is applied only if its ticket token still
    matches, so a reset in the meantime turns the completion stale.

    Attributes:
        token: Unique operation identifier
        kind: Which gateway call this ticket is for
        payload: Gateway input (image bytes, raw text or SessionState)
    """
    token: str
    kind: OperationKind
    payload: Any = None


@dataclass(frozen=True)
class OperationOutcome:
    """
    Response half of an external round trip.

    Exactly one of payload/error_message is meaningful, selected by
    succeeded. Failures carry the exception type name for debugging only;
    the session never shows it to the user.
    """
    ticket: OperationTicket
    succeeded: bool
    payload: Any = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class SessionState:
    """
    Aggregate root for one wizard session.

    Invariants (enforced by the transition functions):
    - step is DETAILS or later only once scenario is set
    - step is ANALYSIS only once report is set
    - at most one of extracting/analyzing is True
    - pending_token is set exactly while one of them is True
    """
    step: Step = Step.SCENARIO
    scenario: Optional[Scenario] = None
    context: Optional[ContextData] = None
    measurements: MeasurementRecord = field(default_factory=MeasurementRecord)
    acquisition: AcquisitionState = field(default_factory=AcquisitionState)
    extracting: bool = False
    analyzing: bool = False
    report: Optional[str] = None
    error: Optional[str] = None
    pending_token: Optional[str] = None

    @property
    def is_busy(self) -> bool:
        return self.extracting or self.analyzing

    def to_json(self) -> dict:
        """JSON-safe projection (enums as their values)"""
        return {
            'step': self.step.value,
            'scenario': self.scenario.value if self.scenario else None,
            'context': self.context.to_json() if self.context is not None else None,
            'measurements': self.measurements.to_json(),
            'acquisition': {
                'mode': self.acquisition.mode.value,
                'pasted_text': self.acquisition.pasted_text,
            },
            'extracting': self.extracting,
            'analyzing': self.analyzing,
            'report': self.report,
            'error': self.error,
        }


INITIAL_STATE = SessionState()
