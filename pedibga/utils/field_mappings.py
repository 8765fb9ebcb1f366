"""
Field Mappings - Presentation metadata and extraction aliases per field

Responsibilities:
- Describe every measurement and context field for the views (label,
  unit, required flag, choices, placeholder)
- Map report-style names returned by the model (PaCO2, Bicarbonate,
  BE(ecf), ...) back to canonical measurement identifiers

Design principles:
- Closed tables keyed by the contract enums (exhaustive, checked at import)
- Case-insensitive alias matching
- Unknown names resolve to None (caller decides, never guessed)
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from pedibga.contracts import (
    GeneralField,
    MeasurementField,
    NeonatalField,
    Scenario,
)


@dataclass(frozen=True)
class MeasurementSpec:
    """View metadata for one measurement input"""
    label: str
    unit: str
    required: bool = False
    tooltip: Optional[str] = None


@dataclass(frozen=True)
class ContextFieldSpec:
    """View metadata for one context input"""
    label: str
    input_type: str = "text"  # text | number | select | checkbox | textarea
    placeholder: Optional[str] = None
    choices: Optional[Tuple[Tuple[str, str], ...]] = None  # (value, label)
    default_choice: Optional[str] = None


# Ordered as on the manual entry screen. "required" only drives the
# marker in the view; blocking happens at analysis time (pH, pCO2, HCO3).
MEASUREMENT_SPECS: Dict[MeasurementField, MeasurementSpec] = {
    MeasurementField.PH: MeasurementSpec("pH", "", required=True),
    MeasurementField.PCO2: MeasurementSpec("PaCO₂", "mmHg", required=True),
    MeasurementField.PO2: MeasurementSpec("PaO₂", "mmHg"),
    MeasurementField.HCO3: MeasurementSpec("HCO₃⁻", "mmol/L", required=True),
    MeasurementField.BE: MeasurementSpec("BE", "mmol/L", required=True),
    MeasurementField.LACTATE: MeasurementSpec("Lactate", "mmol/L"),
    MeasurementField.NA: MeasurementSpec("Na⁺", "mmol/L"),
    MeasurementField.K: MeasurementSpec("K⁺", "mmol/L"),
    MeasurementField.CL: MeasurementSpec("Cl⁻", "mmol/L"),
    MeasurementField.GLUCOSE: MeasurementSpec("Glucose", "mmol/L"),
    MeasurementField.ALBUMIN: MeasurementSpec(
        "Albumin", "g/dL",
        tooltip="If the report gives g/L, divide by 10 (e.g. 35 g/L = 3.5 g/dL)",
    ),
}

# Values that must be present before the report can be requested
REQUIRED_FOR_ANALYSIS: Tuple[MeasurementField, ...] = (
    MeasurementField.PH,
    MeasurementField.PCO2,
    MeasurementField.HCO3,
)

UMBILICAL_SAMPLE_CHOICES = (
    ("Umbilical Artery", "Umbilical artery"),
    ("Umbilical Vein", "Umbilical vein"),
)

DELIVERY_MODE_CHOICES = (
    ("Natural", "Vaginal delivery"),
    ("C-Section", "Caesarean section"),
    ("Assisted", "Assisted delivery"),
)

GENERAL_SAMPLE_CHOICES = (
    ("Arterial", "Arterial"),
    ("Venous", "Venous"),
    ("Capillary", "Capillary"),
)

NEONATAL_FIELD_SPECS: Dict[NeonatalField, ContextFieldSpec] = {
    NeonatalField.GESTATIONAL_AGE: ContextFieldSpec("Gestational age (weeks+days)", placeholder="e.g. 38+2"),
    NeonatalField.BIRTH_WEIGHT: ContextFieldSpec("Birth weight (g)", input_type="number"),
    NeonatalField.APGAR_1: ContextFieldSpec("Apgar 1 min", placeholder="1m"),
    NeonatalField.APGAR_5: ContextFieldSpec("Apgar 5 min", placeholder="5m"),
    NeonatalField.APGAR_10: ContextFieldSpec("Apgar 10 min", placeholder="10m"),
    NeonatalField.SAMPLE_TYPE: ContextFieldSpec(
        "Sample type", input_type="select",
        choices=UMBILICAL_SAMPLE_CHOICES, default_choice="Umbilical Artery",
    ),
    NeonatalField.DELIVERY_MODE: ContextFieldSpec(
        "Delivery mode", input_type="select", choices=DELIVERY_MODE_CHOICES,
    ),
    NeonatalField.RISK_FACTORS: ContextFieldSpec(
        "Perinatal risk factors", input_type="textarea",
        placeholder="e.g. fetal distress, meconium-stained fluid",
    ),
    NeonatalField.SAMPLE_TIME: ContextFieldSpec("Sample time", placeholder="e.g. 5 min after birth"),
    NeonatalField.DELAYED_CORD_CLAMPING: ContextFieldSpec("Delayed cord clamping", input_type="checkbox"),
}

GENERAL_FIELD_SPECS: Dict[GeneralField, ContextFieldSpec] = {
    GeneralField.AGE: ContextFieldSpec("Age", placeholder="e.g. 3 years, 2 months, 5 days"),
    GeneralField.WEIGHT: ContextFieldSpec("Weight (kg)", input_type="number"),
    GeneralField.DIAGNOSIS: ContextFieldSpec(
        "Main diagnosis / clinical context", input_type="textarea",
        placeholder="e.g. severe pneumonia, diabetic ketoacidosis",
    ),
    GeneralField.FIO2: ContextFieldSpec("FiO₂", placeholder="e.g. 21% or 0.4"),
    GeneralField.VENTILATION: ContextFieldSpec(
        "Oxygen / ventilation", placeholder="e.g. room air, nasal cannula, SIMV",
    ),
    GeneralField.SAMPLE_TYPE: ContextFieldSpec(
        "Sample type", input_type="select",
        choices=GENERAL_SAMPLE_CHOICES, default_choice="Arterial",
    ),
    GeneralField.ALBUMIN: ContextFieldSpec("Albumin (g/dL, optional)", input_type="number"),
}

CONTEXT_FIELD_SPECS = {
    Scenario.NEONATAL_CORD: NEONATAL_FIELD_SPECS,
    Scenario.GENERAL: GENERAL_FIELD_SPECS,
}

# Names a report or the model may use for each measurement.
# Keys are lowercased, compared after stripping spaces.
MEASUREMENT_ALIASES: Dict[str, MeasurementField] = {
    'ph': MeasurementField.PH,

    'pco2': MeasurementField.PCO2,
    'paco2': MeasurementField.PCO2,
    'pco₂': MeasurementField.PCO2,
    'paco₂': MeasurementField.PCO2,

    'po2': MeasurementField.PO2,
    'pao2': MeasurementField.PO2,
    'po₂': MeasurementField.PO2,
    'pao₂': MeasurementField.PO2,

    'hco3': MeasurementField.HCO3,
    'hco3-': MeasurementField.HCO3,
    'hco₃⁻': MeasurementField.HCO3,
    'hco3std': MeasurementField.HCO3,
    'bicarbonate': MeasurementField.HCO3,

    'be': MeasurementField.BE,
    'be(b)': MeasurementField.BE,
    'be(ecf)': MeasurementField.BE,
    'baseexcess': MeasurementField.BE,

    'lactate': MeasurementField.LACTATE,
    'lac': MeasurementField.LACTATE,

    'na': MeasurementField.NA,
    'na+': MeasurementField.NA,
    'sodium': MeasurementField.NA,

    'k': MeasurementField.K,
    'k+': MeasurementField.K,
    'potassium': MeasurementField.K,

    'cl': MeasurementField.CL,
    'cl-': MeasurementField.CL,
    'chloride': MeasurementField.CL,

    'glucose': MeasurementField.GLUCOSE,
    'glu': MeasurementField.GLUCOSE,

    'albumin': MeasurementField.ALBUMIN,
    'alb': MeasurementField.ALBUMIN,
}


def resolve_measurement_field(name: str) -> Optional[MeasurementField]:
    """
    Map a measurement name to its canonical identifier.

    Args:
        name: Key as returned by the model or printed on a report

    Returns:
        MeasurementField, or None if the name is not recognised

    Examples:
        >>> resolve_measurement_field('PaCO2')
        <MeasurementField.PCO2: 'pCO2'>
        >>> resolve_measurement_field('Base Excess')
        <MeasurementField.BE: 'BE'>
        >>> resolve_measurement_field('Hb') is None
        True
    """
    if not isinstance(name, str):
        return None
    key = name.strip().lower().replace(" ", "").replace("_", "")
    return MEASUREMENT_ALIASES.get(key)


def _check_exhaustive():
    missing = set(MeasurementField) - set(MEASUREMENT_SPECS)
    missing |= set(NeonatalField) - set(NEONATAL_FIELD_SPECS)
    missing |= set(GeneralField) - set(GENERAL_FIELD_SPECS)
    if missing:
        raise RuntimeError(f"Field tables incomplete: {sorted(m.value for m in missing)}")


_check_exhaustive()
