"""
Prompt Builder - Construct extraction and report prompts

Responsibilities:
- Build the value-extraction prompt for pasted text and OCR output
- Hold the report system instruction (six-step blood gas assessment)
- Build the report context from a session snapshot

NOT responsible for:
- LLM calls
- Parsing model output
- Any blood gas interpretation (the model does that)

Design principles:
- Deterministic prompt text (same input, same prompt)
- Target field list generated from the closed MeasurementField set
- Report context carries only the active scenario's patient details
"""

import json
import logging
from enum import Enum
from typing import Dict

from pedibga.contracts import MeasurementField, Scenario, SessionState

logger = logging.getLogger(__name__)


class PromptBuildError(Exception):
    """Raised when a prompt cannot be built from the given input"""
    pass


class ExtractionSource(Enum):
    """
    Where the text to extract from came from.

    Controls how the prompt frames the task. Not serialized.
    """
    PASTED_TEXT = "pasted_text"  # free text copied by the user
    IMAGE_OCR = "image_ocr"      # OCR output of a report photo


# Target list with the synonyms analysers print
FIELD_HINTS: Dict[MeasurementField, str] = {
    MeasurementField.PH: "pH",
    MeasurementField.PCO2: "pCO2 (or PaCO2), mmHg",
    MeasurementField.PO2: "pO2 (or PaO2), mmHg",
    MeasurementField.HCO3: "HCO3 (or HCO3-, Bicarbonate), mmol/L",
    MeasurementField.BE: "BE (Base Excess, BE(B), or BE(ecf)), mmol/L",
    MeasurementField.LACTATE: "Lactate (Lac), mmol/L",
    MeasurementField.NA: "Na (Sodium), mmol/L",
    MeasurementField.K: "K (Potassium), mmol/L",
    MeasurementField.CL: "Cl (Chloride), mmol/L",
    MeasurementField.GLUCOSE: "Glucose (Glu), mmol/L",
    MeasurementField.ALBUMIN: "Albumin (Alb), g/dL - if the unit is g/L, convert to g/dL (divide by 10)",
}

SCENARIO_HEADERS = {
    Scenario.NEONATAL_CORD: "SCENARIO: A (UABGA - Neonatal)",
    Scenario.GENERAL: "SCENARIO: B (General Pediatric/Neonatal ABG)",
}

REPORT_SYSTEM_INSTRUCTION = """
# Role Definition
You are a senior Pediatric Critical Care and Perinatal Medicine Blood Gas Analysis Expert Assistant named "PediBGA". You are proficient in systematic assessment methods for blood gas analysis in children (0-18 years) and neonates.

# Core Competencies
1. Systematically evaluate blood gas results using the 6-step method.
2. Switch evaluation standards based on clinical scenario (UABGA vs. Routine Pediatric ABG).
3. Output structured, professional clinical reports.

# Scenario Definitions
- **Scenario A (UABGA):** Neonatal Umbilical Artery/Vein Blood Gas at birth.
- **Scenario B (General):** Arterial/Venous/Capillary Blood Gas for children/neonates (dynamic monitoring).

# Analysis Workflow (6-Step Method)
1. **Internal Consistency Check:** Use Henderson-Hasselbalch: [H+] = 24 x PaCO2 / [HCO3-]. Compare calculated [H+] with pH-derived [H+]. Tolerance +/- 10%.
2. **Acid-Base Status:**
   - Scenario B: Check against age-appropriate norms (Preterm, Term, Infant, Child).
   - Scenario A: Check against 2021 Consensus (pH <7.00 is severe/high risk).
3. **Primary Disorder:** Identify if Respiratory or Metabolic based on pH and PaCO2 vectors. Use "Quick Check" (relationship to pH 7.40 / PaCO2 40).
4. **Compensation:** Calculate expected values (Winter's formula, etc.) to determine if compensation is appropriate or if mixed disorder exists.
5. **Anion Gap (AG):** Calculate AG = Na - (Cl + HCO3). Correct for Albumin if provided. Identify High AG Metabolic Acidosis (MUDPILES).
6. **Delta Ratio:** If High AG Acidosis exists, calculate Delta AG to check for concurrent metabolic disorders.

# UABGA Specifics (Scenario A)
- Evaluate Asphyxia Risk based on Apgar + pH/BE.
- Risk Stratification: Low (Green), Intermediate (Yellow), High (Red - pH<7.00, BE<-12, Lactate>=6).

# Output Format
Generate a report in Markdown format using the following structure strictly.

## 1. Diagnostic Conclusion
- **Primary Diagnosis:** Bold statement of the main acid-base disorder.
- **Key Findings:** Brief bullet points of critical abnormalities.
- **Risk Level (for UABGA):** Low/Intermediate/High risk of asphyxia.

## 2. Clinical Management Suggestions
- Immediate actionable advice based on the diagnosis.

## 3. Detailed 6-Step Analysis
- **Step 1: Consistency Check:** Show calculation.
- **Step 2: Acid-Base Status:** pH analysis.
- **Step 3: Primary Disorder:** Respiratory vs Metabolic.
- **Step 4: Compensation:** Show formula and calculation.
- **Step 5: Anion Gap:** Show calculation.
- **Step 6: Delta Ratio:** (If applicable).

## 4. Disclaimer
- Standard medical disclaimer.

# Tone
Professional, rigorous, organized, friendly but safe. Alert critical values immediately. Language: {language}.
""".strip()


def build_extraction_prompt(source_text: str, source: ExtractionSource) -> str:
    """
    Build the value-extraction prompt

    Args:
        source_text: Pasted text or OCR output
        source: Where the text came from

    Returns:
        str: Prompt requesting a JSON object keyed by canonical field names

    Raises:
        PromptBuildError: If source_text is empty
    """
    if not isinstance(source_text, str) or not source_text.strip():
        raise PromptBuildError("Cannot build extraction prompt from empty text")

    if source is ExtractionSource.IMAGE_OCR:
        intro = (
            "Analyze the following OCR output of a medical blood gas report image.\n"
            "Identify the \"Patient Result\" or \"Measured Value\" column. "
            "Ignore \"Reference Range\" columns.\n"
            "OCR may garble symbols; use the analyte names and units to match values."
        )
    else:
        intro = (
            "Analyze the following text containing medical blood gas results.\n"
            "The text might be unstructured, copied from a report, or just a list of numbers."
        )

    targets = "\n".join(f"- {FIELD_HINTS[f]}" for f in MeasurementField)
    keys = ", ".join(f'"{f.value}"' for f in MeasurementField)

    prompt = (
        f"{intro}\n"
        f"Extract the following values. If a value is not found, return null.\n\n"
        f"Text content:\n\"\"\"\n{source_text.strip()}\n\"\"\"\n\n"
        f"Target Fields:\n{targets}\n\n"
        f"Return the result strictly as a JSON object with exactly these keys: {keys}.\n"
        f"Each value must be a string containing only the number, or null."
    )

    logger.debug(f"Built {source.value} extraction prompt ({len(prompt)} chars)")
    return prompt


def build_report_system_instruction(language: str = "Simplified Chinese") -> str:
    """System instruction for the report model, with the output language filled in"""
    return REPORT_SYSTEM_INSTRUCTION.replace("{language}", language)


def build_report_context(state: SessionState) -> str:
    """
    Build the user message for report generation

    Layout:
        SCENARIO: <tag line>
        Patient Details: <active context JSON, set fields only>

        BLOOD GAS MEASUREMENTS:
        <measurement JSON>

        INSTRUCTION: ...

    Raises:
        PromptBuildError: If no scenario/context has been selected
    """
    if state.scenario is None or state.context is None:
        raise PromptBuildError("Report context requires a selected scenario")

    details = json.dumps(state.context.to_json(include_empty=False), indent=2, ensure_ascii=False)
    measurements = json.dumps(state.measurements.to_json(), indent=2, ensure_ascii=False)

    return (
        f"{SCENARIO_HEADERS[state.scenario]}\n"
        f"Patient Details: {details}\n"
        f"\nBLOOD GAS MEASUREMENTS:\n{measurements}\n"
        f"\nINSTRUCTION: Perform the 6-step analysis and generate the full Markdown "
        f"report as defined in your System Instruction."
    )
