"""
Value Extractor - Extraction gateway for blood gas values

Responsibilities:
- Image path: OCR the encoded image, then extract from the OCR text
- Text path: extract from pasted free text
- Call the LLM for a JSON object of measurement values
- Normalise keys to canonical MeasurementField identifiers
- Normalise units the model may leave unconverted (albumin g/L -> g/dL)
- Raise ExtractionError on any failure

Contract:
    extract_from_image(encoded_image) -> Dict[MeasurementField, Optional[str]]
    extract_from_text(raw_text) -> Dict[MeasurementField, Optional[str]]

    Only recognised fields appear in the result. A None value means the
    model reported the field as not found. At least one field carries a
    value, otherwise the extraction counts as failed.

Design principles:
- The gateway owns units; the session treats returned values as canonical
- Unknown keys are logged and dropped, never guessed
- Fail loudly with ExtractionError (SessionManager translates it)
"""

import json
import logging
from typing import Any, Dict, Optional

from pedibga.contracts import MeasurementField
from pedibga.errors import ExtractionError
from pedibga.utils.field_mappings import resolve_measurement_field
from pedibga.utils.image_encoding import EncodedImage
from pedibga.utils.prompt_builder import (
    ExtractionSource,
    PromptBuildError,
    build_extraction_prompt,
)

logger = logging.getLogger(__name__)

PartialMeasurementRecord = Dict[MeasurementField, Optional[str]]

# Model placeholders that mean "not found"
NULL_MARKERS = {'', 'null', 'none', 'n/a', 'na', '-', '--', 'not found'}

# Serum albumin above this in g/dL is physiologically implausible, so the
# value was almost certainly reported in g/L
ALBUMIN_GL_THRESHOLD = 10.0


class ValueExtractor:
    """Extract blood gas values from report images and pasted text"""

    def __init__(
        self,
        hf_client,
        ocr_engine=None,
        temperature: float = 0.0,
        max_tokens: int = 256
    ) -> None:
        """
        Initialize extractor

        Args:
            hf_client: Model client with generate_json(prompt, max_tokens, temperature)
            ocr_engine: Object with image_to_text(encoded_image) -> str.
                None disables the image path (always raises ExtractionError).
            temperature: LLM sampling temperature (default 0.0)
            max_tokens: Max tokens to generate (default 256)

        Raises:
            TypeError: If hf_client or ocr_engine lacks the required method
            RuntimeError: If hf_client model not loaded
        """
        if not callable(getattr(hf_client, 'generate_json', None)):
            raise TypeError("hf_client must have callable generate_json() method")

        if callable(getattr(hf_client, 'is_loaded', None)) and not hf_client.is_loaded():
            raise RuntimeError("HuggingFace client model not loaded")

        if ocr_engine is not None and not callable(getattr(ocr_engine, 'image_to_text', None)):
            raise TypeError("ocr_engine must have callable image_to_text() method")

        self.hf_client = hf_client
        self.ocr_engine = ocr_engine
        self.temperature = temperature
        self.max_tokens = max_tokens

        logger.info(
            f"Value Extractor initialized "
            f"(ocr={'on' if ocr_engine else 'off'}, temp={temperature}, max_tokens={max_tokens})"
        )

    # ==================== PUBLIC API ====================

    def extract_from_image(self, encoded_image: EncodedImage) -> PartialMeasurementRecord:
        """
        Extract values from a report photo

        Args:
            encoded_image: Output of encode_image()

        Returns:
            Partial record (see module contract)

        Raises:
            ExtractionError: OCR unavailable or failed, no text found,
                generation or parsing failed, nothing recognised
        """
        if self.ocr_engine is None:
            raise ExtractionError("Image extraction unavailable: no OCR engine configured")

        if not isinstance(encoded_image, EncodedImage):
            raise ExtractionError(
                f"encoded_image must be EncodedImage, got {type(encoded_image).__name__}"
            )

        try:
            ocr_text = self.ocr_engine.image_to_text(encoded_image)
        except Exception as e:
            logger.error(f"OCR failed: {type(e).__name__} - {e}")
            raise ExtractionError(f"OCR failed: {e}") from e

        if not ocr_text or not ocr_text.strip():
            raise ExtractionError("OCR found no text in image")

        logger.info(f"OCR produced {len(ocr_text)} chars from {encoded_image.mime_type} image")
        return self._extract(ocr_text, ExtractionSource.IMAGE_OCR)

    def extract_from_text(self, raw_text: str) -> PartialMeasurementRecord:
        """
        Extract values from free text

        Args:
            raw_text: Pasted report text, e.g. "pH 7.35, pCO2 45, HCO3 24"

        Returns:
            Partial record (see module contract)

        Raises:
            ExtractionError: Empty text, generation or parsing failed,
                nothing recognised
        """
        if not isinstance(raw_text, str) or not raw_text.strip():
            raise ExtractionError("No text to extract from")

        return self._extract(raw_text, ExtractionSource.PASTED_TEXT)

    # ==================== INTERNALS ====================

    def _extract(self, source_text: str, source: ExtractionSource) -> PartialMeasurementRecord:
        try:
            prompt = build_extraction_prompt(source_text, source)
        except PromptBuildError as e:
            raise ExtractionError(str(e)) from e

        try:
            llm_output = self.hf_client.generate_json(
                prompt=prompt,
                max_tokens=self.max_tokens,
                temperature=self.temperature
            )
        except Exception as e:
            logger.error(f"LLM generation failed: {type(e).__name__} - {e}")
            raise ExtractionError(f"Generation failed: {e}") from e

        logger.debug(f"LLM output: {str(llm_output)[:200]}...")

        try:
            parsed = json.loads(llm_output)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Invalid JSON from model: {e}")
            raise ExtractionError(f"Invalid JSON: {e}") from e

        if not isinstance(parsed, dict):
            raise ExtractionError(f"Expected JSON object, got {type(parsed).__name__}")

        result = self.normalize_extraction(parsed)

        if not any(value is not None for value in result.values()):
            logger.info(f"No values recognised ({source.value})")
            raise ExtractionError("No blood gas values recognised")

        found = [f.value for f, v in result.items() if v is not None]
        logger.info(f"Extracted {len(found)} value(s) from {source.value}: {found}")
        return result

    def normalize_extraction(self, parsed: Dict[str, Any]) -> PartialMeasurementRecord:
        """
        Map raw model output onto canonical fields

        - Keys resolved through the alias table; unknown keys dropped
        - Numbers rendered as text, null markers become None
        - Albumin above ALBUMIN_GL_THRESHOLD converted from g/L to g/dL

        When two keys resolve to the same field, the first non-null wins.
        """
        result: PartialMeasurementRecord = {}

        for key, raw_value in parsed.items():
            measurement = resolve_measurement_field(key)
            if measurement is None:
                logger.warning(f"Unmapped extracted field: {key} = {raw_value}")
                continue

            value = self._normalize_value(raw_value)
            if measurement is MeasurementField.ALBUMIN and value is not None:
                value = self._albumin_to_g_dl(value)

            if result.get(measurement) is None:
                result[measurement] = value

        return result

    @staticmethod
    def _normalize_value(raw_value: Any) -> Optional[str]:
        if raw_value is None or isinstance(raw_value, bool):
            return None
        if isinstance(raw_value, (int, float)):
            return str(raw_value)
        if isinstance(raw_value, str):
            text = raw_value.strip()
            if text.lower() in NULL_MARKERS:
                return None
            return text
        logger.warning(f"Dropping non-scalar extracted value: {raw_value!r}")
        return None

    @staticmethod
    def _albumin_to_g_dl(value: str) -> str:
        try:
            number = float(value)
        except ValueError:
            return value

        if number > ALBUMIN_GL_THRESHOLD:
            converted = f"{number / 10:.2f}".rstrip('0').rstrip('.')
            logger.info(f"Albumin {value} looks like g/L, converted to {converted} g/dL")
            return converted
        return value
