"""
Report Generator - Report gateway for the blood gas wizard

Responsibilities:
- Build the report context from a session snapshot
- Call the LLM under the PediBGA system instruction
- Return the Markdown report as opaque text
- Raise ReportError on any failure, including an empty report

Design principles:
- The report structure is the model's concern; this module never parses it
- Only the active scenario's patient details are sent
"""

import logging

from pedibga.contracts import SessionState
from pedibga.errors import ReportError
from pedibga.utils.prompt_builder import (
    PromptBuildError,
    build_report_context,
    build_report_system_instruction,
)

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Generate the structured blood gas report"""

    def __init__(
        self,
        hf_client,
        temperature: float = 0.4,
        max_tokens: int = 2048,
        language: str = "Simplified Chinese"
    ) -> None:
        """
        Initialize Report Generator

        Args:
            hf_client: Model client with generate(prompt, max_tokens,
                temperature, system_instruction)
            temperature: LLM temperature (default 0.4)
            max_tokens: Report length cap in tokens
            language: Output language named in the system instruction

        Raises:
            TypeError: If hf_client lacks generate()
            RuntimeError: If hf_client model not loaded
        """
        if not callable(getattr(hf_client, 'generate', None)):
            raise TypeError("hf_client must have callable generate() method")

        if callable(getattr(hf_client, 'is_loaded', None)) and not hf_client.is_loaded():
            raise RuntimeError("HuggingFace client model not loaded")

        self.hf_client = hf_client
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_instruction = build_report_system_instruction(language)

        logger.info(f"Report Generator initialized (temp={temperature}, language={language})")

    def generate_report(self, state: SessionState) -> str:
        """
        Generate the report for a session snapshot

        Args:
            state: Snapshot taken when analysis started

        Returns:
            str: Markdown report

        Raises:
            ReportError: No scenario, generation failed, or empty output
        """
        try:
            context = build_report_context(state)
        except PromptBuildError as e:
            raise ReportError(str(e)) from e

        logger.info(f"Generating report for scenario {state.scenario.value}")

        try:
            text = self.hf_client.generate(
                prompt=context,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system_instruction=self.system_instruction
            )
        except Exception as e:
            logger.error(f"Report generation failed: {type(e).__name__} - {e}")
            raise ReportError(f"Generation failed: {e}") from e

        if not isinstance(text, str) or not text.strip():
            logger.warning("Model returned an empty report")
            raise ReportError("Empty report")

        report = text.strip()
        logger.info(f"Report generated ({len(report)} chars)")
        return report
