"""
Prompt Formatter - Model-specific prompt formatting

Responsibilities:
- Detect model family from model name
- Apply model-specific instruction formatting, with an optional system
  instruction
- Use tokenizer chat template if available
- Fallback to manual formatting for known families

Design principles:
- Tokenizer template priority (most robust)
- Manual fallback for known families
- Families without a system slot get the instruction prepended to the
  user turn
- Stateless formatting (no side effects)
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


def _inst(prompt: str, system: Optional[str]) -> str:
    if system:
        return f"[INST] {system}\n\n{prompt} [/INST]"
    return f"[INST] {prompt} [/INST]"


def _llama3(prompt: str, system: Optional[str]) -> str:
    header = "<|begin_of_text|>"
    if system:
        header += f"<|start_header_id|>system<|end_header_id|>\n\n{system}<|eot_id|>"
    return (
        f"{header}<|start_header_id|>user<|end_header_id|>\n\n{prompt}<|eot_id|>"
        f"<|start_header_id|>assistant<|end_header_id|>\n\n"
    )


def _zephyr(prompt: str, system: Optional[str]) -> str:
    prefix = f"<|system|>\n{system}\n" if system else ""
    return f"{prefix}<|user|>\n{prompt}\n<|assistant|>\n"


def _phi(prompt: str, system: Optional[str]) -> str:
    prefix = f"<|system|>\n{system}<|end|>\n" if system else ""
    return f"{prefix}<|user|>\n{prompt}<|end|>\n<|assistant|>\n"


def _qwen(prompt: str, system: Optional[str]) -> str:
    prefix = f"<|im_start|>system\n{system}<|im_end|>\n" if system else ""
    return f"{prefix}<|im_start|>user\n{prompt}<|im_end|>\n<|im_start|>assistant\n"


class PromptFormatter:
    """Format prompts for specific model families"""

    # Known model families and their manual formatting
    MANUAL_FORMATS = {
        "mistral": _inst,
        "mixtral": _inst,
        "llama": _inst,
        "llama-2": _inst,
        "llama-3": _llama3,
        "zephyr": _zephyr,
        "phi": _phi,
        "qwen": _qwen,
    }

    def __init__(self, model_name: str, tokenizer=None):
        """
        Initialize formatter

        Args:
            model_name: HuggingFace model identifier
            tokenizer: Optional tokenizer with chat_template attribute
        """
        self.model_name = model_name
        self.tokenizer = tokenizer
        self.model_family = self._detect_model_family(model_name)

        self.has_chat_template = (
            tokenizer is not None and
            getattr(tokenizer, 'chat_template', None) is not None
        )

        if self.has_chat_template:
            logger.info(f"Using tokenizer chat template for {model_name}")
        elif self.model_family in self.MANUAL_FORMATS:
            logger.info(f"Using manual formatting for {self.model_family} family")
        else:
            logger.warning(
                f"No chat template or known format for {model_name}. "
                f"Using generic (no formatting)"
            )

    def _detect_model_family(self, model_name: str) -> str:
        """Detect model family from model name (most specific first)"""
        name_lower = model_name.lower()

        if "llama-3" in name_lower or "llama3" in name_lower:
            return "llama-3"
        elif "llama-2" in name_lower or "llama2" in name_lower:
            return "llama-2"
        elif "llama" in name_lower:
            return "llama"
        elif "mixtral" in name_lower:
            return "mixtral"
        elif "mistral" in name_lower:
            return "mistral"
        elif "zephyr" in name_lower:
            return "zephyr"
        elif "qwen" in name_lower:
            return "qwen"
        elif "phi" in name_lower:
            return "phi"
        else:
            return "generic"

    def format_instruction(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        """
        Format prompt with model-specific instruction tags

        Priority:
        1. Tokenizer chat template (if available)
        2. Manual formatting for known family
        3. Generic passthrough (system instruction prepended)

        Args:
            prompt: Plain text user prompt
            system_instruction: Optional system/persona text

        Returns:
            str: Formatted prompt ready for model

        Examples:
            >>> formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2")
            >>> formatter.format_instruction("What is 2+2?")
            '[INST] What is 2+2? [/INST]'
        """
        if self.has_chat_template:
            try:
                messages = []
                if system_instruction:
                    messages.append({"role": "system", "content": system_instruction})
                messages.append({"role": "user", "content": prompt})
                formatted = self.tokenizer.apply_chat_template(
                    messages,
                    tokenize=False,
                    add_generation_prompt=True
                )
                logger.debug("Applied tokenizer chat template")
                return formatted

            except Exception as e:
                # Some templates (Mistral v0.2) reject the system role
                logger.warning(
                    f"Tokenizer chat template failed: {e}. "
                    f"Falling back to manual formatting"
                )

        if self.model_family in self.MANUAL_FORMATS:
            formatted = self.MANUAL_FORMATS[self.model_family](prompt, system_instruction)
            logger.debug(f"Applied manual {self.model_family} formatting")
            return formatted

        logger.debug("No formatting applied (generic model)")
        if system_instruction:
            return f"{system_instruction}\n\n{prompt}"
        return prompt

    def get_info(self) -> dict:
        """Formatter metadata"""
        return {
            "model_name": self.model_name,
            "model_family": self.model_family,
            "has_chat_template": self.has_chat_template,
            "formatting_method": (
                "tokenizer_template" if self.has_chat_template
                else "manual" if self.model_family in self.MANUAL_FORMATS
                else "none"
            )
        }
