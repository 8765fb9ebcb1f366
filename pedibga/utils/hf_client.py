"""
HuggingFace Client - local model behind both LLM gateways

Responsibilities:
- Load the tokenizer and causal LM (NF4 4-bit on CUDA, full precision on CPU)
- Turn a user prompt plus optional system instruction into generated text
- Return JSON-shaped text for the value extractor (fences and prose stripped)
- Report load state, device and GPU memory for the launcher banner

Design principles:
- One instance per process, injected into ValueExtractor and ReportGenerator
- CUDA out-of-memory is logged with the prompt size and re-raised; the
  gateways turn it into their own error types
- Prompt layout lives in PromptFormatter, not here
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Union

import torch
from transformers import (
    AutoModelForCausalLM,
    AutoTokenizer,
    BitsAndBytesConfig
)

from pedibga.utils.helpers import repair_json_text
from pedibga.utils.prompt_formatter import PromptFormatter

logger = logging.getLogger(__name__)

DEVICE_CUDA = "cuda"
DEVICE_CPU = "cpu"
DEVICE_MAP_AUTO = "auto"

PAD_TOKEN_FALLBACK = '[PAD]'


@dataclass(frozen=True)
class GenerationStats:
    """Token counts and latency for one generate() call"""
    prompt_tokens: int
    completion_tokens: int
    latency_ms: float
    formatting_applied: bool

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> Dict[str, Any]:
        stats = asdict(self)
        stats['total_tokens'] = self.total_tokens
        return stats


def build_quantization_config(load_in_4bit: bool, device: str) -> Optional[BitsAndBytesConfig]:
    """
    NF4 config for 4-bit loading, or None.

    bitsandbytes kernels only run on CUDA, so a CPU device always loads
    unquantized regardless of load_in_4bit.
    """
    if not (load_in_4bit and device == DEVICE_CUDA):
        return None

    logger.info("Using NF4 quantization with bfloat16 compute")
    return BitsAndBytesConfig(
        load_in_4bit=True,
        bnb_4bit_quant_type="nf4",
        bnb_4bit_compute_dtype=torch.bfloat16,
        bnb_4bit_use_double_quant=True
    )


def load_tokenizer(model_name: str):
    """Load the tokenizer and make sure it has a pad token"""
    tokenizer = AutoTokenizer.from_pretrained(model_name)

    if tokenizer.pad_token is None:
        if tokenizer.eos_token is not None:
            tokenizer.pad_token = tokenizer.eos_token
            logger.info("Set pad_token to eos_token")
        else:
            tokenizer.add_special_tokens({'pad_token': PAD_TOKEN_FALLBACK})
            logger.warning(f"Added new {PAD_TOKEN_FALLBACK} token as pad_token")

    return tokenizer


class HuggingFaceClient:
    """Local causal LM used for blood gas extraction and report writing"""

    def __init__(
        self,
        model_name: str,
        load_in_4bit: bool = True,
        device: str = DEVICE_CUDA,
        auto_format: bool = True
    ) -> None:
        """
        Load tokenizer and model

        Args:
            model_name: HuggingFace model identifier
            load_in_4bit: Quantize to NF4 (CUDA only, ignored on CPU)
            device: "cuda" or "cpu"
            auto_format: Wrap prompts in the model's chat/instruction format

        Raises:
            RuntimeError: CUDA requested but not available
            torch.cuda.OutOfMemoryError: Model does not fit on the GPU
            Exception: Any tokenizer or model download/load failure
        """
        self.model_name = model_name
        self.device = device
        self.auto_format = auto_format
        self.formatter: Optional[PromptFormatter] = None
        self.tokenizer = None
        self.model = None

        if device == DEVICE_CUDA and not torch.cuda.is_available():
            raise RuntimeError("CUDA requested but not available. Check nvidia-smi.")

        logger.info(f"Loading model {model_name} on {device} (4-bit: {load_in_4bit})")

        try:
            self.tokenizer = load_tokenizer(model_name)
        except Exception as e:
            logger.error(f"Failed to load tokenizer for {model_name}: {e}")
            raise

        if auto_format:
            self.formatter = PromptFormatter(model_name, self.tokenizer)
            logger.info(f"Prompt formatter initialized: {self.formatter.get_info()}")

        self.model = self._load_model(build_quantization_config(load_in_4bit, device))
        self.model.eval()
        logger.info("HuggingFace client initialized successfully")

    @classmethod
    def from_settings(cls, settings) -> "HuggingFaceClient":
        """Build a client from pedibga.config.Settings"""
        return cls(
            model_name=settings.model_name,
            load_in_4bit=settings.load_in_4bit,
            device=settings.device
        )

    def _load_model(self, quantization_config: Optional[BitsAndBytesConfig]):
        on_cuda = self.device == DEVICE_CUDA
        try:
            model = AutoModelForCausalLM.from_pretrained(
                self.model_name,
                quantization_config=quantization_config,
                device_map=DEVICE_MAP_AUTO if on_cuda else None,
                torch_dtype=torch.bfloat16 if on_cuda else torch.float32
            )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"CUDA out of memory while loading {self.model_name}")
            logger.error("Close other GPU processes, pick a smaller model or set PEDIBGA_DEVICE=cpu")
            raise
        except Exception as e:
            logger.error(f"Failed to load model {self.model_name}: {e}")
            raise

        if on_cuda:
            logger.info(f"GPU memory after model load: {self._gpu_memory_summary()}")
        return model

    def _gpu_memory_summary(self) -> str:
        allocated, reserved = self._gpu_memory_gb()
        return f"{allocated:.2f}GB allocated, {reserved:.2f}GB reserved"

    @staticmethod
    def _gpu_memory_gb():
        return torch.cuda.memory_allocated() / 1e9, torch.cuda.memory_reserved() / 1e9

    def is_loaded(self) -> bool:
        """
        Whether generate() can run.

        The gateways check this at construction so a half-initialised
        client is rejected before the first request.
        """
        return self.model is not None and self.tokenizer is not None

    def _prepare_prompt(self, prompt: str, system_instruction: Optional[str],
                        apply_formatting: bool) -> str:
        if apply_formatting and self.formatter:
            return self.formatter.format_instruction(prompt, system_instruction)
        if system_instruction:
            return f"{system_instruction}\n\n{prompt}"
        return prompt

    def generate(
        self,
        prompt: str,
        max_tokens: int = 256,
        temperature: float = 0.3,
        system_instruction: Optional[str] = None,
        return_diagnostics: bool = False,
        apply_formatting: bool = True
    ) -> Union[str, Dict[str, Any]]:
        """
        Generate a completion for prompt

        Args:
            prompt: User prompt (lab text, or the report context block)
            max_tokens: Maximum new tokens
            temperature: Sampling temperature; 0 means greedy decoding
            system_instruction: Persona text, e.g. the report writer's role
            return_diagnostics: Also return GenerationStats as a dict
            apply_formatting: Use the model's prompt format when auto_format is on

        Returns:
            str: Generated text only (prompt tokens removed)
            dict: {'text': str, 'diagnostics': {...}} with return_diagnostics

        Raises:
            RuntimeError: Model not loaded
            torch.cuda.OutOfMemoryError: GPU ran out of memory mid-generation
        """
        if not self.is_loaded():
            raise RuntimeError("Model not loaded")

        start_time = time.time()
        formatted = self._prepare_prompt(prompt, system_instruction, apply_formatting)

        inputs = self.tokenizer(formatted, return_tensors="pt")
        if self.device == DEVICE_CUDA:
            inputs = inputs.to(DEVICE_CUDA)
        prompt_tokens = inputs.input_ids.shape[1]

        sampling = temperature > 0
        try:
            with torch.no_grad():
                outputs = self.model.generate(
                    inputs.input_ids,
                    attention_mask=inputs.attention_mask,
                    max_new_tokens=max_tokens,
                    temperature=temperature if sampling else None,
                    do_sample=sampling,
                    pad_token_id=self.tokenizer.pad_token_id
                )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"CUDA OOM during generation ({prompt_tokens} prompt tokens, {max_tokens} new)")
            raise

        generated_ids = outputs[0][prompt_tokens:]
        text = self.tokenizer.decode(generated_ids, skip_special_tokens=True)

        stats = GenerationStats(
            prompt_tokens=prompt_tokens,
            completion_tokens=int((generated_ids != self.tokenizer.pad_token_id).sum()),
            latency_ms=(time.time() - start_time) * 1000,
            formatting_applied=apply_formatting and self.formatter is not None,
        )
        logger.debug(
            f"Generated {stats.completion_tokens} tokens from {stats.prompt_tokens} "
            f"prompt tokens in {stats.latency_ms:.0f}ms"
        )

        if return_diagnostics:
            return {"text": text, "diagnostics": stats.to_dict()}
        return text

    def generate_json(
        self,
        prompt: str,
        max_tokens: int = 256,
        temperature: float = 0.0,
        system_instruction: Optional[str] = None,
        apply_formatting: bool = True
    ) -> str:
        """
        Greedy completion cleaned up to a single JSON object

        Returns:
            str: JSON text after repair_json_text. Parsing and validation
            stay with the caller (ValueExtractor).
        """
        text = self.generate(
            prompt=prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            system_instruction=system_instruction,
            apply_formatting=apply_formatting
        )
        return repair_json_text(text)

    def get_model_info(self) -> Dict[str, Any]:
        """Model name, device, load state and formatter details for the startup banner"""
        info = {
            "model_name": self.model_name,
            "device": self.device,
            "is_loaded": self.is_loaded(),
            "auto_format": self.auto_format
        }

        if self.formatter:
            info["formatter"] = self.formatter.get_info()

        if self.device == DEVICE_CUDA and torch.cuda.is_available():
            allocated, reserved = self._gpu_memory_gb()
            info["gpu_memory_allocated_gb"] = allocated
            info["gpu_memory_reserved_gb"] = reserved

        return info
