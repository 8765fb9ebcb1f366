"""
Runtime configuration.

Read once at startup from environment variables; every value has a
default so the app runs with no environment at all.

Variables:
    PEDIBGA_MODEL_NAME           HuggingFace model id
    PEDIBGA_LOAD_IN_4BIT         4-bit quantization on CUDA (true/false)
    PEDIBGA_DEVICE               'cuda' or 'cpu'
    PEDIBGA_REPORT_TEMPERATURE   report sampling temperature
    PEDIBGA_REPORT_MAX_TOKENS    report length cap
    PEDIBGA_EXTRACT_MAX_TOKENS   extraction output cap
    PEDIBGA_REPORT_LANGUAGE      report language named in the prompt
    PEDIBGA_OCR_LANG             tesseract language pack(s)
    TESSERACT_CMD                tesseract binary path
    PEDIBGA_SECRET_KEY           Flask secret key
    PEDIBGA_MAX_UPLOAD_MB        upload size limit
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from pedibga.contracts import FALSE_VALUES, TRUE_VALUES

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass(frozen=True)
class Settings:
    """Application settings"""
    model_name: str = "mistralai/Mistral-7B-Instruct-v0.2"
    load_in_4bit: bool = True
    device: str = "cuda"
    report_temperature: float = 0.4
    report_max_tokens: int = 2048
    extract_max_tokens: int = 256
    report_language: str = "Simplified Chinese"
    ocr_lang: str = "eng"
    tesseract_cmd: Optional[str] = None
    secret_key: str = "pedibga-dev-secret-key"
    max_upload_mb: int = 10

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables

        Args:
            environ: Mapping to read (default os.environ)

        Raises:
            ValueError: If a numeric or boolean variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            model_name=env.get('PEDIBGA_MODEL_NAME', defaults.model_name),
            load_in_4bit=_parse_bool(env.get('PEDIBGA_LOAD_IN_4BIT'), defaults.load_in_4bit),
            device=env.get('PEDIBGA_DEVICE', defaults.device),
            report_temperature=float(env.get('PEDIBGA_REPORT_TEMPERATURE', defaults.report_temperature)),
            report_max_tokens=int(env.get('PEDIBGA_REPORT_MAX_TOKENS', defaults.report_max_tokens)),
            extract_max_tokens=int(env.get('PEDIBGA_EXTRACT_MAX_TOKENS', defaults.extract_max_tokens)),
            report_language=env.get('PEDIBGA_REPORT_LANGUAGE', defaults.report_language),
            ocr_lang=env.get('PEDIBGA_OCR_LANG', defaults.ocr_lang),
            tesseract_cmd=env.get('TESSERACT_CMD') or None,
            secret_key=env.get('PEDIBGA_SECRET_KEY', defaults.secret_key),
            max_upload_mb=int(env.get('PEDIBGA_MAX_UPLOAD_MB', defaults.max_upload_mb)),
        )


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"Cannot parse boolean setting: {raw!r}")


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging once, at the entrypoint"""
    logging.basicConfig(level=level, format=LOG_FORMAT)
