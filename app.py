"""
Flask Web Application for the PediBGA blood gas intake wizard

Loads the model once, wires the gateways into a SessionManager and
serves the JSON API from pedibga.web.
"""

import logging

from pedibga.config import Settings, configure_logging
from pedibga.core.report_generator import ReportGenerator
from pedibga.core.session_manager import SessionManager
from pedibga.core.value_extractor import ValueExtractor
from pedibga.utils.hf_client import HuggingFaceClient
from pedibga.utils.ocr import TesseractOCR
from pedibga.web import create_app

configure_logging()
logger = logging.getLogger(__name__)


def build_app(settings: Settings):
    """Initialize models and gateways (expensive, call once at startup)"""
    logger.info("Initializing HuggingFace model (this takes ~30 seconds)...")
    hf_client = HuggingFaceClient.from_settings(settings)
    logger.info("Model loaded successfully")

    ocr_engine = TesseractOCR(tesseract_cmd=settings.tesseract_cmd, lang=settings.ocr_lang)

    extractor = ValueExtractor(
        hf_client,
        ocr_engine=ocr_engine,
        max_tokens=settings.extract_max_tokens
    )
    generator = ReportGenerator(
        hf_client,
        temperature=settings.report_temperature,
        max_tokens=settings.report_max_tokens,
        language=settings.report_language
    )

    manager = SessionManager(extraction_gateway=extractor, report_gateway=generator)
    return create_app(manager, settings)


if __name__ == '__main__':
    settings = Settings.from_env()
    app = build_app(settings)

    print("\n" + "="*60)
    print("PEDIBGA BLOOD GAS ASSISTANT - WEB INTERFACE")
    print("="*60)
    print("\nServer starting...")
    print("API available at: http://localhost:5000/api/state")
    print("\nPress Ctrl+C to stop the server")
    print("="*60 + "\n")

    # threaded so /api/state and /api/reset stay responsive during generation
    app.run(debug=False, host='0.0.0.0', port=5000, threaded=True)
