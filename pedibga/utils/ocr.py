"""
OCR engine - Tesseract text recognition for blood gas printouts

Responsibilities:
- Decode an EncodedImage with Pillow
- Normalise orientation and convert to grayscale
- Run pytesseract and return the raw text

Recognition of individual values is not done here; the text goes through
the same LLM extraction as pasted text.
"""

import io
import logging
from typing import Optional

import pytesseract
from PIL import Image, ImageOps

from pedibga.utils.image_encoding import EncodedImage

logger = logging.getLogger(__name__)

# Assume a single uniform block of text (analyser printouts are tabular)
DEFAULT_TESSERACT_CONFIG = "--psm 6"


class TesseractOCR:
    """Wrapper around pytesseract for printed lab reports"""

    def __init__(
        self,
        tesseract_cmd: Optional[str] = None,
        lang: str = "eng",
        config: str = DEFAULT_TESSERACT_CONFIG
    ) -> None:
        """
        Args:
            tesseract_cmd: Path to the tesseract binary (None = on PATH)
            lang: Tesseract language pack(s), e.g. 'eng' or 'eng+chi_sim'
            config: Extra tesseract CLI flags
        """
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

        self.lang = lang
        self.config = config

        logger.info(f"Tesseract OCR initialized (lang={lang}, config='{config}')")

    def image_to_text(self, encoded_image: EncodedImage) -> str:
        """
        Recognise text in an image

        Args:
            encoded_image: Output of encode_image()

        Returns:
            str: Raw OCR text (may be empty)

        Raises:
            pytesseract.TesseractNotFoundError: tesseract binary missing
            pytesseract.TesseractError: tesseract failed on this image
            OSError: image could not be decoded
        """
        with Image.open(io.BytesIO(encoded_image.to_bytes())) as img:
            upright = ImageOps.exif_transpose(img)
            gray = ImageOps.grayscale(upright)
            text = pytesseract.image_to_string(gray, lang=self.lang, config=self.config)

        logger.debug(f"OCR output length: {len(text)}")
        return text
