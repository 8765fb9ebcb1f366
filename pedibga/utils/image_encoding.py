"""
Image transport encoding.

Turns an uploaded image (raw bytes or a base64 data URL) into an
EncodedImage: detected mime type plus base64 payload without the
data URL prefix. Pure data transform, no recognition logic.
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Union

from PIL import Image, UnidentifiedImageError

from pedibga.errors import ExtractionError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class EncodedImage:
    """
    Transport-ready image.

    Attributes:
        mime_type: e.g. 'image/png'
        data: base64 text, no 'data:...;base64,' prefix
    """
    mime_type: str
    data: str

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)


def encode_image(image: Union[bytes, bytearray, str]) -> EncodedImage:
    """
    Encode an uploaded image for the extraction gateway

    Args:
        image: Raw file content, or a base64 string / data URL

    Returns:
        EncodedImage

    Raises:
        ExtractionError: Empty input, invalid base64, or not a decodable image
    """
    if isinstance(image, str):
        raw = _decode_base64_text(image)
    elif isinstance(image, (bytes, bytearray)):
        raw = bytes(image)
    else:
        raise ExtractionError(f"Unsupported image payload: {type(image).__name__}")

    if not raw:
        raise ExtractionError("Empty image")

    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ExtractionError(f"Not a readable image: {e}") from e

    mime_type = Image.MIME.get(image_format, DEFAULT_MIME_TYPE)
    logger.debug(f"Encoded {len(raw)} byte {image_format} image as {mime_type}")

    return EncodedImage(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))


def _decode_base64_text(text: str) -> bytes:
    """Strip an optional data URL prefix and decode"""
    payload = text.strip()
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")

    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ExtractionError(f"Invalid base64 image data: {e}") from e
