"""
Tests for image transport encoding
"""

import base64
import io

import pytest
from PIL import Image

from pedibga.errors import ExtractionError
from pedibga.utils.image_encoding import EncodedImage, encode_image


def make_image(image_format):
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color="white").save(buffer, format=image_format)
    return buffer.getvalue()


def test_png_bytes():
    raw = make_image("PNG")
    encoded = encode_image(raw)

    assert isinstance(encoded, EncodedImage)
    assert encoded.mime_type == "image/png"
    assert encoded.to_bytes() == raw
    assert not encoded.data.startswith("data:")


def test_jpeg_bytes():
    assert encode_image(make_image("JPEG")).mime_type == "image/jpeg"


def test_data_url_prefix_removed():
    raw = make_image("PNG")
    data_url = "data:image/png;base64," + base64.b64encode(raw).decode("ascii")

    encoded = encode_image(data_url)
    assert encoded.data == base64.b64encode(raw).decode("ascii")
    assert encoded.mime_type == "image/png"


def test_bare_base64_accepted():
    raw = make_image("PNG")
    assert encode_image(base64.b64encode(raw).decode("ascii")).to_bytes() == raw


@pytest.mark.parametrize("payload", [
    b"",
    b"plain text, not an image",
    "data:image/png;base64,@@@",
    12345,
])
def test_invalid_payloads(payload):
    with pytest.raises(ExtractionError):
        encode_image(payload)
