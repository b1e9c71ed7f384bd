"""Tests for subtask image compression."""

import io

import pytest
from PIL import Image

from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.storage.image_store import compress_image


def png(width: int, height: int, mode: str = "RGBA") -> bytes:
    output = io.BytesIO()
    Image.new(mode, (width, height)).save(output, format="PNG")
    return output.getvalue()


class TestCompressImage:
    def test_resizes_wide_image_to_jpeg(self):
        compressed = compress_image(png(1600, 400), max_width=800, quality=70)

        with Image.open(io.BytesIO(compressed)) as image:
            assert image.format == "JPEG"
            assert image.size == (800, 200)
            assert image.mode == "RGB"

    def test_keeps_narrow_image_size(self):
        compressed = compress_image(png(120, 90, "RGB"), max_width=800, quality=70)

        with Image.open(io.BytesIO(compressed)) as image:
            assert image.size == (120, 90)

    def test_rejects_unreadable_data(self):
        with pytest.raises(ValidationFailed, match="Invalid image file"):
            compress_image(b"not an image", max_width=800, quality=70)

    def test_rejects_too_many_pixels(self, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

        with pytest.raises(ValidationFailed, match="Image dimensions are too large"):
            compress_image(png(64, 64), max_width=800, quality=70)
