"""Tests for inline image decoding and rendering."""

import base64
import io

import pytest
from PIL import Image

from quickpay.engine.errors import ImageDecodeError, ProtocolError
from quickpay.engine.images import RENDER_HEIGHT, RENDER_WIDTH, decode_image, render_image


def png_base64(width, height, color=(10, 20, 30)) -> str:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


class TestDecodeImage:
    def test_png(self):
        image = decode_image(png_base64(4, 2))
        assert image.size == (4, 2)
        assert image.mode == "RGB"

    def test_invalid_base64(self):
        with pytest.raises(ImageDecodeError, match="base64"):
            decode_image("%%%")

    def test_not_an_image(self):
        with pytest.raises(ImageDecodeError):
            decode_image(base64.b64encode(b"plain text").decode())

    def test_oversized_image(self, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
        with pytest.raises(ImageDecodeError) as exc_info:
            decode_image(png_base64(8, 8))
        assert isinstance(exc_info.value, ProtocolError)


class TestRenderImage:
    def test_fits_terminal_box(self):
        rows = render_image(decode_image(png_base64(200, 50)))
        assert 0 < len(rows) <= RENDER_HEIGHT
        assert all(row.count("▀") <= RENDER_WIDTH for row in rows)

    def test_two_pixel_rows_per_line(self):
        rows = render_image(Image.new("RGB", (4, 6), (255, 0, 0)), width=4, height=3)
        assert len(rows) == 3
        assert rows[0].startswith("\x1b[38;2;255;0;0m\x1b[48;2;255;0;0m▀")
        assert rows[0].endswith("\x1b[0m")
