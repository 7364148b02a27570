"""
Inline image decoding and terminal rendering for text_with_image inputs.

Images arrive base64-encoded; they are decoded with Pillow and drawn with
24-bit ANSI colours, two pixel rows per terminal row using the upper
half-block glyph (foreground = top pixel, background = bottom pixel).
"""

import base64
import binascii
import io

from PIL import Image, ImageOps, UnidentifiedImageError

from quickpay.engine.errors import ImageDecodeError

RENDER_WIDTH = 64
RENDER_HEIGHT = 20  # terminal rows

_HALF_BLOCK = "▀"
_RESET = "\x1b[0m"


def decode_image(data: str) -> Image.Image:
    """
    Decode a base64 payload into an RGB image.

    Raises:
        ImageDecodeError: If the payload is not base64 or not a readable image.
    """
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Image payload is not valid base64: {e}") from e
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ImageDecodeError(f"Image payload could not be read: {e}") from e
    return image.convert("RGB")


def render_image(
    image: Image.Image,
    width: int = RENDER_WIDTH,
    height: int = RENDER_HEIGHT,
) -> list[str]:
    """Render an image as ANSI half-block rows fitting width × height cells."""
    fitted = ImageOps.contain(image.convert("RGB"), (width, height * 2), Image.Resampling.LANCZOS)
    if fitted.height % 2:
        padded = Image.new("RGB", (fitted.width, fitted.height + 1))
        padded.paste(fitted, (0, 0))
        fitted = padded

    pixels = fitted.load()
    rows = []
    for y in range(0, fitted.height, 2):
        cells = []
        for x in range(fitted.width):
            tr, tg, tb = pixels[x, y]
            br, bg, bb = pixels[x, y + 1]
            cells.append(f"\x1b[38;2;{tr};{tg};{tb}m\x1b[48;2;{br};{bg};{bb}m{_HALF_BLOCK}")
        rows.append("".join(cells) + _RESET)
    return rows
