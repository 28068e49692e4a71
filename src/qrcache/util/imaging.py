from __future__ import annotations

from io import BytesIO

from PIL import Image, ImageMode

from ..errors import ImageDecodeError


def decode_image(data: bytes) -> Image.Image:
    """Decode raw bytes into a fully loaded Pillow image."""
    if not data:
        raise ImageDecodeError("empty payload")
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"cannot decode image: {exc}") from exc
    return image


def image_cost(image: Image.Image) -> int:
    """Decoded pixel bytes: width x height x bands x bytes per band."""
    width, height = image.size
    try:
        # typestr is the array-interface form, e.g. "|u1", "<u2", "<f4"
        band_width = int(ImageMode.getmode(image.mode).typestr[2:])
    except (KeyError, ValueError):
        return max(1, len(image.tobytes()))
    return max(1, width * height * len(image.getbands()) * band_width)
