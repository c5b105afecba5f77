# image_codec.py
# Pillow-backed decode/encode and geometry helpers for the halftone pipeline.

import io
import base64
from typing import Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from halftone_errors import InvalidImageError, TooLargeError


ALLOWED_FORMATS = ("PNG", "JPEG", "WEBP")
DEFAULT_DPI = 300


# -----------------------------------------------------------------------------
# Decoding
# -----------------------------------------------------------------------------
def strip_data_url(data: str) -> str:
    if "base64," in data:
        return data.split("base64,", 1)[1]
    return data


def decode_base64(data: str) -> bytes:
    if not isinstance(data, str) or not data.strip():
        raise InvalidImageError("Image data must be a non-empty base64 string")
    try:
        return base64.b64decode(strip_data_url(data), validate=False)
    except ValueError as e:
        raise InvalidImageError(f"Invalid base64 image: {e}")


def open_image(data: bytes, max_bytes: int, max_pixels: int) -> Image.Image:
    """Open and fully decode an upload as RGBA, enforcing byte and pixel ceilings."""
    if not data:
        raise InvalidImageError("Uploaded file is empty")
    if len(data) > max_bytes:
        raise TooLargeError(
            f"File exceeds max upload size ({max_bytes} bytes)",
            {"bytes": len(data), "max_bytes": max_bytes},
        )

    try:
        img = Image.open(io.BytesIO(data))
    except Image.DecompressionBombError as e:
        raise TooLargeError(f"Image resolution too large: {e}", {"max_pixels": max_pixels})
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError("Unsupported or corrupted image file") from e

    if img.format not in ALLOWED_FORMATS:
        raise InvalidImageError(
            "Unsupported image format (only PNG, JPG, WEBP)",
            {"format": img.format.lower() if img.format else None},
        )

    width, height = img.size
    if not width or not height:
        raise InvalidImageError("Could not read image dimensions")

    pixels = width * height
    if pixels > max_pixels:
        raise TooLargeError(
            f"Image resolution too large ({pixels} pixels)",
            {"width": width, "height": height, "max_pixels": max_pixels},
        )

    try:
        img.load()
    except (OSError, SyntaxError, ValueError) as e:
        raise InvalidImageError("Unsupported or corrupted image file") from e

    return img.convert("RGBA")


# -----------------------------------------------------------------------------
# Geometry
# -----------------------------------------------------------------------------
def content_bbox(img: Image.Image, alpha_threshold: int) -> Optional[Tuple[int, int, int, int]]:
    """Bounding box of pixels whose alpha exceeds the threshold, or None."""
    mask = img.getchannel("A").point(lambda a: 255 if a > alpha_threshold else 0)
    return mask.getbbox()


def fit_width(img: Image.Image, max_width: int) -> Image.Image:
    """Downscale to at most max_width, keeping aspect ratio. Never enlarges."""
    if img.width <= max_width:
        return img
    height = max(1, int(round(img.height * max_width / img.width)))
    return img.resize((max_width, height), Image.Resampling.LANCZOS)


def upscale_nearest(raster: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize an RGBA raster with nearest-neighbour so dot edges stay crisp."""
    if raster.shape[1] == width and raster.shape[0] == height:
        return raster
    img = Image.fromarray(raster)
    return np.asarray(img.resize((width, height), Image.Resampling.NEAREST)).copy()


def to_raster(img: Image.Image) -> np.ndarray:
    return np.array(img.convert("RGBA"), dtype=np.uint8)


# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------
def encode_png(raster: np.ndarray, dpi: int = DEFAULT_DPI) -> bytes:
    img = Image.fromarray(raster)
    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=True, dpi=(dpi, dpi))
    return buf.getvalue()


def decode_png(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as img:
        return to_raster(img)


def encode_base64_png(data: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(data).decode()
