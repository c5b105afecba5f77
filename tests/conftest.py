import io

import numpy as np
import pytest
from PIL import Image

from halftone_config import HalftoneSettings


def rgba_canvas(width, height, fill=(0, 0, 0, 0)):
    raster = np.zeros((height, width, 4), dtype=np.uint8)
    raster[:, :] = fill
    return raster


def square_on_canvas(size, x0, x1, color=(0, 0, 0, 255)):
    """size x size transparent canvas with an opaque square covering [x0, x1) on both axes."""
    raster = rgba_canvas(size, size)
    raster[x0:x1, x0:x1] = color
    return raster


def png_bytes(raster, format="PNG"):
    img = Image.fromarray(raster)
    if format == "JPEG":
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format=format)
    return buf.getvalue()


class FakeObjectStore:
    """In-memory stand-in for ObjectStore."""

    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.presigned = []

    def head_size(self, key):
        from halftone_errors import ObjectNotFoundError

        if key not in self.objects:
            raise ObjectNotFoundError("Input object not found", {"key": key})
        return len(self.objects[key])

    def get_bytes(self, key):
        self.head_size(key)
        return self.objects[key]

    def put_png(self, key, data):
        self.objects[key] = data

    def presign_put(self, key, content_type):
        self.presigned.append(("put", key, content_type))
        return f"https://storage.example/{key}?signature=put"

    def presign_get(self, key):
        self.presigned.append(("get", key))
        return f"https://storage.example/{key}?signature=get"


@pytest.fixture
def settings():
    return HalftoneSettings(build_id="test-build")


@pytest.fixture
def black_square():
    """100x100 fully opaque black square."""
    return rgba_canvas(100, 100, (0, 0, 0, 255))


@pytest.fixture
def gradient():
    """Opaque horizontal grey ramp, dark on the left."""
    raster = rgba_canvas(120, 60, (0, 0, 0, 255))
    ramp = np.linspace(0, 255, 120).astype(np.uint8)
    raster[:, :, 0] = ramp
    raster[:, :, 1] = ramp
    raster[:, :, 2] = ramp
    return raster


@pytest.fixture
def fake_store():
    return FakeObjectStore()
