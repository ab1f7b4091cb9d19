"""Shared test helpers: a deterministic fake encoder and sample images."""
import threading
from io import BytesIO

import numpy as np
from PIL import Image

from jpegbudget.encoders import JPEG_MAGIC
from jpegbudget.tasks import EncodeError


class FakeEncoder:
    """Deterministic encoder: output size is ``size_for(raw, quality)`` bytes."""

    def __init__(self, size_for=None, fail=False):
        self.size_for = size_for or (lambda raw, q: q * 1000)
        self.fail = fail
        self.calls = []
        self._lock = threading.Lock()

    def encode(self, raw, quality):
        with self._lock:
            self.calls.append(quality)
        if self.fail:
            raise EncodeError("fake encoder failure")
        size = max(len(JPEG_MAGIC), int(self.size_for(raw, quality)))
        return JPEG_MAGIC + b"\x00" * (size - len(JPEG_MAGIC))


def noise_array(width, height, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def gradient_array(width, height):
    x = np.linspace(0, 255, width, dtype=np.uint8)
    row = np.stack([x, x[::-1], np.full_like(x, 128)], axis=-1)
    return np.repeat(row[np.newaxis, :, :], height, axis=0)


def image_bytes(array, fmt="PNG", **save_kwargs):
    buffer = BytesIO()
    Image.fromarray(array).save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


