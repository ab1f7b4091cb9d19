"""
Encoder adapters: raw image bytes + quality -> JPEG bytes.

Both backends bind their fixed encoding options at construction, never
mutate the input and are safe to call from several worker threads.
"""
from __future__ import annotations

import logging
import threading
import time
from io import BytesIO
from typing import Optional, Protocol

import cv2
import numpy as np
import pillow_heif
from PIL import Image, ImageOps, UnidentifiedImageError

from .config import CompressionConfig, EncodingOptions
from .tasks import EncodeError, InputReadError

pillow_heif.register_heif_opener()

logger = logging.getLogger(__name__)

JPEG_MAGIC = b"\xff\xd8\xff"


def is_jpeg(data: bytes) -> bool:
    """True when the bytes start with a JPEG SOI marker."""
    return data[:3] == JPEG_MAGIC


class Encoder(Protocol):
    def encode(self, raw: bytes, quality: int) -> bytes:
        ...


def decode_image(raw: bytes) -> Image.Image:
    """Open with Pillow, apply EXIF orientation and flatten to RGB."""
    try:
        img = Image.open(BytesIO(raw))
        img = ImageOps.exif_transpose(img)
        return flatten_to_rgb(img)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise InputReadError(f"Unable to decode image: {e}") from e


# -----------------------------
# Pillow backend
# -----------------------------
class PillowEncoder:
    """Encode through Pillow (HEIF input via pillow-heif)."""

    def __init__(self, options: Optional[EncodingOptions] = None):
        self.options = options or EncodingOptions()
        # Last decoded image, per worker thread.
        self._local = threading.local()

    def _decode(self, raw: bytes) -> Image.Image:
        cached_raw = getattr(self._local, "raw", None)
        if cached_raw is raw:
            return self._local.image

        img = decode_image(raw)
        self._local.raw = raw
        self._local.image = img
        return img

    def encode(self, raw: bytes, quality: int) -> bytes:
        img = self._decode(raw)
        buffer = BytesIO()
        started = time.perf_counter()
        try:
            img.save(
                buffer,
                format="JPEG",
                quality=int(quality),
                optimize=self.options.optimize,
                progressive=self.options.progressive,
                subsampling=self.options.subsampling,
            )
        except (OSError, ValueError) as e:
            raise EncodeError(f"JPEG encode failed at quality {quality}: {e}") from e
        logger.debug(f"Pillow encode q={quality}: {buffer.tell()} bytes in {time.perf_counter() - started:.3f}s")
        return buffer.getvalue()


def flatten_to_rgb(img: Image.Image) -> Image.Image:
    """Normalize to RGB; transparent pixels are flattened onto white."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    # Force the lazy decode now so format errors surface inside decode_image.
    img.load()
    return img


# -----------------------------
# OpenCV backend
# -----------------------------
_CV2_SAMPLING = {
    "4:4:4": cv2.IMWRITE_JPEG_SAMPLING_FACTOR_444,
    "4:2:2": cv2.IMWRITE_JPEG_SAMPLING_FACTOR_422,
    "4:2:0": cv2.IMWRITE_JPEG_SAMPLING_FACTOR_420,
}


def pil_to_bgr(img: Image.Image) -> np.ndarray:
    """Convert PIL RGB image to OpenCV BGR ndarray."""
    return cv2.cvtColor(np.asarray(img), cv2.COLOR_RGB2BGR)


class OpenCVEncoder:
    """Encode through OpenCV's libjpeg (decoded by Pillow), one internal thread per call."""

    def __init__(self, options: Optional[EncodingOptions] = None):
        self.options = options or EncodingOptions()
        # One internal thread per encode call.
        cv2.setNumThreads(1)
        self._params = [
            cv2.IMWRITE_JPEG_PROGRESSIVE, int(self.options.progressive),
            cv2.IMWRITE_JPEG_OPTIMIZE, int(self.options.optimize),
            cv2.IMWRITE_JPEG_SAMPLING_FACTOR, _CV2_SAMPLING[self.options.subsampling],
        ]
        self._local = threading.local()

    def _decode(self, raw: bytes) -> np.ndarray:
        if getattr(self._local, "raw", None) is raw:
            return self._local.image

        image_bgr = pil_to_bgr(decode_image(raw))
        self._local.raw = raw
        self._local.image = image_bgr
        return image_bgr

    def encode(self, raw: bytes, quality: int) -> bytes:
        image_bgr = self._decode(raw)
        ok, buffer = cv2.imencode(".jpg", image_bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality), *self._params])
        if not ok:
            raise EncodeError(f"JPEG encode failed at quality {quality}")
        return buffer.tobytes()


def make_encoder(config: CompressionConfig) -> Encoder:
    """Build the encoder backend named by the configuration."""
    if config.encoder == "opencv":
        return OpenCVEncoder(config.encoding)
    return PillowEncoder(config.encoding)
