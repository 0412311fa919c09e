"""
Image codec glue between encoded image bytes and raw pixel buffers.

Pixel buffers are numpy arrays of shape (height, width, 4), dtype uint8, in
BGRA channel order. Row 0 is the *bottom* row of the image, matching the
canvas coordinate convention of the compositor. OpenCV stores images with
row 0 at the top, so rows are flipped here and nowhere else.
"""

from __future__ import annotations

import logging
from enum import Enum

import cv2
import numpy as np

from spritesheet_generator.errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

JPG_QUALITY = 75


class ImageFormat(Enum):
    """Output image formats. Only PNG is lossless."""
    PNG = "png"
    JPG = "jpg"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> ImageFormat:
        key = name.strip().lower().lstrip(".")
        if key == "jpeg":
            key = "jpg"
        for fmt in cls:
            if fmt.value == key:
                return fmt
        raise ValueError(f"Unsupported image format: {name!r}")


def to_bgra(img: np.ndarray) -> np.ndarray:
    """
    Promote a grayscale, BGR or BGRA image to BGRA.

    Args:
        img: Image as returned by cv2.imdecode with IMREAD_UNCHANGED

    Returns:
        BGRA image (uint8)
    """
    if img.dtype != np.uint8:
        # 16-bit PNGs decode as uint16
        img = (img / 257).astype(np.uint8)

    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGRA)
    if img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2BGRA)
    if img.shape[2] == 4:
        return img
    raise DecodeError(f"Unsupported channel count: {img.shape[2]}")


def decode(data: bytes) -> tuple[np.ndarray, int, int]:
    """
    Decode PNG or JPG bytes into a bottom-left origin BGRA buffer.

    Args:
        data: Encoded image bytes

    Returns:
        Tuple of (pixels, width, height)

    Raises:
        DecodeError: If the bytes are empty, malformed or not a supported image.
    """
    if not data:
        raise DecodeError("Cannot decode empty image data")

    buf = np.frombuffer(data, dtype=np.uint8)
    try:
        img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeError(f"Malformed image data: {e}") from e

    if img is None or img.size == 0:
        raise DecodeError(f"Could not decode {len(data)} bytes of image data")

    pixels = np.ascontiguousarray(np.flipud(to_bgra(img)))
    height, width = pixels.shape[:2]
    logger.debug("Decoded %d bytes into %dx%d pixels", len(data), width, height)
    return pixels, width, height


def encode(pixels: np.ndarray, width: int, height: int,
           fmt: ImageFormat = ImageFormat.PNG) -> bytes:
    """
    Encode a bottom-left origin BGRA buffer as PNG or JPG.

    JPG has no alpha channel, so it is dropped before encoding.

    Args:
        pixels: BGRA buffer of shape (height, width, 4)
        width: Declared width of the buffer
        height: Declared height of the buffer
        fmt: Target image format

    Returns:
        Encoded image bytes

    Raises:
        EncodeError: If the buffer does not match the declared size or the
            encoder fails.
    """
    if pixels.shape[:2] != (height, width) or pixels.ndim != 3 or pixels.shape[2] != 4:
        raise EncodeError(
            f"Pixel buffer of shape {pixels.shape} does not match {width}x{height} BGRA")

    img = np.flipud(pixels)
    if fmt is ImageFormat.JPG:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
        params = [cv2.IMWRITE_JPEG_QUALITY, JPG_QUALITY]
    else:
        img = np.ascontiguousarray(img)
        params = []

    try:
        ok, out = cv2.imencode(f".{fmt.extension}", img, params)
    except cv2.error as e:
        raise EncodeError(f"Could not encode {width}x{height} image as {fmt.name}: {e}") from e
    if not ok:
        raise EncodeError(f"Could not encode {width}x{height} image as {fmt.name}")

    return out.tobytes()
