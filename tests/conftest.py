"""
Shared helpers for the sprite sheet generator tests.

Pixel buffers built here use the library's convention: BGRA, uint8, row 0
is the bottom row.
"""

from pathlib import Path

import cv2
import numpy as np
import pytest

from spritesheet_generator import Node, Sheet

RED = (0, 0, 255, 255)
GREEN = (0, 255, 0, 255)
BLUE = (255, 0, 0, 255)


def solid(width: int, height: int, color: tuple[int, int, int, int]) -> np.ndarray:
    """A BGRA buffer filled with one color."""
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :] = color
    return img


def gradient(width: int, height: int) -> np.ndarray:
    """An opaque BGRA buffer where every pixel is distinct."""
    rows, cols = np.mgrid[0:height, 0:width]
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :, 0] = rows
    img[:, :, 1] = cols
    img[:, :, 2] = (rows * 7 + cols * 3) % 256
    img[:, :, 3] = 255
    return img


def write_png(path: Path, top_left_img: np.ndarray) -> Path:
    """Write an image given in OpenCV (top-left origin) row order."""
    ok, data = cv2.imencode(".png", top_left_img)
    assert ok, "Failed to encode test image"
    path.write_bytes(data.tobytes())
    return path


@pytest.fixture
def sample_sheet() -> Sheet:
    """A sheet with overlapping, scaled and out-of-bounds nodes."""
    rng = np.random.default_rng(1234)
    noisy = rng.integers(0, 256, size=(5, 7, 4), dtype=np.uint8)
    sheet = Sheet("sample", 48, 32)
    sheet.add_node(Node.from_image("red", solid(8, 8, RED), x=2.0, y=3.0))
    sheet.add_node(Node.from_image("noisy", noisy, x=6.25, y=4.5, x_scale=1.5, y_scale=0.75))
    sheet.add_node(Node.from_image("blue", solid(4, 6, BLUE), x=40.0, y=28.0, x_scale=3.0, y_scale=2.0))
    return sheet


@pytest.fixture
def texture_dir(tmp_path: Path) -> Path:
    """A texture directory with two valid images."""
    directory = tmp_path / "res"
    directory.mkdir()
    write_png(directory / "a.png", solid(4, 4, RED))
    write_png(directory / "b.png", solid(6, 2, GREEN))
    return directory
