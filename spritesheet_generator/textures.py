"""
Loading of source textures that can be placed on a sprite sheet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from spritesheet_generator import codec
from spritesheet_generator.errors import DecodeError

logger = logging.getLogger(__name__)

TEXTURE_EXTENSIONS = (".png", ".jpg")


@dataclass
class Texture:
    """
    A decoded source image offered for placement.

    Attributes:
        name: File name without extension
        pixels: Bottom-left origin BGRA buffer
        path: File the texture was loaded from
    """
    name: str
    pixels: np.ndarray = field(repr=False, compare=False)
    path: Path | None = None

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


def is_texture_file(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in TEXTURE_EXTENSIONS


def load_texture(path: str | Path) -> Texture:
    """
    Read and decode a single texture file.

    Raises:
        OSError: If the file can't be read.
        DecodeError: If the file isn't a valid image.
    """
    path = Path(path)
    pixels, _, _ = codec.decode(path.read_bytes())
    return Texture(name=path.stem, pixels=pixels, path=path)


def load_textures(directory: str | Path) -> list[Texture]:
    """
    Load all PNG and JPG files directly inside a directory.

    Subdirectories are not searched. Files that can't be read or decoded are
    skipped with a warning.

    Args:
        directory: Directory to scan

    Returns:
        Textures sorted by file name, empty if the directory doesn't exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning("Texture directory %s does not exist", directory)
        return []

    textures = []
    for path in sorted(directory.iterdir()):
        if not is_texture_file(path):
            continue
        try:
            textures.append(load_texture(path))
        except (OSError, DecodeError) as e:
            logger.warning("Skipping texture %s: %s", path, e)

    logger.info("Loaded %d texture(s) from %s", len(textures), directory)
    return textures


def find_texture(textures: list[Texture], key: str) -> Texture:
    """
    Look up a texture by name, or by index if key is an integer.

    Raises:
        LookupError: If no texture matches.
    """
    for texture in textures:
        if texture.name == key:
            return texture
    if key.lstrip("-").isdigit():
        index = int(key)
        if 0 <= index < len(textures):
            return textures[index]
    raise LookupError(f"No texture named or numbered {key!r}")
