"""
Directory layout used by the generator.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TEXTURES_DIR = "bin/res"
DEFAULT_SAVES_DIR = "bin/saves"
DEFAULT_OUTPUT_DIR = "bin/output"

TEXTURES_DIR_ENV = "SPRITESHEET_TEXTURES_DIR"
SAVES_DIR_ENV = "SPRITESHEET_SAVES_DIR"
OUTPUT_DIR_ENV = "SPRITESHEET_OUTPUT_DIR"


@dataclass
class GeneratorConfig:
    """
    Where textures are read from and where saves and exports are written.

    Attributes:
        textures_dir: Directory scanned for source textures
        saves_dir: Directory for saved sheets
        output_dir: Directory for exported atlas images
    """
    textures_dir: Path = Path(DEFAULT_TEXTURES_DIR)
    saves_dir: Path = Path(DEFAULT_SAVES_DIR)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)

    def __post_init__(self) -> None:
        self.textures_dir = Path(self.textures_dir)
        self.saves_dir = Path(self.saves_dir)
        self.output_dir = Path(self.output_dir)

    @classmethod
    def from_env(cls, base_dir: str | Path | None = None) -> GeneratorConfig:
        """Build a config from the SPRITESHEET_*_DIR environment variables."""
        base = Path(base_dir) if base_dir is not None else Path()
        return cls(
            textures_dir=base / os.environ.get(TEXTURES_DIR_ENV, DEFAULT_TEXTURES_DIR),
            saves_dir=base / os.environ.get(SAVES_DIR_ENV, DEFAULT_SAVES_DIR),
            output_dir=base / os.environ.get(OUTPUT_DIR_ENV, DEFAULT_OUTPUT_DIR),
        )
