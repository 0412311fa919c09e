"""
Sprite Sheet Generator

Places textures on a fixed-size canvas at explicit positions and scales,
saves the layout as JSON or compact binary, and exports the composited atlas
as PNG or JPG.

Public API:
    - Node, Sheet: The data model
    - render, export: Compositing of a sheet into an atlas image
    - save, load, dumps, loads: Sheet persistence in both formats
    - load_textures: Directory scan for source textures
    - EditorContext: Editing session holding the open sheet
"""

from spritesheet_generator.codec import ImageFormat, decode, encode
from spritesheet_generator.compositor import export, render
from spritesheet_generator.config import GeneratorConfig
from spritesheet_generator.context import EditorContext
from spritesheet_generator.errors import (
    DecodeError, EncodeError, ParseError, RenderError, SheetIOError, SpriteSheetError,
)
from spritesheet_generator.model import Node, Sheet
from spritesheet_generator.persistence import SheetFormat, dumps, load, loads, save
from spritesheet_generator.textures import Texture, load_textures

__version__ = "0.1.0"
__all__ = [
    "Node", "Sheet", "Texture",
    "ImageFormat", "SheetFormat", "GeneratorConfig", "EditorContext",
    "decode", "encode", "render", "export",
    "save", "load", "dumps", "loads", "load_textures",
    "SpriteSheetError", "DecodeError", "EncodeError", "RenderError", "ParseError", "SheetIOError",
    "__version__",
]
