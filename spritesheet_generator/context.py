"""
Editing session state: the open sheet, the available textures and the
operations an editor performs on them.

An EditorContext is created by the caller and passed around explicitly.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from spritesheet_generator import compositor, persistence
from spritesheet_generator.codec import ImageFormat
from spritesheet_generator.config import GeneratorConfig
from spritesheet_generator.errors import SpriteSheetError
from spritesheet_generator.model import Node, Sheet
from spritesheet_generator.persistence import SheetFormat
from spritesheet_generator.textures import Texture, find_texture, load_textures

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "new_sprite_sheet"
DEFAULT_SHEET_SIZE = 512


class EditorContext:
    """
    Holds the sheet being edited and the textures that can be placed on it.

    Args:
        config: Directory layout for textures, saves and exports
        sheet: Initial sheet; a new empty one is created if omitted
    """

    def __init__(self, config: GeneratorConfig | None = None, sheet: Sheet | None = None):
        self.config = config or GeneratorConfig()
        self.sheet = sheet or Sheet(DEFAULT_SHEET_NAME, DEFAULT_SHEET_SIZE, DEFAULT_SHEET_SIZE)
        self.textures: list[Texture] = []
        self.log: list[str] = []

    def new_sheet(self, name: str, width: int, height: int) -> Sheet:
        self.sheet = Sheet(name, width, height)
        return self.sheet

    def reload_textures(self) -> list[Texture]:
        self.textures = load_textures(self.config.textures_dir)
        return self.textures

    def texture(self, key: str | int) -> Texture:
        return find_texture(self.textures, str(key))

    def add_node(self, texture: str | int, x: float = 0.0, y: float = 0.0,
                 x_scale: float = 1.0, y_scale: float = 1.0) -> Node:
        """Place a loaded texture on the sheet, clamped to the canvas like a drop."""
        node = Node.from_texture(self.texture(texture), x, y, x_scale, y_scale)
        node.clamp_to(self.sheet.width, self.sheet.height)
        return self.sheet.add_node(node)

    def move_node(self, index: int, x: float, y: float) -> Node:
        return self.sheet.move_node(index, x, y)

    def scale_node(self, index: int, x_scale: float, y_scale: float) -> Node:
        if not 0 <= index < len(self.sheet.nodes):
            raise IndexError(f"Sheet {self.sheet.name!r} has no node {index}")
        node = self.sheet.nodes[index]
        node.x_scale = float(x_scale)
        node.y_scale = float(y_scale)
        return node

    def delete_node(self, index: int) -> Node:
        return self.sheet.remove_node(index)

    def export(self, fmt: ImageFormat = ImageFormat.PNG) -> Path:
        return compositor.export(self.sheet, self.config.output_dir, fmt)

    def save(self, fmt: SheetFormat = SheetFormat.JSON) -> Path:
        return persistence.save_to_directory(self.sheet, self.config.saves_dir, fmt)

    def load(self, path: str | Path) -> Sheet:
        """Replace the open sheet with one loaded from path; unchanged on failure."""
        sheet = persistence.load(path)
        self.sheet = sheet
        return sheet

    def saved_sheets(self) -> list[Path]:
        return persistence.list_saved_sheets(self.config.saves_dir)

    def write_log(self, message: str) -> None:
        logger.info(message)
        self.log.append(message)

    def execute(self, command: str) -> bool:
        """
        Run a single editing command and record the outcome in the log.

        Commands:
            add <texture> [x y]      place a texture (by name or index)
            mov <node> <x> <y>       move a node
            scl <node> <xs> <ys>     scale a node
            del <node>               delete a node

        Returns:
            True if the command succeeded
        """
        try:
            parts = shlex.split(command)
        except ValueError as e:
            self.write_log(f"could not parse command: {e}")
            return False
        if not parts:
            return False

        cmd, args = parts[0].lower(), parts[1:]
        try:
            if cmd == "add" and len(args) in (1, 3):
                x, y = (float(args[1]), float(args[2])) if len(args) == 3 else (0.0, 0.0)
                node = self.add_node(args[0], x, y)
                self.write_log(f"added {node.name} at {node.x:g},{node.y:g}")
            elif cmd == "mov" and len(args) == 3:
                node = self.move_node(int(args[0]), float(args[1]), float(args[2]))
                self.write_log(f"moved {node.name} to {node.x:g},{node.y:g}")
            elif cmd == "scl" and len(args) == 3:
                node = self.scale_node(int(args[0]), float(args[1]), float(args[2]))
                self.write_log(f"scaled {node.name} to {node.x_scale:g}x{node.y_scale:g}")
            elif cmd == "del" and len(args) == 1:
                node = self.delete_node(int(args[0]))
                self.write_log(f"deleted {node.name}")
            elif cmd in ("add", "mov", "scl", "del"):
                self.write_log(f"wrong number of arguments for {cmd}")
                return False
            else:
                self.write_log(f"command {cmd} isn't defined!")
                return False
        except (LookupError, ValueError, SpriteSheetError) as e:
            self.write_log(f"{cmd} failed: {e}")
            return False
        return True
