"""
Data model for sprite sheets: placed nodes and the sheet that owns them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from spritesheet_generator import codec

if TYPE_CHECKING:
    from spritesheet_generator.textures import Texture


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class Node:
    """
    A single image placed on a sprite sheet.

    Attributes:
        name: Display and export label, not required to be unique
        x: Left edge in canvas space (top-left origin, y pointing down), pre-scale
        y: Top edge in canvas space, pre-scale
        x_scale: Horizontal multiplier applied after placement
        y_scale: Vertical multiplier applied after placement
        width: Unscaled declared width, must be > 0 when rendering
        height: Unscaled declared height, must be > 0 when rendering
        texture_data: PNG-encoded source image, the persisted form of the pixels
    """
    name: str
    x: float = 0.0
    y: float = 0.0
    x_scale: float = 1.0
    y_scale: float = 1.0
    width: float = 0.0
    height: float = 0.0
    texture_data: bytes = b""
    _pixels: np.ndarray | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_image(cls, name: str, pixels: np.ndarray, x: float = 0.0, y: float = 0.0,
                   x_scale: float = 1.0, y_scale: float = 1.0) -> Node:
        """Create a node from a bottom-left origin BGRA buffer, sized to the image."""
        height, width = pixels.shape[:2]
        data = codec.encode(pixels, width, height, codec.ImageFormat.PNG)
        return cls(name=name, x=x, y=y, x_scale=x_scale, y_scale=y_scale,
                   width=float(width), height=float(height),
                   texture_data=data, _pixels=pixels.copy())

    @classmethod
    def from_texture(cls, texture: Texture, x: float = 0.0, y: float = 0.0,
                     x_scale: float = 1.0, y_scale: float = 1.0) -> Node:
        return cls.from_image(texture.name, texture.pixels, x, y, x_scale, y_scale)

    @property
    def is_rehydrated(self) -> bool:
        return self._pixels is not None

    def rehydrate(self) -> np.ndarray:
        """Decode texture_data into the node's pixel buffer, replacing any cached one."""
        pixels, _, _ = codec.decode(self.texture_data)
        self._pixels = pixels
        return pixels

    def pixels(self) -> np.ndarray:
        """Return the decoded source pixels, decoding them on first use."""
        if self._pixels is None:
            return self.rehydrate()
        return self._pixels

    def scaled_size(self) -> tuple[int, int]:
        return (round_half_up(self.width * self.x_scale),
                round_half_up(self.height * self.y_scale))

    def clamp_to(self, canvas_width: float, canvas_height: float) -> None:
        """
        Keep the unscaled footprint of the node inside the canvas.

        Scaling is not taken into account, so a scaled node may still extend
        past the canvas edge; the compositor clips it.
        """
        self.x = min(max(self.x, 0.0), max(canvas_width - self.width, 0.0))
        self.y = min(max(self.y, 0.0), max(canvas_height - self.height, 0.0))


@dataclass
class Sheet:
    """
    A fixed-size canvas and the ordered nodes placed on it.

    Node order is paint order: on overlap, later nodes win.
    """
    name: str
    width: int
    height: int
    nodes: list[Node] = field(default_factory=list)

    def add_node(self, node: Node) -> Node:
        self.nodes.append(node)
        return node

    def remove_node(self, index: int) -> Node:
        if not 0 <= index < len(self.nodes):
            raise IndexError(f"Sheet {self.name!r} has no node {index}")
        return self.nodes.pop(index)

    def move_node(self, index: int, x: float, y: float) -> Node:
        if not 0 <= index < len(self.nodes):
            raise IndexError(f"Sheet {self.name!r} has no node {index}")
        node = self.nodes[index]
        node.x = float(x)
        node.y = float(y)
        node.clamp_to(self.width, self.height)
        return node

    def rehydrate(self) -> None:
        for node in self.nodes:
            node.pixels()
