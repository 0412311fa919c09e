"""
Exception types raised by the sprite sheet generator.
"""


class SpriteSheetError(Exception):
    """Base class for all errors raised by this package."""


class DecodeError(SpriteSheetError):
    """Image bytes could not be decoded into a pixel buffer."""


class EncodeError(SpriteSheetError):
    """A pixel buffer could not be encoded into an image file format."""


class RenderError(SpriteSheetError):
    """
    Compositing failed on a specific node.

    Attributes:
        index: Position of the offending node in the sheet's node list
        node_name: Name of the offending node
    """

    def __init__(self, message: str, index: int, node_name: str):
        super().__init__(message)
        self.index = index
        self.node_name = node_name


class ParseError(SpriteSheetError):
    """A saved sheet is structurally invalid."""


class SheetIOError(SpriteSheetError, OSError):
    """A sheet or image file could not be read or written."""
