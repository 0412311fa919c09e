"""
Saving and loading sprite sheets.

Two interchangeable formats are supported:

JSON (.json)
    Human readable object graph. Node images are embedded as base64 PNG.

Binary (.sussg)
    Compact tagged encoding of the same fields.

    Offset Size Description
    ------ ---- -----------
    0      4    Magic "SUSG"
    4      2    Format version (uint16)
    6      ...  Sheet records

    Every record is a uint8 tag, a uint32 payload length and the payload.
    All integers are little-endian.

    SHEET RECORDS

    Tag Payload
    --- -------
    1   Sheet name (UTF-8)
    2   Width (int32)
    3   Height (int32)
    4   Node: a nested sequence of node records, one per node, in paint order

    NODE RECORDS

    Tag Payload
    --- -------
    1   Node name (UTF-8)
    2   X (float64)
    3   Y (float64)
    4   X scale (float64)
    5   Y scale (float64)
    6   Width (float64)
    7   Height (float64)
    8   PNG texture data

    Unknown tags are skipped so newer files can add fields.

Only the encoded texture data of each node is stored; decoded pixels are
rebuilt from it when a sheet is loaded.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import math
import os
import stat
import struct
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

from spritesheet_generator.errors import ParseError, SheetIOError
from spritesheet_generator.model import Node, Sheet

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

BINARY_MAGIC = b"SUSG"
BINARY_HEADER_FMT = "<4sH"
RECORD_FMT = "<BI"

SHEET_NAME, SHEET_WIDTH, SHEET_HEIGHT, SHEET_NODE = 1, 2, 3, 4
(NODE_NAME, NODE_X, NODE_Y, NODE_X_SCALE, NODE_Y_SCALE,
 NODE_WIDTH, NODE_HEIGHT, NODE_TEXTURE) = range(1, 9)

NODE_FLOAT_FIELDS = {
    NODE_X: "x",
    NODE_Y: "y",
    NODE_X_SCALE: "x_scale",
    NODE_Y_SCALE: "y_scale",
    NODE_WIDTH: "width",
    NODE_HEIGHT: "height",
}


class SheetFormat(Enum):
    JSON = "json"
    BINARY = "sussg"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> SheetFormat:
        key = name.strip().lower().lstrip(".")
        if key in ("json", "text"):
            return cls.JSON
        if key in ("binary", "bin", "sussg"):
            return cls.BINARY
        raise ValueError(f"Unsupported sheet format: {name!r}")

    @classmethod
    def from_path(cls, path: str | Path) -> SheetFormat:
        suffix = Path(path).suffix.lower().lstrip(".")
        for fmt in cls:
            if fmt.extension == suffix:
                return fmt
        raise ParseError(f"Unrecognized saved sheet extension: {Path(path).name}")


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def sheet_to_dict(sheet: Sheet) -> dict[str, Any]:
    return {
        "format_version": FORMAT_VERSION,
        "name": sheet.name,
        "width": sheet.width,
        "height": sheet.height,
        "nodes": [
            {
                "name": node.name,
                "x": node.x,
                "y": node.y,
                "x_scale": node.x_scale,
                "y_scale": node.y_scale,
                "width": node.width,
                "height": node.height,
                "texture_data": base64.b64encode(node.texture_data).decode("ascii"),
            }
            for node in sheet.nodes
        ],
    }


def _require(data: dict[str, Any], key: str, types: type | tuple[type, ...], where: str) -> Any:
    if key not in data:
        raise ParseError(f"Missing '{key}' in {where}")
    value = data[key]
    # bool is an int subclass, but never a valid number here
    if isinstance(value, bool) or not isinstance(value, types):
        raise ParseError(f"Invalid '{key}' in {where}: {value!r}")
    return value


def _finite(value: float, key: str, where: str) -> float:
    try:
        value = float(value)
    except OverflowError as e:
        raise ParseError(f"Out of range '{key}' in {where}") from e
    if not math.isfinite(value):
        raise ParseError(f"Non-finite '{key}' in {where}: {value}")
    return value


def _number(data: dict[str, Any], key: str, where: str, default: float | None = None) -> float:
    if default is not None and key not in data:
        return default
    return _finite(_require(data, key, (int, float), where), key, where)


def sheet_from_dict(data: Any) -> Sheet:
    if not isinstance(data, dict):
        raise ParseError("Saved sheet must be a JSON object")

    version = data.get("format_version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ParseError(f"Unsupported sheet format version: {version!r}")

    nodes_data = _require(data, "nodes", list, "sheet")
    nodes = []
    for i, node_data in enumerate(nodes_data):
        where = f"node {i}"
        if not isinstance(node_data, dict):
            raise ParseError(f"{where} must be a JSON object")
        try:
            texture_data = base64.b64decode(
                _require(node_data, "texture_data", str, where), validate=True)
        except binascii.Error as e:
            raise ParseError(f"Invalid base64 texture data in {where}: {e}") from e
        nodes.append(Node(
            name=_require(node_data, "name", str, where),
            x=_number(node_data, "x", where),
            y=_number(node_data, "y", where),
            x_scale=_number(node_data, "x_scale", where, default=1.0),
            y_scale=_number(node_data, "y_scale", where, default=1.0),
            width=_number(node_data, "width", where),
            height=_number(node_data, "height", where),
            texture_data=texture_data,
        ))

    return Sheet(
        name=_require(data, "name", str, "sheet"),
        width=_require(data, "width", int, "sheet"),
        height=_require(data, "height", int, "sheet"),
        nodes=nodes,
    )


def _dumps_json(sheet: Sheet) -> bytes:
    return json.dumps(sheet_to_dict(sheet), indent=4).encode("utf-8")


def _loads_json(data: bytes) -> Sheet:
    try:
        doc = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Invalid JSON sheet: {e}") from e
    try:
        return sheet_from_dict(doc)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid sheet field: {e}") from e


# ---------------------------------------------------------------------------
# Binary
# ---------------------------------------------------------------------------

def _record(tag: int, payload: bytes) -> bytes:
    return struct.pack(RECORD_FMT, tag, len(payload)) + payload


def _encode_node(node: Node) -> bytes:
    parts = [_record(NODE_NAME, node.name.encode("utf-8"))]
    for tag, attr in NODE_FLOAT_FIELDS.items():
        parts.append(_record(tag, struct.pack("<d", getattr(node, attr))))
    parts.append(_record(NODE_TEXTURE, node.texture_data))
    return b"".join(parts)


def _dumps_binary(sheet: Sheet) -> bytes:
    parts = [
        struct.pack(BINARY_HEADER_FMT, BINARY_MAGIC, FORMAT_VERSION),
        _record(SHEET_NAME, sheet.name.encode("utf-8")),
        _record(SHEET_WIDTH, struct.pack("<i", sheet.width)),
        _record(SHEET_HEIGHT, struct.pack("<i", sheet.height)),
    ]
    for node in sheet.nodes:
        parts.append(_record(SHEET_NODE, _encode_node(node)))
    return b"".join(parts)


def _iter_records(data: bytes, where: str) -> Iterator[tuple[int, bytes]]:
    """Yield (tag, payload) pairs, failing on any truncated record."""
    header_len = struct.calcsize(RECORD_FMT)
    offset = 0
    while offset < len(data):
        if offset + header_len > len(data):
            raise ParseError(f"Truncated record header in {where} at offset {offset}")
        tag, length = struct.unpack_from(RECORD_FMT, data, offset)
        offset += header_len
        if offset + length > len(data):
            raise ParseError(f"Truncated record {tag} in {where}: "
                             f"needs {length} bytes, {len(data) - offset} left")
        yield tag, data[offset:offset + length]
        offset += length


def _unpack(fmt: str, payload: bytes, field_name: str) -> Any:
    if len(payload) != struct.calcsize(fmt):
        raise ParseError(f"Invalid size {len(payload)} for field '{field_name}'")
    return struct.unpack(fmt, payload)[0]


def _decode_text(payload: bytes, field_name: str) -> str:
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Invalid UTF-8 in field '{field_name}': {e}") from e


def _decode_node(payload: bytes, index: int) -> Node:
    where = f"node {index}"
    fields: dict[str, Any] = {"x_scale": 1.0, "y_scale": 1.0}
    for tag, value in _iter_records(payload, where):
        if tag == NODE_NAME:
            fields["name"] = _decode_text(value, "name")
        elif tag in NODE_FLOAT_FIELDS:
            attr = NODE_FLOAT_FIELDS[tag]
            fields[attr] = _finite(_unpack("<d", value, attr), attr, where)
        elif tag == NODE_TEXTURE:
            fields["texture_data"] = bytes(value)
        else:
            logger.debug("Skipping unknown tag %d in %s", tag, where)

    for required in ("name", "x", "y", "width", "height", "texture_data"):
        if required not in fields:
            raise ParseError(f"Missing '{required}' in {where}")
    return Node(**fields)


def _loads_binary(data: bytes) -> Sheet:
    header_len = struct.calcsize(BINARY_HEADER_FMT)
    if len(data) < header_len:
        raise ParseError("Binary sheet is too short")
    magic, version = struct.unpack_from(BINARY_HEADER_FMT, data, 0)
    if magic != BINARY_MAGIC:
        raise ParseError(f"Not a binary sheet file (magic {magic!r})")
    if version != FORMAT_VERSION:
        raise ParseError(f"Unsupported sheet format version: {version}")

    fields: dict[str, Any] = {}
    nodes: list[Node] = []
    for tag, value in _iter_records(data[header_len:], "sheet"):
        if tag == SHEET_NAME:
            fields["name"] = _decode_text(value, "name")
        elif tag == SHEET_WIDTH:
            fields["width"] = _unpack("<i", value, "width")
        elif tag == SHEET_HEIGHT:
            fields["height"] = _unpack("<i", value, "height")
        elif tag == SHEET_NODE:
            nodes.append(_decode_node(value, len(nodes)))
        else:
            logger.debug("Skipping unknown tag %d in sheet", tag)

    for required in ("name", "width", "height"):
        if required not in fields:
            raise ParseError(f"Missing '{required}' in sheet")
    return Sheet(nodes=nodes, **fields)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def dumps(sheet: Sheet, fmt: SheetFormat) -> bytes:
    """Serialize a sheet to bytes in the given format."""
    if fmt is SheetFormat.JSON:
        return _dumps_json(sheet)
    return _dumps_binary(sheet)


def loads(data: bytes, fmt: SheetFormat, rehydrate: bool = True) -> Sheet:
    """
    Deserialize a sheet from bytes.

    Args:
        data: Serialized sheet
        fmt: Format the bytes are in
        rehydrate: If True, decode every node's texture data before returning

    Returns:
        The loaded sheet

    Raises:
        ParseError: If the data is structurally invalid.
        DecodeError: If a node's texture data is not a valid image.
    """
    sheet = _loads_json(data) if fmt is SheetFormat.JSON else _loads_binary(data)
    if rehydrate:
        sheet.rehydrate()
    return sheet


def _new_file_mode(path: Path) -> int:
    """Mode for a replaced file: the existing one's, or what open() would give."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def save(sheet: Sheet, path: str | Path, fmt: SheetFormat) -> Path:
    """
    Save a sheet to a file.

    The whole file is serialized in memory first and then written to a
    temporary file next to the target, which replaces the target in one step.
    An existing file keeps its permissions; a new one gets the usual
    umask-based mode.

    Raises:
        SheetIOError: If the file can't be written.
    """
    path = Path(path)
    data = dumps(sheet, fmt)

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{path.name}.",
                                         suffix=".tmp", delete=False) as f:
            tmp_name = f.name
            f.write(data)
        # NamedTemporaryFile is always created 0600
        os.chmod(tmp_name, _new_file_mode(path))
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise SheetIOError(f"Could not write {path}: {e}") from e

    logger.info("Saved sheet %r to %s (%d bytes, %s)", sheet.name, path, len(data), fmt.name)
    return path


def load(path: str | Path) -> Sheet:
    """
    Load a sheet from a file, choosing the format from its extension.

    Every node's pixels are decoded before the sheet is returned.

    Raises:
        ParseError: If the extension is unknown or the file is structurally invalid.
        SheetIOError: If the file can't be read.
        DecodeError: If a node's texture data is not a valid image.
    """
    path = Path(path)
    fmt = SheetFormat.from_path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise SheetIOError(f"Could not read {path}: {e}") from e

    sheet = loads(data, fmt)
    logger.info("Loaded sheet %r from %s with %d node(s)", sheet.name, path, len(sheet.nodes))
    return sheet


def save_path(name: str, saves_dir: str | Path, fmt: SheetFormat) -> Path:
    return Path(saves_dir) / f"{name}.{fmt.extension}"


def save_to_directory(sheet: Sheet, saves_dir: str | Path, fmt: SheetFormat) -> Path:
    """Save a sheet as ``<saves_dir>/<sheet name>.<ext>``, creating the directory."""
    saves_dir = Path(saves_dir)
    try:
        saves_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SheetIOError(f"Could not create {saves_dir}: {e}") from e
    return save(sheet, save_path(sheet.name, saves_dir, fmt), fmt)


def list_saved_sheets(saves_dir: str | Path) -> list[Path]:
    """List the files in saves_dir that look like saved sheets."""
    saves_dir = Path(saves_dir)
    if not saves_dir.is_dir():
        return []
    extensions = {f".{fmt.extension}" for fmt in SheetFormat}
    return sorted(p for p in saves_dir.iterdir()
                  if p.is_file() and p.suffix.lower() in extensions)
