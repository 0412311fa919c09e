"""
Tests for saving and loading sheets in the JSON and binary formats.
"""

import base64
import json
import stat
import struct
from pathlib import Path

import numpy as np
import pytest

from spritesheet_generator import Node, Sheet
from spritesheet_generator.compositor import render
from spritesheet_generator.errors import DecodeError, ParseError, SheetIOError
from spritesheet_generator.persistence import (
    SheetFormat, dumps, list_saved_sheets, load, loads, save, save_to_directory,
)

from conftest import RED, solid


def assert_same_sheet(loaded: Sheet, original: Sheet) -> None:
    assert (loaded.name, loaded.width, loaded.height) == \
        (original.name, original.width, original.height)
    assert [n.name for n in loaded.nodes] == [n.name for n in original.nodes], \
        "Node order should be preserved"
    assert loaded.nodes == original.nodes, "Node fields should be preserved exactly"
    for loaded_node, node in zip(loaded.nodes, original.nodes):
        assert loaded_node.is_rehydrated, "Loaded nodes should already be decoded"
        np.testing.assert_array_equal(loaded_node.pixels(), node.pixels())


@pytest.mark.parametrize("fmt", list(SheetFormat))
def test_save_load_roundtrip(tmp_path: Path, sample_sheet: Sheet, fmt: SheetFormat):
    path = save(sample_sheet, tmp_path / f"sample.{fmt.extension}", fmt)

    loaded = load(path)

    assert_same_sheet(loaded, sample_sheet)


def test_formats_render_identically(tmp_path: Path, sample_sheet: Sheet):
    """A sheet loaded from either format renders byte-identically."""
    from_json = load(save(sample_sheet, tmp_path / "s.json", SheetFormat.JSON))
    from_binary = load(save(sample_sheet, tmp_path / "s.sussg", SheetFormat.BINARY))

    expected = render(sample_sheet)
    assert render(from_json).tobytes() == expected.tobytes()
    assert render(from_binary).tobytes() == expected.tobytes()


def test_json_document_layout(sample_sheet: Sheet):
    """The JSON format is a readable object graph with base64 PNG data."""
    doc = json.loads(dumps(sample_sheet, SheetFormat.JSON))

    assert doc["name"] == "sample"
    assert (doc["width"], doc["height"]) == (48, 32)
    assert [n["name"] for n in doc["nodes"]] == ["red", "noisy", "blue"]
    noisy = doc["nodes"][1]
    assert (noisy["x"], noisy["y"], noisy["x_scale"], noisy["y_scale"]) == (6.25, 4.5, 1.5, 0.75)
    assert base64.b64decode(noisy["texture_data"]).startswith(b"\x89PNG")


def test_binary_is_smaller_than_json(sample_sheet: Sheet):
    binary = dumps(sample_sheet, SheetFormat.BINARY)

    assert binary.startswith(b"SUSG")
    assert len(binary) < len(dumps(sample_sheet, SheetFormat.JSON))


def test_binary_skips_unknown_tags(sample_sheet: Sheet):
    data = dumps(sample_sheet, SheetFormat.BINARY) + struct.pack("<BI", 99, 3) + b"new"

    loaded = loads(data, SheetFormat.BINARY)

    assert_same_sheet(loaded, sample_sheet)


def test_load_dispatches_on_extension_case_insensitively(tmp_path: Path, sample_sheet: Sheet):
    path = tmp_path / "SAMPLE.SUSSG"
    path.write_bytes(dumps(sample_sheet, SheetFormat.BINARY))

    assert load(path).name == "sample"


def test_empty_sheet_roundtrip():
    sheet = Sheet("empty", 1, 1)

    for fmt in SheetFormat:
        loaded = loads(dumps(sheet, fmt), fmt)
        assert loaded == sheet


@pytest.mark.parametrize("data", [
    b"{not json",
    b"[]",
    b'{"name": "s", "width": 4, "height": 4}',
    b'{"name": "s", "width": "4", "height": 4, "nodes": []}',
    b'{"name": "s", "width": 4, "height": 4, "nodes": [{"name": "n"}]}',
    b'{"format_version": 2, "name": "s", "width": 4, "height": 4, "nodes": []}',
    b'{"name": "s", "width": 4, "height": 4, "nodes": [{"name": "n", "x": 0, "y": 0, '
    b'"width": 1, "height": 1, "texture_data": "@@@"}]}',
    b'{"name": "s", "width": 4, "height": 4, "nodes": [{"name": "n", "x": 0, "y": 0, '
    b'"x_scale": "2", "width": 1, "height": 1, "texture_data": ""}]}',
    b'{"name": "s", "width": 4, "height": 4, "nodes": [{"name": "n", "x": 0, "y": 0, '
    b'"y_scale": true, "width": 1, "height": 1, "texture_data": ""}]}',
    b'{"name": "s", "width": 4, "height": 4, "nodes": [{"name": "n", "x": 0, "y": 0, '
    b'"x_scale": null, "width": 1, "height": 1, "texture_data": ""}]}',
])
def test_invalid_json(data: bytes):
    with pytest.raises(ParseError):
        loads(data, SheetFormat.JSON)


def test_invalid_binary(sample_sheet: Sheet):
    data = dumps(sample_sheet, SheetFormat.BINARY)

    with pytest.raises(ParseError, match="magic"):
        loads(b"NOPE" + data[4:], SheetFormat.BINARY)

    with pytest.raises(ParseError, match="version"):
        loads(data[:4] + struct.pack("<H", 9) + data[6:], SheetFormat.BINARY)

    with pytest.raises(ParseError, match="Truncated"):
        loads(data[:-10], SheetFormat.BINARY)

    with pytest.raises(ParseError, match="too short"):
        loads(b"SU", SheetFormat.BINARY)

    header = struct.pack("<4sH", b"SUSG", 1)
    with pytest.raises(ParseError, match="Missing 'width'"):
        loads(header + struct.pack("<BI", 1, 1) + b"s", SheetFormat.BINARY)

    with pytest.raises(ParseError, match="Invalid size"):
        loads(header + struct.pack("<BI", 2, 2) + b"\x00\x00", SheetFormat.BINARY)


@pytest.mark.parametrize("key, value", [
    ("x", "NaN"),
    ("y", "Infinity"),
    ("x_scale", "-Infinity"),
    ("width", "NaN"),
    ("height", "1e400"),
    ("x", "1" + "0" * 400),
])
def test_json_rejects_non_finite_numbers(key: str, value: str):
    fields = {"x": "0", "y": "0", "width": "1", "height": "1", key: value}
    node = ", ".join(f'"{k}": {v}' for k, v in fields.items())
    text = ('{"name": "s", "width": 4, "height": 4, '
            f'"nodes": [{{"name": "n", "texture_data": "", {node}}}]}}')

    with pytest.raises(ParseError, match=key):
        loads(text.encode("utf-8"), SheetFormat.JSON)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_binary_rejects_non_finite_numbers(value: float):
    sheet = Sheet("s", 8, 8, nodes=[Node.from_image("red", solid(2, 2, RED))])
    data = dumps(sheet, SheetFormat.BINARY)
    scale = struct.pack("<BId", 4, 8, 1.0)
    assert data.count(scale) == 1

    with pytest.raises(ParseError, match="x_scale"):
        loads(data.replace(scale, struct.pack("<BId", 4, 8, value)), SheetFormat.BINARY)


def test_load_unknown_extension(tmp_path: Path):
    path = tmp_path / "sheet.txt"
    path.write_text("{}")

    with pytest.raises(ParseError, match="extension"):
        load(path)


def test_load_missing_file(tmp_path: Path):
    with pytest.raises(SheetIOError) as exc_info:
        load(tmp_path / "missing.json")

    assert isinstance(exc_info.value, OSError), "SheetIOError should be an OSError"


def test_load_corrupt_texture():
    sheet = Sheet("s", 8, 8, nodes=[Node(name="bad", width=2.0, height=2.0, texture_data=b"nope")])

    with pytest.raises(DecodeError):
        loads(dumps(sheet, SheetFormat.JSON), SheetFormat.JSON)

    loaded = loads(dumps(sheet, SheetFormat.JSON), SheetFormat.JSON, rehydrate=False)
    assert not loaded.nodes[0].is_rehydrated


def test_save_write_failure(tmp_path: Path, sample_sheet: Sheet):
    with pytest.raises(SheetIOError):
        save(sample_sheet, tmp_path / "missing" / "sample.json", SheetFormat.JSON)


def test_save_replaces_existing_file(tmp_path: Path):
    path = tmp_path / "s.json"
    path.write_text("old contents")
    path.chmod(0o640)
    sheet = Sheet("s", 8, 8, nodes=[Node.from_image("red", solid(2, 2, RED))])

    save(sheet, path, SheetFormat.JSON)

    assert load(path) == sheet
    assert [p.name for p in tmp_path.iterdir()] == ["s.json"], "No temporary files should remain"
    assert stat.S_IMODE(path.stat().st_mode) == 0o640, "The replaced file should keep its mode"


def test_save_new_file_gets_default_mode(tmp_path: Path):
    """A newly saved sheet is created with the same mode as any other new file."""
    reference = tmp_path / "reference.txt"
    reference.write_text("x")
    sheet = Sheet("s", 8, 8)

    path = save(sheet, tmp_path / "s.sussg", SheetFormat.BINARY)

    assert stat.S_IMODE(path.stat().st_mode) == stat.S_IMODE(reference.stat().st_mode)


def test_save_to_directory_and_listing(tmp_path: Path, sample_sheet: Sheet):
    saves_dir = tmp_path / "saves"

    json_path = save_to_directory(sample_sheet, saves_dir, SheetFormat.JSON)
    binary_path = save_to_directory(sample_sheet, saves_dir, SheetFormat.BINARY)
    (saves_dir / "notes.txt").write_text("ignored")

    assert json_path == saves_dir / "sample.json"
    assert binary_path == saves_dir / "sample.sussg"
    assert list_saved_sheets(saves_dir) == [json_path, binary_path]
    assert list_saved_sheets(tmp_path / "nowhere") == []


def test_sheet_format_from_name():
    assert SheetFormat.from_name("JSON") is SheetFormat.JSON
    assert SheetFormat.from_name("binary") is SheetFormat.BINARY

    with pytest.raises(ValueError):
        SheetFormat.from_name("xml")
