#!/usr/bin/env python3
"""
Sprite Sheet Generator - Command Line Interface

Creates sprite sheets, places textures on them at explicit positions and
scales, saves them as JSON or binary files and exports the composited atlas
as PNG or JPG.

Textures are read from the textures directory, sheets are saved to the saves
directory and atlases are written to the output directory. All three can be
set with options or environment variables.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from spritesheet_generator import persistence
from spritesheet_generator.codec import ImageFormat
from spritesheet_generator.config import (
    DEFAULT_OUTPUT_DIR, DEFAULT_SAVES_DIR, DEFAULT_TEXTURES_DIR,
    OUTPUT_DIR_ENV, SAVES_DIR_ENV, TEXTURES_DIR_ENV, GeneratorConfig,
)
from spritesheet_generator.context import EditorContext
from spritesheet_generator.errors import SpriteSheetError
from spritesheet_generator.persistence import SheetFormat

SHEET_FORMATS = click.Choice(["json", "binary"], case_sensitive=False)
IMAGE_FORMATS = click.Choice(["png", "jpg"], case_sensitive=False)


def resolve_sheet_path(config: GeneratorConfig, sheet: str) -> Path:
    """
    Accept either a path to a saved sheet or a sheet name in the saves directory.

    The argument is a path if it names an existing file or ends in a sheet
    extension, so names containing dots like "level.1" are still looked up.
    """
    path = Path(sheet)
    extensions = {f".{fmt.extension}" for fmt in SheetFormat}
    if path.is_file() or path.suffix.lower() in extensions:
        return path
    for fmt in SheetFormat:
        candidate = persistence.save_path(sheet, config.saves_dir, fmt)
        if candidate.exists():
            return candidate
    raise click.ClickException(f"No saved sheet named {sheet!r} in {config.saves_dir}")


def open_sheet(editor: EditorContext, sheet: str) -> Path:
    path = resolve_sheet_path(editor.config, sheet)
    try:
        editor.load(path)
    except SpriteSheetError as e:
        raise click.ClickException(f"Could not load {path}: {e}") from e
    return path


def resave(editor: EditorContext, path: Path) -> None:
    try:
        persistence.save(editor.sheet, path, SheetFormat.from_path(path))
    except SpriteSheetError as e:
        raise click.ClickException(str(e)) from e


@click.group(context_settings=dict(show_default=True))
@click.option('--textures-dir', '-t', type=click.Path(file_okay=False, path_type=Path),
              default=DEFAULT_TEXTURES_DIR, envvar=TEXTURES_DIR_ENV,
              help='Directory scanned for .png/.jpg textures')
@click.option('--saves-dir', '-s', type=click.Path(file_okay=False, path_type=Path),
              default=DEFAULT_SAVES_DIR, envvar=SAVES_DIR_ENV,
              help='Directory for saved sheets')
@click.option('--output-dir', '-o', type=click.Path(file_okay=False, path_type=Path),
              default=DEFAULT_OUTPUT_DIR, envvar=OUTPUT_DIR_ENV,
              help='Directory for exported atlas images')
@click.option('--verbose', '-v', is_flag=True, help='Print debug logging')
@click.pass_context
def main(ctx: click.Context, textures_dir: Path, saves_dir: Path, output_dir: Path,
         verbose: bool) -> None:
    """Create, edit, save and export sprite sheets."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    config = GeneratorConfig(textures_dir=textures_dir, saves_dir=saves_dir,
                             output_dir=output_dir)
    ctx.obj = EditorContext(config)


@main.command()
@click.argument('name')
@click.argument('width', type=click.IntRange(min=1))
@click.argument('height', type=click.IntRange(min=1))
@click.option('--format', '-f', 'fmt', type=SHEET_FORMATS, default='json',
              help='Format of the saved sheet')
@click.option('--force', is_flag=True, help='Overwrite an existing saved sheet')
@click.pass_obj
def new(editor: EditorContext, name: str, width: int, height: int, fmt: str,
        force: bool) -> None:
    """Create an empty sheet NAME of WIDTH x HEIGHT pixels and save it."""
    sheet_format = SheetFormat.from_name(fmt)
    target = persistence.save_path(name, editor.config.saves_dir, sheet_format)
    if target.exists() and not force:
        raise click.ClickException(f"{target} already exists, use --force to overwrite it")
    editor.new_sheet(name, width, height)
    try:
        path = editor.save(sheet_format)
    except SpriteSheetError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Created sheet {name} ({width}x{height}) at {path}")


@main.command()
@click.pass_obj
def textures(editor: EditorContext) -> None:
    """List the textures available for placement."""
    loaded = editor.reload_textures()
    if not loaded:
        click.echo(f"No textures found in {editor.config.textures_dir}")
        return
    for i, texture in enumerate(loaded):
        click.echo(f"{i} - {texture.name} ({texture.width}x{texture.height})")


@main.command()
@click.argument('sheet')
@click.argument('texture')
@click.option('--x', '-x', type=float, default=0.0, help='Left edge of the node')
@click.option('--y', '-y', type=float, default=0.0, help='Top edge of the node')
@click.option('--x-scale', '-xs', type=float, default=1.0, help='Horizontal scale')
@click.option('--y-scale', '-ys', type=float, default=1.0, help='Vertical scale')
@click.pass_obj
def add(editor: EditorContext, sheet: str, texture: str, x: float, y: float,
        x_scale: float, y_scale: float) -> None:
    """Place TEXTURE (name or index) on SHEET."""
    path = open_sheet(editor, sheet)
    editor.reload_textures()
    try:
        node = editor.add_node(texture, x, y, x_scale, y_scale)
    except LookupError as e:
        raise click.ClickException(str(e)) from e
    resave(editor, path)
    click.echo(f"Added {node.name} at {node.x:g},{node.y:g} "
               f"as node {len(editor.sheet.nodes) - 1}")


@main.command()
@click.argument('sheet')
@click.argument('index', type=int)
@click.argument('x', type=float)
@click.argument('y', type=float)
@click.pass_obj
def move(editor: EditorContext, sheet: str, index: int, x: float, y: float) -> None:
    """Move node INDEX of SHEET to X, Y."""
    path = open_sheet(editor, sheet)
    try:
        node = editor.move_node(index, x, y)
    except IndexError as e:
        raise click.ClickException(str(e)) from e
    resave(editor, path)
    click.echo(f"Moved {node.name} to {node.x:g},{node.y:g}")


@main.command()
@click.argument('sheet')
@click.argument('index', type=int)
@click.pass_obj
def delete(editor: EditorContext, sheet: str, index: int) -> None:
    """Remove node INDEX from SHEET."""
    path = open_sheet(editor, sheet)
    try:
        node = editor.delete_node(index)
    except IndexError as e:
        raise click.ClickException(str(e)) from e
    resave(editor, path)
    click.echo(f"Deleted {node.name}")


@main.command()
@click.argument('sheet')
@click.pass_obj
def show(editor: EditorContext, sheet: str) -> None:
    """Print the nodes of SHEET."""
    open_sheet(editor, sheet)
    loaded = editor.sheet
    click.echo(f"{loaded.name} ({loaded.width}x{loaded.height}), {len(loaded.nodes)} node(s)")
    for i, node in enumerate(loaded.nodes):
        scaled_w, scaled_h = node.scaled_size()
        click.echo(f"{i} - {node.name} at {node.x:g},{node.y:g} "
                   f"size {node.width:g}x{node.height:g} "
                   f"scale {node.x_scale:g}x{node.y_scale:g} -> {scaled_w}x{scaled_h}")


@main.command()
@click.argument('sheet')
@click.option('--format', '-f', 'fmt', type=IMAGE_FORMATS, default='png',
              help='Output image format')
@click.pass_obj
def export(editor: EditorContext, sheet: str, fmt: str) -> None:
    """Render SHEET to an image in the output directory."""
    open_sheet(editor, sheet)
    try:
        path = editor.export(ImageFormat.from_name(fmt))
    except SpriteSheetError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Sprite sheet exported to {path}")


@main.command()
@click.argument('sheet')
@click.option('--to', 'fmt', type=SHEET_FORMATS, required=True, help='Target format')
@click.pass_obj
def convert(editor: EditorContext, sheet: str, fmt: str) -> None:
    """Save SHEET again in another format."""
    open_sheet(editor, sheet)
    try:
        path = editor.save(SheetFormat.from_name(fmt))
    except SpriteSheetError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Saved {editor.sheet.name} to {path}")


@main.command()
@click.pass_obj
def saves(editor: EditorContext) -> None:
    """List saved sheets."""
    found = editor.saved_sheets()
    if not found:
        click.echo(f"No saved sheets in {editor.config.saves_dir}")
        return
    for i, path in enumerate(found):
        click.echo(f"{i + 1} - {path}")


if __name__ == "__main__":
    main()
