"""CLI for working with outline files (show, check, normalize, export, recover)."""

from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from bike_outliner.config import resolve_data_directory
from bike_outliner.core.format.naming import derive_title, fix_file_name
from bike_outliner.core.format.parser import parse
from bike_outliner.core.format.serializer import outline_structure, serialize
from bike_outliner.core.persistence.export import ExportWriter
from bike_outliner.core.persistence.recovery import RecoveryStore
from bike_outliner.core.tree.markdown import render_outline_as_markdown
from bike_outliner.errors import OutlineError
from bike_outliner.logging_config import configure_logging
from bike_outliner.models.node import Document

app = typer.Typer(help="Bike outliner: inspect, normalize and export outline files.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
) -> None:
    configure_logging(verbose=verbose, quiet=quiet)


def _load(path: Path) -> Document:
    """Parse an outline file, exiting with an error message on failure."""
    if not path.is_file():
        logger.error("File not found: {}", path)
        raise typer.Exit(1)
    try:
        return parse(path.read_text(encoding="utf-8"))
    except OutlineError as e:
        logger.error("Could not read {}: {}", path, e)
        raise typer.Exit(1) from e


@app.command()
def show(
    path: Path = typer.Argument(..., help="Outline file"),
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", "-m", help="Max depth levels to render"),
    ] = None,
) -> None:
    """Print an outline as markdown."""
    document = _load(path)
    typer.echo(f"# {document.title or derive_title(path.name)}\n")
    typer.echo(render_outline_as_markdown(document, max_depth=max_depth), nl=False)


@app.command()
def check(path: Path = typer.Argument(..., help="Outline file")) -> None:
    """Verify that an outline survives a save and reload unchanged."""
    document = _load(path)
    try:
        reloaded = parse(serialize(document))
    except OutlineError as e:
        logger.error("Round trip failed: {}", e)
        raise typer.Exit(1) from e
    if outline_structure(reloaded) != outline_structure(document):
        typer.echo(f"{path}: structure changed after round trip")
        raise typer.Exit(1)
    typer.echo(f"{path}: OK ({document.item_count} items)")


@app.command()
def normalize(
    path: Path = typer.Argument(..., help="Outline file"),
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write here instead of stdout"),
    ] = None,
) -> None:
    """Rewrite an outline with presentation state stripped."""
    document = _load(path)
    try:
        text = serialize(document, title=document.title or derive_title(path.name))
    except OutlineError as e:
        logger.error("Could not serialize {}: {}", path, e)
        raise typer.Exit(1) from e
    if output is None:
        typer.echo(text, nl=False)
        return
    output.write_text(text, encoding="utf-8")
    logger.info("Wrote {}", output)


@app.command()
def export(
    path: Path = typer.Argument(..., help="Outline file"),
    dest: Annotated[Path, typer.Option("--dest", "-d", help="Destination directory")] = Path("."),
) -> None:
    """Export a normalized copy under a sanitized, non-clobbering file name."""
    document = _load(path)
    dest.mkdir(parents=True, exist_ok=True)
    try:
        text = serialize(document, title=document.title or derive_title(path.name))
        written = ExportWriter(dest).write(fix_file_name(path.name), text)
    except OutlineError as e:
        logger.error("Export failed: {}", e)
        raise typer.Exit(1) from e
    typer.echo(str(written))


@app.command()
def recover(
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", "-d", help="App data directory"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the draft here instead of stdout"),
    ] = None,
    discard: bool = typer.Option(False, "--discard", help="Delete the draft after reading it"),
) -> None:
    """Print or save the unsaved draft kept in the recovery slot."""
    store = RecoveryStore.open(data_dir or resolve_data_directory())
    try:
        draft = store.get()
        if draft is None:
            typer.echo("No unsaved draft found.")
            return
        if output is None:
            typer.echo(draft, nl=False)
        else:
            output.write_text(draft, encoding="utf-8")
            logger.info("Wrote draft to {}", output)
        if discard:
            store.discard()
    finally:
        store.close()
