"""Tests for the bike-outliner CLI."""

from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger
from typer.testing import CliRunner

from bike_outliner.cli import app
from bike_outliner.core.persistence.recovery import RecoveryStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def _drop_log_sinks() -> Iterator[None]:
    """Remove sinks bound to the runner's captured stderr."""
    yield
    logger.remove()


def test_show_renders_markdown(sample_file: Path) -> None:
    """show prints the title followed by the outline as markdown."""
    result = runner.invoke(app, ["show", str(sample_file)])

    assert result.exit_code == 0
    assert result.stdout.startswith("# Groceries\n")
    assert "    - [x] Apples" in result.stdout
    assert "- **Dairy fresh**" in result.stdout


def test_show_with_max_depth(sample_file: Path) -> None:
    result = runner.invoke(app, ["show", str(sample_file), "--max-depth", "0"])

    assert result.exit_code == 0
    assert "Apples" not in result.stdout
    assert "... (2 more children, id=a1)" in result.stdout


def test_show_missing_file_fails(tmp_path: Path) -> None:
    result = runner.invoke(app, ["show", str(tmp_path / "missing.bike")])
    assert result.exit_code == 1


def test_show_malformed_file_fails(tmp_path: Path) -> None:
    path = tmp_path / "broken.bike"
    path.write_text("<ul><li>", encoding="utf-8")

    result = runner.invoke(app, ["show", str(path)])

    assert result.exit_code == 1


def test_check_reports_item_count(sample_file: Path) -> None:
    result = runner.invoke(app, ["check", str(sample_file)])

    assert result.exit_code == 0
    assert result.stdout.strip() == f"{sample_file}: OK (6 items)"


def test_normalize_strips_presentation_state(sample_file: Path) -> None:
    """normalize drops decorations but keeps ids, kinds and fold state."""
    result = runner.invoke(app, ["normalize", str(sample_file)])

    assert result.exit_code == 0
    assert "task-checkbox" not in result.stdout
    assert "<title>Groceries</title>" in result.stdout
    assert 'data-folded="true"' in result.stdout
    assert 'id="a3"' in result.stdout


def test_normalize_to_output_file(sample_file: Path, tmp_path: Path) -> None:
    output = tmp_path / "out.bike"

    result = runner.invoke(app, ["normalize", str(sample_file), "-o", str(output)])

    assert result.exit_code == 0
    assert "<li id=\"c2\">" in output.read_text(encoding="utf-8")


def test_export_never_overwrites(sample_file: Path, tmp_path: Path) -> None:
    """Exporting twice creates a second, numbered file."""
    dest = tmp_path / "downloads"

    first = runner.invoke(app, ["export", str(sample_file), "--dest", str(dest)])
    second = runner.invoke(app, ["export", str(sample_file), "--dest", str(dest)])

    assert first.exit_code == 0
    assert second.exit_code == 0
    assert sorted(p.name for p in dest.iterdir()) == ["groceries-1.bike", "groceries.bike"]
    assert second.stdout.strip().endswith("groceries-1.bike")


def test_recover_without_draft(tmp_path: Path) -> None:
    result = runner.invoke(app, ["recover", "--data-dir", str(tmp_path)])

    assert result.exit_code == 0
    assert "No unsaved draft found." in result.stdout


def test_recover_prints_and_discards_draft(tmp_path: Path) -> None:
    store = RecoveryStore.open(tmp_path)
    store.put("<ul></ul>")
    store.close()

    result = runner.invoke(app, ["recover", "--data-dir", str(tmp_path), "--discard"])

    assert result.exit_code == 0
    assert "<ul></ul>" in result.stdout
    reopened = RecoveryStore.open(tmp_path)
    assert reopened.get() is None
    reopened.close()
