"""Write outline downloads into a destination directory."""

from pathlib import Path

from loguru import logger

from bike_outliner.config import ALTERNATE_EXTENSION, CANONICAL_EXTENSION
from bike_outliner.core.persistence.handles import translate_os_error
from bike_outliner.errors import ExportError


class ExportWriter:
    """Write exported outlines without ever overwriting an existing file.

    - Each export gets its own file; names collide-proofed with ``-N`` suffixes.
    - Files already on disk are never replaced.
    - Only outline extensions may be written, and only inside ``dest_dir``.
    """

    def __init__(self, dest_dir: str | Path) -> None:
        self.dest_dir = str(Path(dest_dir).resolve())
        if not Path(self.dest_dir).is_dir():
            msg = f"Export directory {self.dest_dir!r} not found"
            raise ExportError(msg)

        logger.debug("Export writer ready, dest_dir {!r}", self.dest_dir)
        # Absolute paths handed out or written this session.
        self._unique_names: set[str] = set()
        self.files_made: list[Path] = []

    def is_possible_output(self, fname: str) -> bool:
        """Check if a file name has an outline extension."""
        return fname.endswith(CANONICAL_EXTENSION) or fname.endswith(ALTERNATE_EXTENSION)

    def make_unique_name(self, base: str, *, suffix: str = "") -> str:
        """Generate unique filename or file prefix.

        Append numbers to "base" until (base + suffix) does not match any existing
        file nor any previous result of this function.
        """
        unique_str = ""
        unique_count = 0
        while True:
            fname = str(Path(self.dest_dir) / (base + unique_str + suffix))
            if not fname.startswith(self.dest_dir + "/"):
                msg = f"Path escapes dest_dir: {fname!r}"
                raise ExportError(msg)
            if fname not in self._unique_names and not Path(fname).exists():
                break
            unique_count += 1
            unique_str = f"-{unique_count}"

        self._unique_names.add(fname)
        return base + unique_str

    def write(self, file_name: str, contents: str) -> Path:
        """Write ``contents`` under a unique variant of ``file_name`` and return its path."""
        path = Path(file_name)
        if path.is_absolute() or len(path.parts) != 1:
            msg = f"must be a plain file name: {file_name!r}"
            raise ExportError(msg)
        if not self.is_possible_output(file_name):
            msg = f"Wanted to write {file_name!r} but is_possible_output() returns False"
            raise ExportError(msg)

        stem = self.make_unique_name(path.stem, suffix=path.suffix)
        target = Path(self.dest_dir) / (stem + path.suffix)
        try:
            with open(target, "x", encoding="utf-8") as f:
                f.write(contents)
        except OSError as e:
            raise translate_os_error(e, "export", target) from e
        self.files_made.append(target)
        logger.info("Exported outline to {}", target)
        return target
