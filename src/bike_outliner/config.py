"""Configuration constants for bike-outliner."""

from dataclasses import dataclass
from pathlib import Path

# Recovery slot key. The slot holds at most one draft.
RECOVERY_KEY: str = "bikeEditorProDraft"

# Canonical file name inside the app-owned store.
OWNED_STORE_FILENAME: str = "_current_outline.bike"

# Seconds. Draft autosave fires after edits settle; the durable store autosave waits longer.
AUTOSAVE_DELAY: float = 1.5
STORE_AUTOSAVE_DELAY: float = 5.0
SAVE_TIMEOUT: float = 5.0

RECOVERY_QUOTA_BYTES: int = 5 * 1024 * 1024

CANONICAL_EXTENSION: str = ".bike"
ALTERNATE_EXTENSION: str = ".xhtml"
# Platforms (sys.platform values) that refuse the canonical extension.
RESTRICTIVE_PLATFORMS: frozenset[str] = frozenset({"ios"})
RECOGNIZED_EXTENSIONS: tuple[str, ...] = (".bike", ".xhtml", ".html", ".xml", ".opml")
DEFAULT_FILE_STEM: str = "outline"

FALLBACK_TITLE: str = "Bike Outline"

# Directory with app data. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/bike-outliner").expanduser(),
    Path("~/.bike-outliner").expanduser(),
    Path("~/.config/bike-outliner").expanduser(),
]

RECOVERY_DB_NAME: str = "recovery.db"


def resolve_data_directory() -> Path:
    """Return the first existing data directory, else the preferred default."""
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]


@dataclass(frozen=True)
class PersistenceSettings:
    """Tunables for the persistence coordinator."""

    autosave_delay: float = AUTOSAVE_DELAY
    store_autosave_delay: float = STORE_AUTOSAVE_DELAY
    save_timeout: float = SAVE_TIMEOUT
