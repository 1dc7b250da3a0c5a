"""Document origin, dirty tracking, autosave and save/load dispatch.

The coordinator owns the open Document for one editing session. Every load
replaces the Document (and its NodeStore) wholesale. Edits made through
``coordinator.tree`` mark the document dirty and arm the autosave timers.

Timers use the running asyncio loop. Without a running loop no timer is armed
and saving only happens when asked for explicitly.
"""

import asyncio
import sys
from pathlib import Path

from loguru import logger

from bike_outliner.config import PersistenceSettings
from bike_outliner.core.channel.client import WriteChannelClient
from bike_outliner.core.format.naming import (
    DIRTY_MARKER,
    clean_display_name,
    derive_title,
    fix_file_name,
)
from bike_outliner.core.format.parser import parse
from bike_outliner.core.format.serializer import serialize
from bike_outliner.core.persistence.export import ExportWriter
from bike_outliner.core.persistence.handles import OwnedStore
from bike_outliner.core.persistence.recovery import RecoveryStore
from bike_outliner.core.tree.store import NodeStore
from bike_outliner.errors import (
    FormatError,
    OutlineError,
    PermissionDeniedError,
    PersistenceError,
)
from bike_outliner.models.node import Document, Origin
from bike_outliner.protocols import FileHandle, FocusKeeper, UserPrompts

_DISPLAY_NAMES = {
    Origin.NONE: "No file",
    Origin.NEWLY_CREATED: "New App File",
    Origin.RECOVERED_DRAFT: "Unsaved Draft",
    Origin.OWNED_STORE: "App Storage",
}


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class PersistenceCoordinator:
    """State machine over the document's origin and dirty flag."""

    def __init__(
        self,
        *,
        prompts: UserPrompts,
        recovery: RecoveryStore,
        store: OwnedStore | None = None,
        channel: WriteChannelClient | None = None,
        focus: FocusKeeper | None = None,
        settings: PersistenceSettings | None = None,
        platform: str = sys.platform,
    ) -> None:
        self.prompts = prompts
        self.recovery = recovery
        self.store = store
        self.channel = channel
        self.focus = focus
        self.settings = settings or PersistenceSettings()
        self.platform = platform

        self.origin = Origin.NONE
        self.dirty = False
        self.loading = False
        self.saving = False
        self.last_error: OutlineError | None = None
        self.external_handle: FileHandle | None = None
        self.copy_name: str | None = None

        self._starting = False
        self._edit_count = 0
        self._save_generation = 0
        self._draft_timer: asyncio.TimerHandle | None = None
        self._store_timer: asyncio.TimerHandle | None = None
        self._saving_timer: asyncio.TimerHandle | None = None
        self._quiet_task: asyncio.Task[bool] | None = None
        self._exporters: dict[Path, ExportWriter] = {}

        self.document = Document.empty()
        self.tree = NodeStore(self.document, on_change=self.handle_content_change)

    # --- Naming ---

    @property
    def display_name(self) -> str:
        """Label describing the open document, with ``*`` when dirty."""
        if self.origin is Origin.EXTERNAL_FILE and self.external_handle is not None:
            name = self.external_handle.name
        elif self.origin is Origin.LOADED_COPY:
            name = f"{self.copy_name or 'Loaded Copy'} (copy)"
        else:
            name = _DISPLAY_NAMES.get(self.origin, _DISPLAY_NAMES[Origin.NONE])
        return name + (DIRTY_MARKER if self.dirty else "")

    def title(self) -> str:
        external = None
        if self.origin is Origin.EXTERNAL_FILE and self.external_handle is not None:
            external = self.external_handle.name
        owned = None
        if self.origin is Origin.OWNED_STORE and self.store is not None:
            owned = self.store.filename
        return derive_title(external, owned, self.display_name)

    def suggested_filename(self) -> str:
        """File name offered for a download of the current document."""
        if self.origin is Origin.EXTERNAL_FILE and self.external_handle is not None:
            name: str | None = self.external_handle.name
        else:
            name = clean_display_name(self.display_name)
        return fix_file_name(name, platform=self.platform)

    # --- Startup ---

    def initialize(self) -> Origin:
        """Run the startup load sequence and return the resulting origin.

        Order: owned store (only if its file already exists), then a recovered
        draft, then an empty document with no origin.
        """
        self._starting = True
        self.loading = True
        try:
            if self.store is not None and self.store.lookup() is not None and self.load_owned_store():
                return self.origin
            if self.load_recovered_draft():
                return self.origin
            self._install(Document.empty(), Origin.NONE, dirty=False)
            logger.info("Started with an empty document")
            return self.origin
        finally:
            self._starting = False
            self.loading = False

    # --- Loading ---

    def new_document(self) -> bool:
        """Replace the document with a fresh one holding a single empty item."""
        if not self._confirm_discard("create a new document"):
            return False
        if not self._enter_load():
            return False
        try:
            document = Document.empty()
            NodeStore(document).create_child()
            self.external_handle = None
            self._install(document, Origin.NEWLY_CREATED, dirty=False)
            self.recovery.discard()
        finally:
            self._exit_load()
        logger.info("Created a new document")
        return True

    def open_external(self, handle: FileHandle) -> bool:
        """Open a user-granted file for in-place editing."""
        if not self._confirm_discard("open another file"):
            return False
        try:
            text = handle.read_text()
        except PersistenceError as e:
            return self._fail(e, f"Could not open {handle.name}")
        if not self._load_text(text, Origin.EXTERNAL_FILE):
            return False
        self.external_handle = handle
        logger.info("Opened {}", handle.name)
        return True

    def load_copy(self, name: str, text: str) -> bool:
        """Load content that has no write-back target (an uploaded copy)."""
        if not self._confirm_discard("load another file"):
            return False
        if not self._load_text(text, Origin.LOADED_COPY):
            return False
        self.copy_name = fix_file_name(name, platform=self.platform)
        logger.info("Loaded a copy of {}", name)
        return True

    def load_owned_store(self) -> bool:
        """Load the canonical file of the app-owned store."""
        if self.store is None:
            return self._fail(PersistenceError("App Storage is not available"), "Could not load")
        path = self.store.lookup()
        if path is None:
            if not self._starting:
                self.prompts.notify(f"No {self.store.filename} found in App Storage")
            return False
        if not self._starting and not self._confirm_discard("load from App Storage"):
            return False
        try:
            text = self.store.read_text()
        except PersistenceError as e:
            return self._fail(e, "Could not load from App Storage")
        if not self._load_text(text, Origin.OWNED_STORE):
            return False
        logger.info("Loaded {} from App Storage", path.name)
        return True

    def load_recovered_draft(self, force_prompt: bool = False) -> bool:
        """Load the draft from the recovery slot, if any.

        During startup the user is always asked; declining discards the draft.
        Otherwise the user is asked when ``force_prompt`` is set or the draft
        would replace existing content.
        """
        draft = self.recovery.get()
        if draft is None:
            if force_prompt:
                self.prompts.notify("No unsaved draft found")
            return False

        replacing = not self.document.is_empty
        if self._starting or force_prompt or replacing:
            if not self.prompts.confirm_restore_draft(replacing):
                if self._starting:
                    self.recovery.discard()
                    logger.info("Recovered draft declined and discarded")
                return False
        if not self._starting and not self._confirm_discard("load the recovered draft"):
            return False
        if not self._load_text(draft, Origin.RECOVERED_DRAFT):
            return False
        logger.info("Recovered unsaved draft ({} items)", self.document.item_count)
        return True

    def _load_text(self, text: str, origin: Origin) -> bool:
        if not self._enter_load():
            return False
        try:
            if not text.strip():
                document = Document.empty()
            else:
                document = parse(text)
        except FormatError as e:
            self.external_handle = None
            self._install(Document.empty(), Origin.NONE, dirty=False)
            return self._fail(e, "Could not read outline")
        else:
            if document.is_empty and origin is not Origin.RECOVERED_DRAFT:
                NodeStore(document).create_child()
            dirty = origin is Origin.RECOVERED_DRAFT or (origin is Origin.LOADED_COPY and not text.strip())
            if origin is not Origin.EXTERNAL_FILE:
                self.external_handle = None
            self._install(document, origin, dirty=dirty)
            return True
        finally:
            self._exit_load()

    def _enter_load(self) -> bool:
        if self.loading and not self._starting:
            logger.warning("Load rejected: another load is in progress")
            return False
        self.loading = True
        return True

    def _exit_load(self) -> None:
        if not self._starting:
            self.loading = False

    def _install(self, document: Document, origin: Origin, *, dirty: bool) -> None:
        self._cancel_timers()
        self.document = document
        self.tree = NodeStore(document, on_change=self.handle_content_change)
        self.origin = origin
        self.dirty = dirty
        self.last_error = None
        if origin is not Origin.LOADED_COPY:
            self.copy_name = None

    def _confirm_discard(self, reason: str) -> bool:
        if not self.dirty:
            return True
        if self.prompts.confirm_discard(reason):
            return True
        logger.info("Kept unsaved changes instead of: {}", reason)
        return False

    # --- Edits & autosave ---

    def handle_content_change(self, operation: str = "edit") -> None:
        """Mark the document dirty after an edit and arm the autosave timers."""
        if self.loading:
            logger.debug("Ignoring {} while loading", operation)
            return
        self._edit_count += 1
        self.dirty = True
        loop = _running_loop()
        if loop is None:
            return
        if self._draft_timer is not None:
            self._draft_timer.cancel()
        self._draft_timer = loop.call_later(self.settings.autosave_delay, self._on_draft_timer)
        if self.origin is Origin.OWNED_STORE and self.channel is not None:
            if self._store_timer is not None:
                self._store_timer.cancel()
            self._store_timer = loop.call_later(self.settings.store_autosave_delay, self._on_store_timer)

    def _on_draft_timer(self) -> None:
        self._draft_timer = None
        if self.dirty and not self.loading:
            self.save_draft()

    def _on_store_timer(self) -> None:
        self._store_timer = None
        if self.dirty and not self.loading and self.origin is Origin.OWNED_STORE:
            self._quiet_task = asyncio.get_running_loop().create_task(self.quiet_save())

    def save_draft(self) -> bool:
        """Commit the current content to the recovery slot."""
        try:
            self.recovery.put(self._serialize())
        except (FormatError, PersistenceError) as e:
            self.last_error = e
            logger.warning("Draft autosave skipped: {}", e)
            return False
        logger.debug("Draft saved")
        return True

    # --- Saving ---

    def save_external(self) -> bool:
        """Write the document back to the opened external file."""
        handle = self.external_handle
        if handle is None:
            return self._fail(PersistenceError("No file is open for saving"), "Could not save")
        if not handle.query_permission() and not handle.request_permission():
            msg = f"Write permission for {handle.name} was not granted"
            return self._fail(PermissionDeniedError(msg), "Could not save")
        edit_mark = self._edit_count
        try:
            handle.write_text(self._serialize())
        except (FormatError, PersistenceError) as e:
            return self._fail(e, f"Could not save {handle.name}")
        self._saved(Origin.EXTERNAL_FILE, edit_mark)
        logger.info("Saved {}", handle.name)
        return True

    async def save_owned_store(self) -> bool:
        """Write the document to the app-owned store, showing progress."""
        return await self._write_owned_store(quiet=False)

    async def quiet_save(self) -> bool:
        """Autosave to the app-owned store without disturbing focus."""
        token = self.focus.capture() if self.focus is not None else None
        try:
            return await self._write_owned_store(quiet=True)
        finally:
            if self.focus is not None:
                self.focus.restore(token)

    async def _write_owned_store(self, *, quiet: bool) -> bool:
        if self.store is None or self.channel is None:
            return self._fail(PersistenceError("App Storage is not available"), "Could not save")
        edit_mark = self._edit_count
        try:
            content = self._serialize()
            self.store.ensure()
        except (FormatError, PersistenceError) as e:
            return self._fail(e, "Could not save to App Storage", quiet=quiet)

        # Only explicit saves own the saving indicator.
        generation = self._save_generation
        if not quiet:
            self._save_generation += 1
            generation = self._save_generation
            self._set_saving(True)
        try:
            await self.channel.write(self.store.filename, content)
        except PersistenceError as e:
            return self._fail(e, "Failed to save to App Storage", quiet=quiet)
        finally:
            if not quiet and generation == self._save_generation:
                self._set_saving(False)

        self._saved(Origin.OWNED_STORE, edit_mark)
        if quiet:
            logger.debug("Autosaved to App Storage")
        else:
            logger.info("Saved to App Storage")
        return True

    def _set_saving(self, saving: bool) -> None:
        if self._saving_timer is not None:
            self._saving_timer.cancel()
            self._saving_timer = None
        self.saving = saving
        loop = _running_loop()
        if saving and loop is not None:
            self._saving_timer = loop.call_later(self.settings.save_timeout, self._clear_stuck_saving)

    def _clear_stuck_saving(self) -> None:
        self._saving_timer = None
        if self.saving:
            logger.warning("Save indicator cleared after {}s without response", self.settings.save_timeout)
            self.saving = False

    def _saved(self, origin: Origin, edit_mark: int) -> None:
        self.origin = origin
        self.dirty = self._edit_count != edit_mark
        self.last_error = None
        if not self.dirty:
            self._cancel_autosave()
            self.recovery.discard()

    def export_download(self, dest_dir: str | Path) -> Path | None:
        """Write a download copy into ``dest_dir``. Origin and dirty flag are unchanged."""
        if self.document.is_empty:
            self.prompts.notify("Nothing to export")
            return None
        dest = Path(dest_dir).resolve()
        try:
            content = self._serialize()
            writer = self._exporters.get(dest)
            if writer is None:
                writer = self._exporters[dest] = ExportWriter(dest)
            return writer.write(self.suggested_filename(), content)
        except (FormatError, PersistenceError) as e:
            self._fail(e, "Could not export")
            return None

    def shutdown(self) -> None:
        """Stop timers and flush what can be flushed without waiting."""
        self._cancel_timers()
        if self._quiet_task is not None and not self._quiet_task.done():
            self._quiet_task.cancel()
        if not self.dirty:
            return
        self.save_draft()
        if self.origin is Origin.OWNED_STORE and self.channel is not None and self.store is not None:
            try:
                self.channel.post(self.store.filename, self._serialize())
            except FormatError as e:
                logger.warning("Final write to App Storage skipped: {}", e)

    # --- Internals ---

    def _serialize(self) -> str:
        return serialize(self.document, title=self.title())

    def _fail(self, error: OutlineError, context: str, *, quiet: bool = False) -> bool:
        self.last_error = error
        logger.warning("{}: {}", context, error)
        if not quiet:
            self.prompts.notify(f"{context}: {error}", error=True)
        return False

    def _cancel_autosave(self) -> None:
        for timer in (self._draft_timer, self._store_timer):
            if timer is not None:
                timer.cancel()
        self._draft_timer = None
        self._store_timer = None

    def _cancel_timers(self) -> None:
        self._cancel_autosave()
        if self._saving_timer is not None:
            self._saving_timer.cancel()
            self._saving_timer = None
        self.saving = False
