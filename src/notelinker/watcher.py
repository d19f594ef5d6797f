"""Vault watcher feeding filesystem changes into the title index."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import NoteLinkerError
from .models import Document, ScanConfiguration
from .parser.title_index import TitleIndex
from .vault import Vault, is_hidden

logger = logging.getLogger(__name__)


class VaultEventHandler(FileSystemEventHandler):
    """Translate watchdog events into document added/removed callbacks.

    Watchdog calls handlers on its observer thread. When a loop is given,
    callbacks are handed to it with call_soon_threadsafe so the index is
    only ever touched from the event loop thread.
    """

    def __init__(
        self,
        vault: Vault,
        on_added: Callable[[Document], None],
        on_removed: Callable[[str], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        super().__init__()
        self._vault = vault
        self._on_added = on_added
        self._on_removed = on_removed
        self._loop = loop

    def _dispatch(self, callback: Callable, arg: object) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(callback, arg)
        else:
            callback(arg)

    def _relative(self, raw_path: str | bytes) -> str | None:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode()
        try:
            rel = self._vault.relative_path(Path(raw_path))
        except NoteLinkerError:
            return None
        if is_hidden(rel):
            return None
        return rel

    def _added(self, raw_path: str | bytes) -> None:
        rel = self._relative(raw_path)
        if rel is not None:
            self._dispatch(self._on_added, Document.from_path(rel))

    def _removed(self, raw_path: str | bytes) -> None:
        rel = self._relative(raw_path)
        if rel is not None:
            self._dispatch(self._on_removed, rel)

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._added(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._removed(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """A rename is a removal of the old path plus an addition of the new one."""
        if event.is_directory:
            return
        self._removed(event.src_path)
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            self._added(dest_path)


class VaultWatcher:
    """Watch a vault directory and keep a TitleIndex current."""

    def __init__(
        self,
        vault: Vault,
        index: TitleIndex,
        config: ScanConfiguration,
        loop: asyncio.AbstractEventLoop | None = None,
        on_change: Callable[[], None] | None = None,
    ):
        """Initialize the watcher.

        Args:
            vault: Vault whose directory is watched.
            index: Index receiving add/remove events.
            config: Exclusion rules applied to added documents.
            loop: Event loop that owns the index; None applies events on the observer thread.
            on_change: Called after each applied event (e.g. to mark the cache dirty).
        """
        self._vault = vault
        self._index = index
        self._config = config
        self._loop = loop
        self._on_change = on_change
        self._observer: Observer | None = None
        self._running = False

    def _document_added(self, doc: Document) -> None:
        self._index.on_document_added(doc, self._config)
        logger.debug("Created: %s", doc.path)
        if self._on_change is not None:
            self._on_change()

    def _document_removed(self, path: str) -> None:
        self._index.on_document_removed(path)
        logger.debug("Deleted: %s", path)
        if self._on_change is not None:
            self._on_change()

    def make_handler(self) -> VaultEventHandler:
        return VaultEventHandler(
            self._vault,
            on_added=self._document_added,
            on_removed=self._document_removed,
            loop=self._loop,
        )

    def start(self) -> None:
        """Start watching for file changes."""
        if self._running:
            return

        if not self._vault.root.exists():
            logger.warning("Vault root does not exist: %s", self._vault.root)
            return

        self._observer = Observer()
        self._observer.schedule(self.make_handler(), str(self._vault.root), recursive=True)
        self._observer.start()
        self._running = True
        logger.info("Started watching: %s", self._vault.root)

    def stop(self) -> None:
        """Stop watching for file changes."""
        if not self._running or self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._running = False
        logger.info("Stopped vault watcher")

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self) -> "VaultWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
