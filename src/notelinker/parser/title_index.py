"""Title index: which note titles can be linked, and where they live.

Titles are note file names without the ``.md`` extension. The index is kept
in sync with the vault incrementally through add/remove events and can be
rebuilt from a full listing, either in one go or cooperatively in batches so a
long rebuild never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator
from typing import NamedTuple, Protocol

from ..config import INDEX_BATCH_SIZE
from ..models import CachedTitle, Document, IndexSnapshot, ScanConfiguration

log = logging.getLogger(__name__)


class TitleEntry(NamedTuple):
    """A linkable title mapping to the note that carries it."""

    title: str
    path: str


class ProgressSink(Protocol):
    """Receives progress updates while the index is rebuilt."""

    def report(self, percent: int, message: str) -> None: ...


def entry_for_document(doc: Document, config: ScanConfiguration) -> TitleEntry | None:
    """Return the title entry for a document, or None if it does not qualify.

    Documents without a path or basename are malformed and skipped with a
    warning; non-markdown and excluded documents are skipped silently.
    """
    if not doc.path or not doc.basename:
        log.warning("Skipping malformed document (path=%r, basename=%r)", doc.path, doc.basename)
        return None
    if not doc.is_markdown:
        return None
    if config.is_excluded(doc.path):
        return None
    return TitleEntry(title=doc.basename, path=doc.path)


class TitleIndex:
    """Incrementally maintained mapping of note path to title.

    At most one entry exists per path. Freshness is a single flag: any add or
    remove event marks the whole index stale until the next full rebuild.
    Events and synchronous rebuilds requested while an async rebuild is
    running are queued and applied, in order, once it has finished or been
    cancelled. A second async rebuild waits for the first one.
    """

    def __init__(self, entries: Iterable[TitleEntry] = (), *, fresh: bool = False) -> None:
        self._entries: dict[str, TitleEntry] = {}
        for entry in entries:
            self._entries[entry.path] = TitleEntry(*entry)
        self._fresh = fresh
        self._rebuilding = False
        self._rebuild_lock = asyncio.Lock()
        self._pending: list[tuple[str, object, ScanConfiguration | None]] = []

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    @property
    def entries(self) -> list[TitleEntry]:
        """Entries in collection order (a copy)."""
        return list(self._entries.values())

    def __iter__(self) -> Iterator[TitleEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def get(self, path: str) -> TitleEntry | None:
        return self._entries.get(path)

    def is_fresh(self) -> bool:
        return self._fresh

    @property
    def is_rebuilding(self) -> bool:
        return self._rebuilding

    def mark_stale(self) -> None:
        self._fresh = False

    # ─────────────────────────────────────────────────────────────────────
    # Incremental updates
    # ─────────────────────────────────────────────────────────────────────

    def on_document_added(self, doc: Document, config: ScanConfiguration) -> None:
        """Index a newly created document if it qualifies and mark the index stale."""
        if self._rebuilding:
            self._pending.append(("added", doc, config))
            return

        entry = entry_for_document(doc, config)
        if entry is None:
            return

        # Re-adding a path moves it to the end, like a fresh append
        self._entries.pop(entry.path, None)
        self._entries[entry.path] = entry
        self._fresh = False
        log.debug("Indexed new note %s", entry.path)

    def on_document_removed(self, path: str) -> None:
        """Drop the entry for a deleted document and mark the index stale."""
        if self._rebuilding:
            self._pending.append(("removed", path, None))
            return

        if self._entries.pop(path, None) is not None:
            log.debug("Removed note %s from index", path)
        self._fresh = False

    def _replay_pending(self) -> None:
        pending, self._pending = self._pending, []
        for kind, payload, config in pending:
            if kind == "added" and isinstance(payload, Document) and config is not None:
                self.on_document_added(payload, config)
            elif kind == "removed" and isinstance(payload, str):
                self.on_document_removed(payload)
            elif kind == "rebuild" and isinstance(payload, list) and config is not None:
                self.rebuild(payload, config)

    # ─────────────────────────────────────────────────────────────────────
    # Full rebuilds
    # ─────────────────────────────────────────────────────────────────────

    def rebuild(self, documents: Iterable[Document], config: ScanConfiguration) -> None:
        """Clear and repopulate the index from the full collection, then mark it fresh.

        While an async rebuild is running the request is queued and runs
        right after it, against the listing given here.
        """
        if self._rebuilding:
            self._pending.append(("rebuild", list(documents), config))
            log.debug("Rebuild requested during indexing; queued")
            return

        rebuilt: dict[str, TitleEntry] = {}
        for doc in documents:
            entry = entry_for_document(doc, config)
            if entry is not None:
                rebuilt[entry.path] = entry

        self._entries = rebuilt
        self._fresh = True
        log.debug("Rebuilt title index with %d entries", len(rebuilt))

    async def rebuild_async(
        self,
        documents: Iterable[Document],
        config: ScanConfiguration,
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
        batch_size: int = INDEX_BATCH_SIZE,
    ) -> bool:
        """Rebuild in batches, yielding to the event loop between batches.

        A call made while another async rebuild is running waits for it to
        finish, then rebuilds from its own listing.

        Args:
            documents: Full collection listing; it is snapshotted up front.
            config: Exclusion rules to apply.
            progress: Optional sink for (percent, status) updates.
            cancel: Optional token; once set, the rebuild stops before the next batch.
            batch_size: Documents processed per batch.

        Returns:
            True if the rebuild completed, False if it was cancelled. A
            cancelled rebuild keeps the previous entries and leaves the
            index stale. Task cancellation propagates the same way.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        snapshot = list(documents)
        async with self._rebuild_lock:
            return await self._rebuild_batches(snapshot, config, progress, cancel, batch_size)

    async def _rebuild_batches(
        self,
        snapshot: list[Document],
        config: ScanConfiguration,
        progress: ProgressSink | None,
        cancel: asyncio.Event | None,
        batch_size: int,
    ) -> bool:
        total = len(snapshot)
        self._rebuilding = True
        self._fresh = False
        completed = False

        try:
            rebuilt: dict[str, TitleEntry] = {}
            for start in range(0, total, batch_size):
                if cancel is not None and cancel.is_set():
                    log.info("Indexing cancelled after %d of %d notes", start, total)
                    return False

                for i in range(start, min(start + batch_size, total)):
                    entry = entry_for_document(snapshot[i], config)
                    if entry is not None:
                        rebuilt[entry.path] = entry
                    if progress is not None:
                        progress.report((i + 1) * 100 // total, f"Indexing note {i + 1} of {total}...")

                await asyncio.sleep(0)

            self._entries = rebuilt
            completed = True
            if progress is not None:
                progress.report(100, "Indexing complete.")
            log.debug("Indexed %d notes (%d documents listed)", len(rebuilt), total)
            return True
        finally:
            self._rebuilding = False
            self._fresh = completed
            self._replay_pending()

    # ─────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────

    def snapshot(self, vault_mtime: float = 0.0) -> IndexSnapshot:
        return IndexSnapshot(
            title_entries=[CachedTitle(title=e.title, path=e.path) for e in self._entries.values()],
            is_fresh=self._fresh,
            vault_mtime=vault_mtime,
        )

    @classmethod
    def from_snapshot(cls, snapshot: IndexSnapshot) -> TitleIndex:
        return cls(
            (TitleEntry(title=item.title, path=item.path) for item in snapshot.title_entries),
            fresh=snapshot.is_fresh,
        )
