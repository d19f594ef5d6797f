"""Core business logic for notelinker.

LinkerService ties the pieces together for one vault: it owns the title
index, loads and saves its cache, scans notes and writes links back.

Design principles:
- Scanning and rewriting are pure; all I/O goes through the Vault
- Operations that may rebuild the index are async so the batch loop can yield
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .config import get_cache_path, get_settings_path, load_settings
from .errors import NoteLinkerError
from .index_cache import load_cache, save_cache
from .models import Document, LinkResult, Occurrence, ScanConfiguration, ScanReport, Settings
from .parser import ProgressSink, TitleIndex, apply_rewrite, scan
from .selection import SelectionState
from .vault import Vault

log = logging.getLogger(__name__)


class LinkerService:
    """Scan notes for linkable titles and insert the links the user approves."""

    def __init__(
        self,
        vault: Vault,
        settings: Settings | None = None,
        cache_path: Path | None = None,
        index: TitleIndex | None = None,
    ) -> None:
        self.vault = vault
        self.settings = settings or Settings()
        self.cache_path = cache_path
        self.index = index or TitleIndex()

    @classmethod
    def for_vault(cls, vault_root: Path) -> LinkerService:
        """Build a service using the vault's settings file and cache location."""
        settings = load_settings(get_settings_path(vault_root))
        return cls(Vault(vault_root), settings=settings, cache_path=get_cache_path(vault_root))

    @property
    def config(self) -> ScanConfiguration:
        return self.settings.to_scan_configuration()

    # ─────────────────────────────────────────────────────────────────────
    # Index lifecycle
    # ─────────────────────────────────────────────────────────────────────

    async def load(self, progress: ProgressSink | None = None) -> TitleIndex:
        """Adopt a fresh cached index, or rebuild when there is none.

        A fresh cache is adopted as-is; if the vault's directories changed
        after it was saved the index is only marked stale, and the next scan
        rebuilds it.
        """
        snapshot = load_cache(self.cache_path) if self.cache_path else None
        if snapshot is not None and snapshot.is_fresh:
            self.index = TitleIndex.from_snapshot(snapshot)
            log.debug("Adopted cached index with %d titles", len(self.index))
            if self.vault.tree_mtime() > snapshot.vault_mtime:
                log.debug("Vault changed since the index was cached; marking it stale")
                self.index.mark_stale()
            return self.index

        await self.rebuild(progress)
        return self.index

    async def rebuild(
        self,
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> bool:
        """Rebuild the index from a fresh vault listing and persist it."""
        # Create the state dir before sampling mtimes, creating it bumps the vault root
        if self.cache_path is not None:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        vault_mtime = self.vault.tree_mtime()
        completed = await self.index.rebuild_async(
            self.vault.list_documents(), self.config, progress=progress, cancel=cancel
        )
        self.save_cache(vault_mtime)
        return completed

    def save_cache(self, vault_mtime: float | None = None) -> None:
        if self.cache_path is None:
            return
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        if vault_mtime is None:
            vault_mtime = self.vault.tree_mtime()
        save_cache(self.index, self.cache_path, vault_mtime)

    def on_document_added(self, doc: Document) -> None:
        self.index.on_document_added(doc, self.config)

    def on_document_removed(self, path: str) -> None:
        self.index.on_document_removed(path)

    # ─────────────────────────────────────────────────────────────────────
    # Scan / link
    # ─────────────────────────────────────────────────────────────────────

    def _resolve_note(self, path: str | Path | None) -> str:
        if not path:
            raise NoteLinkerError.no_active_document()
        rel = self.vault.relative_path(path)
        if not Document.from_path(rel).is_markdown or not self.vault.exists(rel):
            raise NoteLinkerError.no_active_document(rel)
        return rel

    async def scan_document(
        self,
        path: str | Path | None,
        *,
        region: tuple[int, int] | None = None,
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ScanReport:
        """Scan one note for titles that could become links.

        A stale index is rebuilt first. An empty report is a normal outcome.

        Raises:
            NoteLinkerError: NO_ACTIVE_DOCUMENT if path is missing or not a
                note of this vault, IO_FAILURE if it cannot be read.
        """
        rel = self._resolve_note(path)
        content = self.vault.read(rel)

        rebuilt = False
        if not self.index.is_fresh():
            if progress is not None:
                progress.report(0, "Indexing all notes...")
            rebuilt = await self.rebuild(progress, cancel)
            if not rebuilt:
                log.warning("Indexing was cancelled; scanning with the previous index")
        elif progress is not None:
            progress.report(50, "Using cached note index...")

        if progress is not None:
            progress.report(75, "Scanning the active note...")
        occurrences = scan(content, self.index.entries, self.config, region=region)
        if progress is not None:
            progress.report(100, "Scan complete.")

        log.debug("Found %d potential links in %s", len(occurrences), rel)
        return ScanReport(
            path=rel,
            occurrences=occurrences,
            indexed_titles=len(self.index),
            index_rebuilt=rebuilt,
        )

    def new_selection(self, report: ScanReport) -> SelectionState:
        return SelectionState(report.occurrences, page_size=self.settings.page_size)

    async def insert_links(self, path: str | Path | None, occurrences: list[Occurrence]) -> LinkResult:
        """Rewrite the selected occurrences of a note as wikilinks and save it.

        The note is read again so edits made after the scan are not lost;
        with span rewriting, occurrences whose text moved are skipped.

        Raises:
            NoteLinkerError: NO_ACTIVE_DOCUMENT or IO_FAILURE; the note is left untouched.
        """
        rel = self._resolve_note(path)
        content = self.vault.read(rel)
        outcome = apply_rewrite(content, occurrences, self.config)

        changed = outcome.text != content
        if changed:
            self.vault.write(rel, outcome.text)
            log.debug("Inserted %d links into %s", outcome.applied, rel)

        return LinkResult(path=rel, applied=outcome.applied, skipped=len(outcome.skipped), changed=changed)
