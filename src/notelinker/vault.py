"""Filesystem vault: the document collection and content provider."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath

from .errors import NoteLinkerError
from .models import Document

log = logging.getLogger(__name__)


def is_hidden(rel_path: str | PurePosixPath) -> bool:
    """True for paths inside dot-directories (.obsidian, .notelinker, .git) or dot-files."""
    return any(part.startswith(".") for part in PurePosixPath(rel_path).parts)


class Vault:
    """A directory of notes, addressed by vault-relative POSIX paths."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def __repr__(self) -> str:
        return f"Vault({str(self.root)!r})"

    def relative_path(self, path: str | Path) -> str:
        """Normalize an absolute or vault-relative path to a vault-relative POSIX path.

        Raises:
            NoteLinkerError: If the path points outside the vault.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        try:
            return candidate.resolve().relative_to(self.root).as_posix()
        except ValueError:
            raise NoteLinkerError.no_active_document(str(path)) from None

    def absolute_path(self, rel_path: str) -> Path:
        return self.root / rel_path

    def exists(self, rel_path: str) -> bool:
        return self.absolute_path(rel_path).is_file()

    def list_documents(self) -> list[Document]:
        """Every non-hidden file in the vault, sorted by path."""
        documents: list[Document] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            # Prune hidden directories in place so os.walk skips them
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            rel_dir = Path(dirpath).relative_to(self.root)
            for filename in filenames:
                if filename.startswith("."):
                    continue
                documents.append(Document.from_path((rel_dir / filename).as_posix()))

        documents.sort(key=lambda doc: doc.path)
        return documents

    def tree_mtime(self) -> float:
        """Newest modification time of the vault's non-hidden directories.

        A directory's mtime changes when entries are created, deleted or
        renamed in it, which is what makes a cached title index outdated.
        """
        latest = 0.0
        for dirpath, dirnames, _filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            try:
                latest = max(latest, os.stat(dirpath).st_mtime)
            except OSError:
                continue
        return latest

    def read(self, rel_path: str) -> str:
        try:
            return self.absolute_path(rel_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise NoteLinkerError.io_failure(rel_path, e, action="read") from e

    def write(self, rel_path: str, text: str) -> None:
        try:
            self.absolute_path(rel_path).write_text(text, encoding="utf-8")
        except OSError as e:
            raise NoteLinkerError.io_failure(rel_path, e, action="write") from e
        log.debug("Wrote %s (%d chars)", rel_path, len(text))
