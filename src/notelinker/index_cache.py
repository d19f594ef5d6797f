"""Persistent title index cache."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from .models import IndexSnapshot
from .parser.title_index import TitleIndex

log = logging.getLogger(__name__)


def load_cache(path: Path) -> IndexSnapshot | None:
    """Load a saved snapshot; None when missing or unreadable."""
    if not path.exists():
        return None

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return IndexSnapshot.model_validate(payload)
    except (json.JSONDecodeError, OSError, ValidationError) as e:
        log.warning("Ignoring unreadable index cache %s: %s", path, e)
        return None


def save_cache(index: TitleIndex, path: Path, vault_mtime: float = 0.0) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = index.snapshot(vault_mtime).model_dump(by_alias=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    log.debug("Saved %d titles to %s (fresh=%s)", len(index), path, index.is_fresh())
