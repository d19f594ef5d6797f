"""Configuration management for notelinker.

This module contains the configurable constants, vault discovery and the
persisted settings file. Magic numbers are documented here rather than
scattered throughout the codebase.
"""

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import Settings

log = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


# =============================================================================
# Indexing
# =============================================================================

# Only files with this extension (no leading dot, compared lowercase) become titles.
MARKDOWN_EXTENSION = "md"

# Number of documents indexed before yielding back to the event loop.
# 50 keeps each slice well under a frame on large vaults.
INDEX_BATCH_SIZE = 50


# =============================================================================
# Scanning
# =============================================================================

# Characters of surrounding text shown on each side of a match for review.
CONTEXT_RADIUS = 20


# =============================================================================
# Result browser
# =============================================================================

# Suggestions per page, and the bounds accepted in the settings file.
DEFAULT_PAGE_SIZE = 10
PAGE_SIZE_MIN = 5
PAGE_SIZE_MAX = 50


# =============================================================================
# Files and discovery
# =============================================================================

# Directory inside the vault holding settings and the index cache.
STATE_DIRNAME = ".notelinker"
SETTINGS_FILENAME = "settings.yaml"
CACHE_FILENAME = "title_index.json"

# Directory names that mark a vault root when walking up from cwd.
VAULT_MARKERS = (STATE_DIRNAME, ".obsidian")

# Maximum directories to walk up looking for a vault marker.
MAX_DISCOVERY_DEPTH = 10


def get_vault_root(explicit: str | Path | None = None) -> Path:
    """Get the vault root directory.

    Discovery order:
    1. Explicit path (``--vault``)
    2. NOTELINKER_VAULT_ROOT environment variable
    3. Walk up from cwd looking for a .notelinker/ or .obsidian/ directory

    Raises:
        ConfigurationError: If no vault can be found.
    """
    if explicit:
        root = Path(explicit).expanduser()
        if not root.is_dir():
            raise ConfigurationError(f"Vault directory does not exist: {root}")
        return root.resolve()

    env_root = os.environ.get("NOTELINKER_VAULT_ROOT")
    if env_root:
        root = Path(env_root).expanduser()
        if not root.is_dir():
            raise ConfigurationError(f"NOTELINKER_VAULT_ROOT is not a directory: {root}")
        return root.resolve()

    discovered = _discover_vault_root()
    if discovered:
        return discovered

    raise ConfigurationError(
        "No vault found. Options:\n"
        "  1. Pass --vault /path/to/notes\n"
        "  2. Set NOTELINKER_VAULT_ROOT to your notes directory\n"
        "  3. Run from inside a directory containing .notelinker/ or .obsidian/"
    )


def _discover_vault_root(start_dir: Path | None = None, max_depth: int = MAX_DISCOVERY_DEPTH) -> Path | None:
    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        if any((current / marker).is_dir() for marker in VAULT_MARKERS):
            return current

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


def get_state_dir(vault_root: Path) -> Path:
    """Directory for settings and cache: NOTELINKER_STATE_DIR or <vault>/.notelinker."""
    override = os.environ.get("NOTELINKER_STATE_DIR")
    if override:
        return Path(override).expanduser()
    return vault_root / STATE_DIRNAME


def get_settings_path(vault_root: Path) -> Path:
    return get_state_dir(vault_root) / SETTINGS_FILENAME


def get_cache_path(vault_root: Path) -> Path:
    return get_state_dir(vault_root) / CACHE_FILENAME


def load_settings(path: Path) -> "Settings":
    """Load settings from a YAML file, falling back to defaults.

    A missing file yields the defaults. Unreadable YAML or values failing
    validation raise ConfigurationError rather than being silently dropped.
    """
    import yaml
    from pydantic import ValidationError

    from .models import Settings

    if not path.exists():
        return Settings()

    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read settings file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping")

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ConfigurationError(f"Invalid settings in {path}:\n" + "\n".join(errors)) from e


def save_settings(settings: "Settings", path: Path) -> None:
    """Write settings as YAML using the on-disk (camelCase) key names."""
    import yaml

    path.parent.mkdir(parents=True, exist_ok=True)
    payload = settings.model_dump(by_alias=True)
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    log.debug("Saved settings to %s", path)
