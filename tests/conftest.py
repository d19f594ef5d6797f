"""Shared test fixtures for the notelinker test suite.

Design:
- tmp_vault: isolated vault in a temp directory, NOTELINKER_VAULT_ROOT pointed at it
- runner / cli_invoke: CliRunner helpers bound to that vault
- create_note: helper for writing notes in tests
"""

import logging
import os
from pathlib import Path
from typing import Generator

import pytest
from click.testing import CliRunner

from notelinker.cli import cli
from notelinker.models import Document, Occurrence, ScanConfiguration


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Undo CLI logging setup so handlers bound to CliRunner streams do not leak."""
    yield
    package_logger = logging.getLogger("notelinker")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def tmp_vault(tmp_path: Path) -> Generator[Path, None, None]:
    """Create an isolated vault with a .notelinker state directory.

    Sets NOTELINKER_VAULT_ROOT to the vault for the duration of the test.
    """
    vault_root = tmp_path / "vault"
    vault_root.mkdir()
    (vault_root / ".notelinker").mkdir()

    original = os.environ.get("NOTELINKER_VAULT_ROOT")
    os.environ["NOTELINKER_VAULT_ROOT"] = str(vault_root)
    os.environ.pop("NOTELINKER_STATE_DIR", None)

    yield vault_root

    if original is not None:
        os.environ["NOTELINKER_VAULT_ROOT"] = original
    else:
        os.environ.pop("NOTELINKER_VAULT_ROOT", None)


@pytest.fixture
def sample_vault(tmp_vault: Path) -> Path:
    """Vault with a handful of linked and unlinked notes.

    Creates:
    - Project Alpha.md
    - Budget (2024).md
    - people/Ada Lovelace.md
    - archive/Old Plan.md
    - journal/today.md (mentions the others)
    - attachments/diagram.png (not a note)
    """
    create_note(tmp_vault, "Project Alpha.md", "Alpha is the first project.")
    create_note(tmp_vault, "Budget (2024).md", "Numbers.")
    create_note(tmp_vault, "people/Ada Lovelace.md", "Mathematician.")
    create_note(tmp_vault, "archive/Old Plan.md", "Superseded.")
    create_note(
        tmp_vault,
        "journal/today.md",
        "---\ntags: [daily]\n---\n"
        "Met Ada Lovelace about project alpha.\n"
        "The Budget (2024) is tight, see [[Project Alpha]].\n"
        "Old Plan is archived.\n",
    )
    attachment = tmp_vault / "attachments" / "diagram.png"
    attachment.parent.mkdir(parents=True, exist_ok=True)
    attachment.write_bytes(b"\x89PNG")
    return tmp_vault


@pytest.fixture
def cli_invoke(runner: CliRunner, tmp_vault: Path):
    """Helper for invoking the CLI against the temp vault.

    Usage:
        def test_scan(cli_invoke):
            result = cli_invoke(["scan", "note.md"])
            assert result.exit_code == 0
    """
    def _invoke(args: list[str], input: str | None = None, catch_exceptions: bool = False):
        return runner.invoke(
            cli,
            args,
            input=input,
            catch_exceptions=catch_exceptions,
            env={"NOTELINKER_VAULT_ROOT": str(tmp_vault), "NOTELINKER_QUIET": "1"},
        )
    return _invoke


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions (for test code, not fixtures)
# ─────────────────────────────────────────────────────────────────────────────


def create_note(vault_root: Path, path: str, content: str) -> Path:
    """Write a note (creating folders) and return its absolute path.

    Usage in tests:
        from conftest import create_note
        note = create_note(tmp_vault, "ideas/Project.md", "Body")
    """
    note_path = vault_root / path
    note_path.parent.mkdir(parents=True, exist_ok=True)
    note_path.write_text(content, encoding="utf-8")
    return note_path


def doc(path: str) -> Document:
    return Document.from_path(path)


def make_config(**overrides) -> ScanConfiguration:
    """ScanConfiguration with frontmatter exclusion off unless asked for."""
    values = {"exclude_leading_metadata_block": False}
    values.update(overrides)
    return ScanConfiguration(**values)


def occurrence_at(text: str, matched: str, title: str, path: str | None = None, nth: int = 0) -> Occurrence:
    """Build an Occurrence for the nth literal appearance of matched in text."""
    start = -1
    for _ in range(nth + 1):
        start = text.index(matched, start + 1)
    return Occurrence(
        title=title,
        path=path or f"{title}.md",
        matched_text=matched,
        context=text[max(0, start - 20):start + len(matched) + 20],
        span=(start, start + len(matched)),
    )
