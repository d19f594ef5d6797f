"""Find plain-text mentions of indexed titles in a note.

A mention is a literal (optionally case-insensitive) occurrence of a title
that is not already part of a ``[[wikilink]]``. Titles containing parentheses
also match text where the parentheses were escaped with a backslash, as some
editors write ``Budget \\(2024\\)``.
"""

import re
from collections.abc import Iterable

from ..config import CONTEXT_RADIUS
from ..models import Occurrence, ScanConfiguration
from .title_index import TitleEntry

# A leading YAML frontmatter block: a `---` line at offset 0 up to the next
# line that starts with `---`.
METADATA_BLOCK_PATTERN = re.compile(r"\A---[ \t]*\r?\n.*?^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)

# Zero-width guards keeping matches out of existing [[Target]] / [[Target|alias]] links
NOT_AFTER_LINK_OPEN = r"(?<!\[\[)"
NOT_BEFORE_LINK_CLOSE = r"(?!\|?\]\])"

# A complete wikilink, [[Target]] or [[Target|alias]]
WIKILINK_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")


def leading_metadata_end(text: str) -> int:
    """Offset just past the leading frontmatter block, or 0 if there is none."""
    match = METADATA_BLOCK_PATTERN.match(text)
    return match.end() if match else 0


def strip_leading_metadata(text: str) -> str:
    """Remove the leading frontmatter block, if any."""
    return text[leading_metadata_end(text):]


def wikilink_spans(text: str) -> list[tuple[int, int]]:
    """[start, end) spans of the existing wikilinks in text, brackets included."""
    return [match.span() for match in WIKILINK_PATTERN.finditer(text)]


def inside_any(start: int, end: int, spans: list[tuple[int, int]]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def escape_literal(text: str) -> str:
    """Escape text for a regex, letting each parenthesis carry an optional backslash."""
    parts = []
    for char in text:
        if char in "()":
            parts.append(r"\\?" + re.escape(char))
        else:
            parts.append(re.escape(char))
    return "".join(parts)


def build_title_pattern(title: str, case_sensitive: bool = False) -> re.Pattern[str]:
    """Compile the pattern matching a title outside existing wikilinks."""
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(
        f"{NOT_AFTER_LINK_OPEN}({escape_literal(title)}){NOT_BEFORE_LINK_CLOSE}",
        flags,
    )


def context_window(text: str, start: int, end: int, radius: int = CONTEXT_RADIUS) -> str:
    return text[max(0, start - radius):end + radius]


def scan(
    text: str,
    entries: Iterable[TitleEntry],
    config: ScanConfiguration,
    *,
    region: tuple[int, int] | None = None,
) -> list[Occurrence]:
    """Find every mention of every title in text.

    Args:
        text: Note content to scan.
        entries: Title entries, in collection order.
        config: Case policy and frontmatter handling.
        region: Optional (start, end) sub-range to scan, such as an editor
            selection. Offsets in the result always refer to text itself.

    Returns:
        Occurrences sorted by start offset; ties keep title order, then
        left-to-right order. Mentions of different titles may overlap.
    """
    if not text:
        return []

    start, end = 0, len(text)
    if region is not None:
        start = min(max(region[0], 0), len(text))
        end = min(max(region[1], start), len(text))
    if config.exclude_leading_metadata_block:
        start = max(start, leading_metadata_end(text))
    if start >= end:
        return []

    found: list[Occurrence] = []
    for entry in entries:
        if not entry.title:
            continue

        pattern = build_title_pattern(entry.title, case_sensitive=config.case_sensitive)
        for match in pattern.finditer(text, start, end):
            found.append(
                Occurrence(
                    title=entry.title,
                    path=entry.path,
                    matched_text=match.group(1),
                    context=context_window(text, match.start(), match.end()),
                    span=(match.start(), match.end()),
                )
            )

    # list.sort is stable, so discovery order breaks ties
    found.sort(key=lambda occurrence: occurrence.start)
    return found
