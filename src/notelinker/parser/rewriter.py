"""Turn approved occurrences into wikilinks.

Two strategies are supported:

- ``spans``: replace exactly the recorded spans of the selected occurrences.
  Occurrences whose span no longer holds the matched text are skipped, and of
  two overlapping selected spans the one supplied first wins.
- ``global``: for each selected occurrence, in the order supplied, replace
  every whole-word, case-insensitive instance of its matched text anywhere in
  the note. When two selections share a matched text, the last one wins.
  Text already inside a wikilink is left alone in both strategies.
"""

import logging
import re
from collections.abc import Iterable

from ..models import Occurrence, RewriteOutcome, ScanConfiguration
from .scanner import NOT_AFTER_LINK_OPEN, NOT_BEFORE_LINK_CLOSE, escape_literal, inside_any, wikilink_spans

log = logging.getLogger(__name__)


def build_replacement(occurrence: Occurrence, config: ScanConfiguration) -> str:
    """Build the wikilink for an occurrence.

    With display-text links enabled and respect-case on, a match whose casing
    differs from the title keeps its casing as the alias: ``[[Title|title]]``.
    Every other combination yields the plain ``[[Title]]``.
    """
    if (
        config.use_bracketed_link_syntax
        and config.respect_case_on_replace
        and occurrence.matched_text != occurrence.title
    ):
        return f"[[{occurrence.title}|{occurrence.matched_text}]]"
    return f"[[{occurrence.title}]]"


def whole_word_pattern(matched_text: str) -> re.Pattern[str]:
    """Case-insensitive pattern for matched_text as a whole word outside wikilinks.

    Word boundaries are only enforced on edges that are word characters, so a
    title ending in ``)`` still matches before a space or period.
    """
    prefix = r"(?<!\w)" if re.match(r"\w", matched_text[:1]) else ""
    suffix = r"(?!\w)" if re.match(r"\w", matched_text[-1:]) else ""
    return re.compile(
        f"{NOT_AFTER_LINK_OPEN}{prefix}{escape_literal(matched_text)}{suffix}{NOT_BEFORE_LINK_CLOSE}",
        re.IGNORECASE,
    )


def _rewrite_spans(text: str, selected: list[Occurrence], config: ScanConfiguration) -> RewriteOutcome:
    accepted: list[Occurrence] = []
    skipped: list[Occurrence] = []
    links = wikilink_spans(text)

    for occurrence in selected:
        start, end = occurrence.span
        if start < 0 or end > len(text) or text[start:end] != occurrence.matched_text:
            log.warning(
                "Skipping %r at %d-%d: text changed since the scan", occurrence.matched_text, start, end
            )
            skipped.append(occurrence)
            continue
        if inside_any(start, end, links):
            log.debug("Skipping %r at %d-%d: inside an existing link", occurrence.title, start, end)
            skipped.append(occurrence)
            continue
        if any(start < other.end and other.start < end for other in accepted):
            log.debug("Skipping %r at %d-%d: overlaps an earlier selection", occurrence.title, start, end)
            skipped.append(occurrence)
            continue
        accepted.append(occurrence)

    pieces: list[str] = []
    cursor = 0
    for occurrence in sorted(accepted, key=lambda o: o.start):
        pieces.append(text[cursor:occurrence.start])
        pieces.append(build_replacement(occurrence, config))
        cursor = occurrence.end
    pieces.append(text[cursor:])

    return RewriteOutcome(text="".join(pieces), applied=len(accepted), skipped=skipped)


def _rewrite_global(text: str, selected: list[Occurrence], config: ScanConfiguration) -> RewriteOutcome:
    # Matching is case-insensitive, so group by casefolded text; within a
    # group the last selection decides the replacement for every instance.
    groups: dict[str, list[Occurrence]] = {}
    skipped: list[Occurrence] = []
    for occurrence in selected:
        if not occurrence.matched_text:
            skipped.append(occurrence)
            continue
        groups.setdefault(occurrence.matched_text.casefold(), []).append(occurrence)

    applied = 0
    for members in groups.values():
        winner = members[-1]
        replacement = build_replacement(winner, config)
        # Links made by earlier groups count as existing links too
        links = wikilink_spans(text)
        count = 0

        def substitute(match: re.Match[str]) -> str:
            nonlocal count
            if inside_any(match.start(), match.end(), links):
                return match.group(0)
            count += 1
            return replacement

        text = whole_word_pattern(winner.matched_text).sub(substitute, text)
        if count:
            applied += count
        else:
            skipped.extend(members)

    return RewriteOutcome(text=text, applied=applied, skipped=skipped)


def apply_rewrite(
    text: str,
    selected: Iterable[Occurrence],
    config: ScanConfiguration,
) -> RewriteOutcome:
    """Rewrite text and report how many links were made and which selections were skipped."""
    chosen = list(selected)
    if not chosen:
        return RewriteOutcome(text=text)

    if config.rewrite_strategy == "global":
        return _rewrite_global(text, chosen, config)
    return _rewrite_spans(text, chosen, config)


def rewrite(text: str, selected: Iterable[Occurrence], config: ScanConfiguration) -> str:
    """Return text with the selected occurrences turned into wikilinks."""
    return apply_rewrite(text, selected, config).text
