"""Selection and pagination state for reviewing scan results.

Kept apart from scanning and rewriting: the core never reads this state, the
result browser (the CLI's ``link`` command) drives it and hands the selected
occurrences to the rewriter.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .config import DEFAULT_PAGE_SIZE
from .errors import NoteLinkerError
from .models import Occurrence


@dataclass
class SelectionState:
    """Current page, page size and selected occurrence indices.

    Occurrences are identified by their position in the scan result, so two
    equal-looking occurrences at different offsets are distinct.
    """

    occurrences: Sequence[Occurrence]
    page_size: int = DEFAULT_PAGE_SIZE
    current_page: int = 0
    selected: set[int] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")

    @property
    def total(self) -> int:
        return len(self.occurrences)

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page_size)

    def page_bounds(self, page: int | None = None) -> tuple[int, int]:
        page = self.current_page if page is None else page
        start = page * self.page_size
        return start, min(start + self.page_size, self.total)

    def page_items(self) -> list[tuple[int, Occurrence]]:
        """(index, occurrence) pairs shown on the current page."""
        start, end = self.page_bounds()
        return [(i, self.occurrences[i]) for i in range(start, end)]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.total:
            raise NoteLinkerError.invalid_selection(
                f"No suggestion #{index + 1} (choose 1-{self.total})"
            )

    def is_selected(self, index: int) -> bool:
        return index in self.selected

    def select(self, index: int) -> None:
        self._check_index(index)
        self.selected.add(index)

    def deselect(self, index: int) -> None:
        self._check_index(index)
        self.selected.discard(index)

    def toggle(self, index: int) -> bool:
        """Flip one occurrence; returns its new selected state."""
        self._check_index(index)
        if index in self.selected:
            self.selected.discard(index)
            return False
        self.selected.add(index)
        return True

    def select_all(self) -> None:
        self.selected.update(range(self.total))

    def select_page(self) -> None:
        start, end = self.page_bounds()
        self.selected.update(range(start, end))

    def clear(self) -> None:
        self.selected.clear()

    def turn_page(self, delta: int) -> int:
        """Move by delta pages, wrapping around at both ends."""
        if self.total_pages == 0:
            return self.current_page
        self.current_page = (self.current_page + delta) % self.total_pages
        return self.current_page

    @property
    def can_go_previous(self) -> bool:
        return self.total_pages > 1 and self.current_page > 0

    @property
    def can_go_next(self) -> bool:
        return self.total_pages > 1 and self.current_page < self.total_pages - 1

    def page_indicator(self) -> str | None:
        """'Page X of Y', or None when everything fits on one page."""
        if self.total_pages <= 1:
            return None
        return f"Page {self.current_page + 1} of {self.total_pages}"

    def selection_label(self) -> str:
        return f"Selected: {len(self.selected)}/{self.total}"

    def selected_occurrences(self) -> list[Occurrence]:
        """Selected occurrences in scan order."""
        return [self.occurrences[i] for i in sorted(self.selected)]
