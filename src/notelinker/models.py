"""Pydantic models for notelinker."""

from pathlib import PurePosixPath
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import (
    DEFAULT_PAGE_SIZE,
    MARKDOWN_EXTENSION,
    PAGE_SIZE_MAX,
    PAGE_SIZE_MIN,
)

RewriteStrategy = Literal["spans", "global"]


class Document(BaseModel):
    """One file of the document collection, as reported by the collection provider."""

    path: str = ""  # Vault-relative POSIX path, unique identifier
    basename: str = ""  # File name without extension, used as the title
    extension: str = ""  # Extension without the leading dot

    @classmethod
    def from_path(cls, rel_path: str | PurePosixPath) -> "Document":
        pure = PurePosixPath(rel_path)
        return cls(path=pure.as_posix(), basename=pure.stem, extension=pure.suffix.lstrip("."))

    @property
    def is_markdown(self) -> bool:
        return self.extension.lower() == MARKDOWN_EXTENSION


class Occurrence(BaseModel):
    """One place in scanned text where a title appears as plain prose."""

    model_config = ConfigDict(frozen=True)

    title: str  # Canonical title (case as authored)
    path: str  # Path of the note the title belongs to
    matched_text: str  # Exact substring found, original casing kept
    context: str  # Up to CONTEXT_RADIUS characters on each side of the match
    span: tuple[int, int]  # [start, end) offsets into the scanned text

    @property
    def start(self) -> int:
        return self.span[0]

    @property
    def end(self) -> int:
        return self.span[1]


class ScanConfiguration(BaseModel):
    """Options for one scan/rewrite cycle. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    excluded_path_prefixes: frozenset[str] = frozenset()
    exclude_leading_metadata_block: bool = True
    case_sensitive: bool = False
    respect_case_on_replace: bool = False
    use_bracketed_link_syntax: bool = False
    rewrite_strategy: RewriteStrategy = "spans"

    def is_excluded(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.excluded_path_prefixes)


class Settings(BaseModel):
    """Persisted user settings (flat key/value, camelCase on disk)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    excluded_folders: list[str] = Field(default_factory=list, alias="excludedFolders")
    page_size: int = Field(
        default=DEFAULT_PAGE_SIZE, ge=PAGE_SIZE_MIN, le=PAGE_SIZE_MAX, alias="pageSize"
    )
    enable_wiki_links: bool = Field(default=False, alias="enableWikiLinks")
    respect_case: bool = Field(default=False, alias="respectCase")
    exclude_frontmatter: bool = Field(default=True, alias="excludeFrontmatter")
    case_sensitive: bool = Field(default=False, alias="caseSensitive")
    rewrite_strategy: RewriteStrategy = Field(default="spans", alias="rewriteStrategy")

    @field_validator("excluded_folders", mode="before")
    @classmethod
    def _split_folders(cls, value: object) -> object:
        # Accept "a, b" or one folder per line, as typed into a text box
        if value is None:
            return []
        if isinstance(value, str):
            value = value.replace(",", "\n").splitlines()
        if isinstance(value, list):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    def to_scan_configuration(self) -> ScanConfiguration:
        return ScanConfiguration(
            excluded_path_prefixes=frozenset(self.excluded_folders),
            exclude_leading_metadata_block=self.exclude_frontmatter,
            case_sensitive=self.case_sensitive,
            respect_case_on_replace=self.respect_case,
            use_bracketed_link_syntax=self.enable_wiki_links,
            rewrite_strategy=self.rewrite_strategy,
        )


class CachedTitle(BaseModel):
    """A title entry as stored in the persisted index cache."""

    title: str
    path: str


class IndexSnapshot(BaseModel):
    """Persisted title index: entries plus the freshness flag."""

    model_config = ConfigDict(populate_by_name=True)

    title_entries: list[CachedTitle] = Field(default_factory=list, alias="titleEntries")
    is_fresh: bool = Field(default=False, alias="isFresh")
    vault_mtime: float = Field(default=0.0, alias="vaultMtime")  # Newest directory mtime at save time


class ScanReport(BaseModel):
    """Result of scanning one note."""

    path: str
    occurrences: list[Occurrence] = Field(default_factory=list)
    indexed_titles: int = 0
    index_rebuilt: bool = False  # True when the scan had to rebuild a stale index first

    @property
    def is_empty(self) -> bool:
        return not self.occurrences


class RewriteOutcome(BaseModel):
    """Text produced by the rewriter plus what happened to each occurrence."""

    text: str
    applied: int = 0
    skipped: list[Occurrence] = Field(default_factory=list)


class LinkResult(BaseModel):
    """Result of inserting links into a note."""

    path: str
    applied: int
    skipped: int = 0
    changed: bool = False
