"""Title indexing, mention scanning and link rewriting."""

from .rewriter import apply_rewrite, build_replacement, rewrite
from .scanner import build_title_pattern, leading_metadata_end, scan, strip_leading_metadata
from .title_index import ProgressSink, TitleEntry, TitleIndex, entry_for_document

__all__ = [
    "ProgressSink",
    "TitleEntry",
    "TitleIndex",
    "apply_rewrite",
    "build_replacement",
    "build_title_pattern",
    "entry_for_document",
    "leading_metadata_end",
    "rewrite",
    "scan",
    "strip_leading_metadata",
]
