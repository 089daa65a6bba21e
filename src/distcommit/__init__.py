from .context import CommitContext, FileAttribute, unpack_attributes
from .listing import ListingEntry, ListingReader, open_listing, read_listing, write_listing, sort_listing
from .fs import TargetFS, LocalFS
from .chunks import ConcatOutcome, ConcatResult, concat_chunks, concat_file_chunks
from .diff import iter_stale
from .delete import delete_stale, delete_missing, list_missing
from .preserve import preserve_directory_attributes
from .promote import PromotionState, promote
from .committer import CommitPhase, CopyCommitter
from .report import CommitReport, CommitWarning, STATUS_SUCCESS
from .exceptions import (
    CommitError,
    ListingReadError,
    ListingInconsistencyError,
    ChunkConcatError,
    DeletionError,
    PromotionError,
)

__all__ = [
    "CommitContext", "FileAttribute", "unpack_attributes",
    "ListingEntry", "ListingReader", "open_listing", "read_listing", "write_listing", "sort_listing",
    "TargetFS", "LocalFS",
    "ConcatOutcome", "ConcatResult", "concat_chunks", "concat_file_chunks",
    "iter_stale",
    "delete_stale", "delete_missing", "list_missing",
    "preserve_directory_attributes",
    "PromotionState", "promote",
    "CommitPhase", "CopyCommitter",
    "CommitReport", "CommitWarning", "STATUS_SUCCESS",
    "CommitError", "ListingReadError", "ListingInconsistencyError",
    "ChunkConcatError", "DeletionError", "PromotionError",
]
