"""Exceptions for distcommit."""


class CommitError(OSError):
    """Base class for failures raised while committing a copy job."""


class ListingReadError(CommitError):
    """Raised when a listing file is truncated or corrupt."""


class ListingInconsistencyError(CommitError):
    """Raised when chunk entries are out of order or not contiguous.

    Only raised when ``ignore_failures`` is off; otherwise the offending
    chunk group is dropped and a warning is recorded on the report.
    """


class ChunkConcatError(CommitError):
    """Raised when chunk files exist but could not be concatenated."""


class DeletionError(CommitError):
    """Raised when a stale target entry could not be deleted."""


class PromotionError(CommitError):
    """Raised when the work path could not be promoted to the final path.

    The copied data is left untouched in the work path.
    """
