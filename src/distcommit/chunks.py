"""Reassemble chunked uploads into single logical files.

Workers copy large files as several chunk files named
``<target>.____distcpSplit____<offset>.<length>``.  The source listing holds
one entry per chunk, contiguous and in offset order.  Once the last chunk of
a file has been seen, its chunks are concatenated into the first one, which
is then renamed onto the logical target path.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from .context import CommitContext
from .exceptions import ChunkConcatError, ListingInconsistencyError
from .fs import TargetFS
from .listing import ListingEntry, chunk_path, open_listing, target_path
from .report import CommitReport, CommitWarning

logger = logging.getLogger(__name__)


class ConcatOutcome(str, Enum):
    """Outcome of reassembling one logical file."""
    SINGLE = "single"
    CONCATENATED = "concatenated"
    SKIPPED = "skipped"
    ERROR = "error"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass
class ConcatResult:
    """Result of :func:`concat_chunks` for one logical file.

    Attributes:
        path: Logical target path.
        outcome: What happened.
        chunks: Number of chunk files in the group.
        error: Error message for ``SKIPPED`` and ``ERROR`` outcomes.
    """
    path: str
    outcome: ConcatOutcome
    chunks: int = 1
    error: str | None = None


@dataclass
class _ChunkGroup:
    key: str
    target_file: str
    paths: list[str] = field(default_factory=list)
    next_offset: int = 0
    last: ListingEntry | None = None

    def add(self, entry: ListingEntry, path: str) -> None:
        self.paths.append(path)
        self.next_offset = entry.chunk_offset + entry.chunk_length
        self.last = entry


def _replace(fs: TargetFS, tmp: str, dst: str) -> None:
    """Move *tmp* onto *dst*, removing any existing *dst* first."""
    if fs.exists(dst):
        fs.delete(dst, recursive=True)
    if not fs.rename(tmp, dst):
        raise OSError(f"Fail to rename tmp file (={tmp}) to destination file (={dst})")


def concat_chunks(fs: TargetFS, target_file: str, paths: Sequence[str]) -> ConcatResult:
    """Combine chunk files *paths* into *target_file*.

    A single chunk is already in its final position and is left alone.
    A missing chunk means the copy phase chose to skip the file, which is
    reported as ``SKIPPED`` rather than as an error.
    """
    if len(paths) == 1:
        return ConcatResult(target_file, ConcatOutcome.SINGLE)
    first, rest = paths[0], list(paths[1:])
    logger.debug("concat %s from %d chunks", target_file, len(paths))
    try:
        fs.concat(first, rest)
    except FileNotFoundError as exc:
        return ConcatResult(target_file, ConcatOutcome.SKIPPED, len(paths), str(exc))
    except OSError as exc:
        return ConcatResult(target_file, ConcatOutcome.ERROR, len(paths), str(exc))
    try:
        _replace(fs, first, target_file)
    except OSError as exc:
        return ConcatResult(target_file, ConcatOutcome.ERROR, len(paths), str(exc))
    return ConcatResult(target_file, ConcatOutcome.CONCATENATED, len(paths))


def concat_file_chunks(
    fs: TargetFS,
    ctx: CommitContext,
    *,
    report: CommitReport | None = None,
) -> list[ConcatResult]:
    """Reassemble every chunked file named in the source listing.

    Chunk entries that are out of order or not contiguous raise
    :class:`ListingInconsistencyError`, unless ``ctx.ignore_failures`` is
    set; then the affected file is dropped with a warning and the remaining
    files are still reassembled.  Concat failures other than missing chunks
    raise :class:`ChunkConcatError` under the same policy.

    Returns one :class:`ConcatResult` per logical file completed.
    """
    if not ctx.listing_path:
        return []
    if report is None:
        report = CommitReport()

    logger.info("concat file chunks ...")

    def inconsistent(path: str, msg: str) -> None:
        if not ctx.ignore_failures:
            raise ListingInconsistencyError(msg)
        logger.warning("%s, skipping concat this set.", msg)
        report.warnings.append(CommitWarning(path, msg))

    results: list[ConcatResult] = []
    group: _ChunkGroup | None = None
    dropped: str | None = None

    with open_listing(ctx.listing_path) as reader:
        for entry in reader:
            if entry.is_directory:
                continue
            key = entry.relative_path
            if dropped is not None:
                if key == dropped:
                    continue
                dropped = None

            if group is not None and (key != group.key
                                      or entry.chunk_offset != group.next_offset):
                inconsistent(group.target_file,
                             f"Inconsistent sequence file: current chunk file "
                             f"{entry} doesnt match prior entry {group.last}")
                if key == group.key:
                    dropped = key
                    group = None
                    continue
                group = None

            target_file = target_path(ctx.target_work_path, key)
            if group is None:
                if entry.chunk_offset != 0:
                    inconsistent(target_file,
                                 f"Inconsistent sequence file: chunk {entry} "
                                 f"is not preceded by the earlier chunks of its file")
                    dropped = key
                    continue
                group = _ChunkGroup(key, target_file)

            path = chunk_path(target_file, entry)
            logger.debug("  add %s to concat.", path)
            group.add(entry, path)
            if not entry.is_last_chunk:
                continue

            result = concat_chunks(fs, group.target_file, group.paths)
            group = None
            results.append(result)
            if result.outcome == ConcatOutcome.CONCATENATED:
                report.concatenated.append(result.path)
            elif result.outcome == ConcatOutcome.SKIPPED:
                logger.info("Chunks of %s missing, assuming it was skipped: %s",
                            result.path, result.error)
                report.skipped.append(result.path)
            elif result.outcome == ConcatOutcome.ERROR:
                msg = f"Failed to concat chunk files for {result.path}: {result.error}"
                if not ctx.ignore_failures:
                    raise ChunkConcatError(msg)
                logger.warning(msg)
                report.warnings.append(CommitWarning(result.path, msg))

    if group is not None:
        inconsistent(group.target_file,
                     f"Inconsistent sequence file: listing ended before the "
                     f"last chunk of {group.key!r} (prior entry {group.last})")
    return results
