"""Remove target entries that are missing from the source."""

from __future__ import annotations

import logging
import os
import posixpath
import tempfile
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from dataclasses import replace

from .context import CommitContext
from .diff import iter_stale
from .exceptions import DeletionError
from .fs import TargetFS
from .listing import ListingEntry, open_listing, sort_listing, write_listing

logger = logging.getLogger(__name__)

TARGET_LISTING_NAME = "targetListing.jsonl"


def delete_stale(
    fs: TargetFS,
    stale: Iterable[ListingEntry],
    *,
    on_progress: Callable[[], None] | None = None,
) -> int:
    """Delete every entry of *stale* from *fs*; return the number removed.

    Uses paged bulk deletes when the filesystem reports a positive page
    size.  The counts returned by the bulk calls are what is summed, since
    a bulk delete may remove fewer paths than it was given.  Otherwise
    entries are deleted one by one; a delete reporting failure is accepted
    only if the path is gone afterwards.

    *on_progress* is called after each round trip that removed something.
    """
    page_size = fs.bulk_delete_page_size()
    deleted = 0
    if page_size > 0:
        logger.info("Destination filesystem supports bulk deletes, maximum size %d",
                    page_size)
        page: list[str] = []
        for entry in stale:
            page.append(entry.source_path)
            if len(page) == page_size:
                logger.info("Initiating bulk delete of size %d", len(page))
                deleted += fs.bulk_delete(page)
                page = []
                if on_progress is not None:
                    on_progress()
        if page:
            logger.info("Initiating final bulk delete of size %d", len(page))
            deleted += fs.bulk_delete(page)
            if on_progress is not None:
                on_progress()
        return deleted

    for entry in stale:
        path = entry.source_path
        if fs.delete(path, recursive=True) or not fs.exists(path):
            logger.info("Deleted %s - Missing at source", path)
            deleted += 1
            if on_progress is not None:
                on_progress()
        else:
            raise DeletionError(f"Unable to delete {path}")
    return deleted


def target_key_prefix(ctx: CommitContext) -> str:
    """Return the prefix target listing keys carry for *ctx*.

    When the copy went into an existing target without sync or overwrite,
    source keys include the copied root's name; target keys are formed the
    same way from the final path's basename.
    """
    if ctx.target_path_exists and not (ctx.sync_folders or ctx.overwrite):
        return posixpath.basename(ctx.target_final_path.rstrip("/"))
    return ""


def build_target_listing(fs: TargetFS, ctx: CommitContext, out_path: str) -> int:
    """Capture the current contents of the final path as a listing at *out_path*.

    Entry ``source_path`` holds the absolute target path, so stale entries
    can be deleted directly.
    """
    prefix = target_key_prefix(ctx)
    entries = fs.walk(ctx.target_final_path)
    if prefix:
        entries = (replace(e, relative_path=f"{prefix}/{e.relative_path}")
                   for e in entries)
    return write_listing(out_path, entries)


@contextmanager
def _sorted_listings(fs: TargetFS, ctx: CommitContext, listing_dir: str):
    """Sort the source listing and a fresh target listing; open both."""
    stem = os.path.splitext(os.path.basename(ctx.listing_path))[0]
    sorted_source = sort_listing(
        ctx.listing_path, os.path.join(listing_dir, f"{stem}_sorted.jsonl"))
    target_listing = os.path.join(listing_dir, TARGET_LISTING_NAME)
    build_target_listing(fs, ctx, target_listing)
    sorted_target = sort_listing(target_listing)
    with open_listing(sorted_source) as source_reader, \
            open_listing(sorted_target) as target_reader:
        yield source_reader, target_reader


def delete_missing(
    fs: TargetFS,
    ctx: CommitContext,
    *,
    progress: Callable[[str], None] | None = None,
) -> int:
    """Delete entries under the final path that the source listing lacks.

    Sorts the source listing, captures and sorts a fresh listing of
    ``ctx.target_final_path`` beside it, then streams the merge-join result
    into :func:`delete_stale`.
    """
    logger.info("-delete option is enabled. About to remove entries from "
                "target that are missing in source")

    listing_dir = os.path.dirname(os.path.abspath(ctx.listing_path))
    with _sorted_listings(fs, ctx, listing_dir) as (source_reader, target_reader):

        def on_progress() -> None:
            if progress is not None:
                progress(f"Deleting missing files from target. [{target_reader.percent}%]")

        deleted = delete_stale(fs, iter_stale(source_reader, target_reader),
                               on_progress=on_progress)
    logger.info("Deleted %d from target: %s", deleted, ctx.target_final_path)
    return deleted


def list_missing(fs: TargetFS, ctx: CommitContext) -> list[ListingEntry]:
    """Return the entries :func:`delete_missing` would remove, deleting nothing.

    Working listings go to a temporary directory, leaving the meta folder
    untouched.
    """
    with tempfile.TemporaryDirectory(prefix="distcommit-") as tmp:
        with _sorted_listings(fs, ctx, tmp) as (source_reader, target_reader):
            return list(iter_stale(source_reader, target_reader))
