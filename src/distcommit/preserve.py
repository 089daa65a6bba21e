"""Re-apply source directory attributes on the target.

File attributes are set by the workers as each file is copied; directories
are only finished once every file below them is in place, so their
ownership, permissions, times and extended attributes are applied here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Set

from .context import CommitContext, FileAttribute
from .fs import TargetFS
from .listing import ListingEntry, open_listing, target_path

logger = logging.getLogger(__name__)

RAW_XATTR_PREFIX = "raw."


def preserve(
    fs: TargetFS,
    path: str,
    entry: ListingEntry,
    attributes: Set[FileAttribute],
    preserve_raw_xattrs: bool = False,
) -> None:
    """Apply the attributes of *entry* selected by *attributes* to *path*.

    ``raw.*`` extended attributes are applied only when
    *preserve_raw_xattrs* is set, regardless of :attr:`FileAttribute.XATTR`.
    Replication, block size, checksum type and ACLs have no counterpart on
    the supported targets and are ignored.
    """
    if entry.xattrs and (FileAttribute.XATTR in attributes or preserve_raw_xattrs):
        for name, value in entry.xattrs.items():
            if name.startswith(RAW_XATTR_PREFIX):
                if not preserve_raw_xattrs:
                    continue
            elif FileAttribute.XATTR not in attributes:
                continue
            fs.set_xattr(path, name, value)

    owner = entry.owner if FileAttribute.USER in attributes else None
    group = entry.group if FileAttribute.GROUP in attributes else None
    if owner is not None or group is not None:
        fs.set_owner(path, owner, group)

    if FileAttribute.PERMISSION in attributes and entry.permission is not None:
        fs.set_permission(path, entry.permission)

    if FileAttribute.TIMES in attributes:
        fs.set_times(path, entry.mod_time)


def preserve_directory_attributes(
    fs: TargetFS,
    ctx: CommitContext,
    *,
    progress: Callable[[str], None] | None = None,
) -> int:
    """Preserve attributes on every directory named in the source listing.

    The target root is skipped for sync and overwrite runs, where it
    already existed and keeps its own attributes.  Errors propagate; they
    are not covered by ``ignore_failures``.

    Returns the number of directories updated.
    """
    if not ctx.preserves_attributes:
        return 0
    attributes = ctx.attributes
    sync_or_overwrite = ctx.sync_folders or ctx.overwrite
    root = ctx.target_work_path.rstrip("/")

    logger.info("About to preserve attributes: %s", ctx.preserve_status)

    preserved = 0
    with open_listing(ctx.listing_path) as reader:
        for entry in reader:
            if not entry.is_directory:
                continue
            path = target_path(ctx.target_work_path, entry.relative_path)
            if sync_or_overwrite and path.rstrip("/") == root:
                continue
            preserve(fs, path, entry, attributes, ctx.preserve_raw_xattrs)
            preserved += 1
            if progress is not None:
                progress(f"Preserving status on directory entries. [{reader.percent}%]")
    logger.info("Preserved status on %d dir entries on target", preserved)
    return preserved
