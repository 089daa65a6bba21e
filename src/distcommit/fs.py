"""Target filesystem capability surface and the local-disk implementation.

The commit only needs a handful of primitives from the target store.  Each
call either succeeds, returns ``False`` where the primitive is documented
to report failure that way, or raises ``OSError``.  Retrying individual
calls is the filesystem object's concern, not the committer's.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import shutil
import stat
from collections.abc import Iterator, Sequence
from typing import Protocol, runtime_checkable

from .listing import ListingEntry

logger = logging.getLogger(__name__)

_COPY_BUFSIZE = 1024 * 1024


@runtime_checkable
class TargetFS(Protocol):
    """Primitives the committer requires of the target store."""

    def rename(self, src: str, dst: str) -> bool: ...

    def concat(self, dst: str, srcs: Sequence[str]) -> None:
        """Append *srcs* to *dst* in order and remove them.

        Raises ``FileNotFoundError`` if *dst* or any source is missing.
        """

    def delete(self, path: str, recursive: bool = False) -> bool: ...

    def exists(self, path: str) -> bool: ...

    def glob(self, directory: str, pattern: str) -> list[str]: ...

    def walk(self, root: str) -> Iterator[ListingEntry]: ...

    def bulk_delete_page_size(self) -> int:
        """Maximum paths per :meth:`bulk_delete` call; ``0`` if unsupported."""

    def bulk_delete(self, paths: Sequence[str]) -> int:
        """Delete *paths*; return how many were actually removed."""

    def set_owner(self, path: str, owner: str | None, group: str | None) -> None: ...

    def set_permission(self, path: str, permission: int) -> None: ...

    def set_times(self, path: str, mtime: float) -> None: ...

    def set_xattr(self, path: str, name: str, value: bytes) -> None: ...


# ---------------------------------------------------------------------------
# Local disk
# ---------------------------------------------------------------------------

def _owner_names(st: os.stat_result) -> tuple[str | None, str | None]:
    try:
        import grp
        import pwd
    except ImportError:
        return None, None
    try:
        owner = pwd.getpwuid(st.st_uid).pw_name
    except KeyError:
        owner = None
    try:
        group = grp.getgrgid(st.st_gid).gr_name
    except KeyError:
        group = None
    return owner, group


class LocalFS:
    """:class:`TargetFS` on the local filesystem.

    Args:
        bulk_delete_page_size: Page size reported to the deletion phase.
            ``0`` (the default) disables bulk deletes.
    """

    def __init__(self, bulk_delete_page_size: int = 0):
        self._page_size = bulk_delete_page_size

    def __repr__(self) -> str:
        return f"LocalFS(bulk_delete_page_size={self._page_size})"

    def rename(self, src: str, dst: str) -> bool:
        """Rename *src* to *dst*, creating missing parents of *dst*.

        Returns ``False`` if *src* is missing, *dst* exists, or the OS
        refuses the rename.
        """
        if not os.path.lexists(src) or os.path.lexists(dst):
            return False
        try:
            parent = os.path.dirname(dst)
            if parent:
                os.makedirs(parent, exist_ok=True)
            os.rename(src, dst)
        except OSError as exc:
            logger.debug("rename %s -> %s failed: %s", src, dst, exc)
            return False
        return True

    def concat(self, dst: str, srcs: Sequence[str]) -> None:
        for p in (dst, *srcs):
            if not os.path.isfile(p):
                raise FileNotFoundError(p)
        with open(dst, "ab") as out:
            for src in srcs:
                with open(src, "rb") as f:
                    shutil.copyfileobj(f, out, _COPY_BUFSIZE)
        for src in srcs:
            os.remove(src)

    def delete(self, path: str, recursive: bool = False) -> bool:
        if not os.path.lexists(path):
            return False
        if os.path.isdir(path) and not os.path.islink(path):
            if recursive:
                shutil.rmtree(path)
            else:
                os.rmdir(path)
        else:
            os.remove(path)
        return True

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def glob(self, directory: str, pattern: str) -> list[str]:
        """Return entries of *directory* whose names match *pattern*.

        Unlike :func:`glob.glob`, a leading ``*`` also matches dotfiles.
        """
        try:
            names = os.listdir(directory)
        except FileNotFoundError:
            return []
        return sorted(os.path.join(directory, n) for n in names
                      if fnmatch.fnmatchcase(n, pattern))

    def walk(self, root: str) -> Iterator[ListingEntry]:
        """Yield an entry for everything below *root* (not *root* itself).

        Keys are relative to *root*.  Symlinks are listed, not followed.
        """
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            rel_dir = os.path.relpath(dirpath, root)
            for name in sorted(dirnames + filenames):
                full = os.path.join(dirpath, name)
                key = name if rel_dir == "." else f"{rel_dir}/{name}".replace(os.sep, "/")
                yield self._entry(full, key)

    def _entry(self, full: str, key: str) -> ListingEntry:
        st = os.lstat(full)
        owner, group = _owner_names(st)
        is_dir = stat.S_ISDIR(st.st_mode)
        length = 0 if is_dir else st.st_size
        return ListingEntry(
            relative_path=key,
            source_path=full,
            length=length,
            mod_time=st.st_mtime,
            is_directory=is_dir,
            owner=owner,
            group=group,
            permission=stat.S_IMODE(st.st_mode),
        )

    def bulk_delete_page_size(self) -> int:
        return self._page_size

    def bulk_delete(self, paths: Sequence[str]) -> int:
        if self._page_size <= 0:
            raise ValueError("bulk delete is disabled on this filesystem")
        if len(paths) > self._page_size:
            raise ValueError(
                f"Bulk delete of {len(paths)} paths exceeds page size {self._page_size}")
        deleted = 0
        for p in paths:
            if self.delete(p, recursive=True):
                deleted += 1
        return deleted

    def set_owner(self, path: str, owner: str | None, group: str | None) -> None:
        if owner is None and group is None:
            return
        shutil.chown(path, user=owner, group=group)

    def set_permission(self, path: str, permission: int) -> None:
        os.chmod(path, permission)

    def set_times(self, path: str, mtime: float) -> None:
        os.utime(path, (mtime, mtime))

    def set_xattr(self, path: str, name: str, value: bytes) -> None:
        os.setxattr(path, name, value, follow_symlinks=False)
