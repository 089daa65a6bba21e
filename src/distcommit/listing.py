"""Persisted copy listings: entries, sequential readers, writer and sort.

A listing is a JSON Lines file.  Each line holds one entry::

    {"key": "dir/file.txt", "entry": {"source_path": ..., "length": ...}}

Entries are ordered by key.  The key is the path relative to the copy root,
``/``-separated; a leading slash is dropped on read (``""`` is the root
itself).
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from .exceptions import ListingReadError

SPLIT_CHUNK_SUFFIX = ".____distcpSplit____"


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ListingEntry:
    """One copied path, or one chunk of a copied file.

    Attributes:
        relative_path: Listing key, relative to the copy root.
        source_path: Absolute path of the source.
        length: Total length of the logical file in bytes.
        mod_time: Modification time, seconds since the epoch.
        is_directory: ``True`` for directory entries.
        chunk_offset: Offset of this chunk within the file.
        chunk_length: Length of this chunk (``length`` when not split).
        owner: Owning user name, if known.
        group: Owning group name, if known.
        permission: Permission bits, if known.
        xattrs: Extended attributes, name to raw value.
    """
    relative_path: str
    source_path: str = ""
    length: int = 0
    mod_time: float = 0.0
    is_directory: bool = False
    chunk_offset: int = 0
    chunk_length: int | None = None
    owner: str | None = None
    group: str | None = None
    permission: int | None = None
    xattrs: Mapping[str, bytes] = field(default_factory=dict)

    def __post_init__(self):
        if self.chunk_length is None:
            object.__setattr__(self, "chunk_length", self.length)

    @property
    def key(self) -> str:
        return self.relative_path

    @property
    def is_split(self) -> bool:
        """``True`` if this entry covers only part of its file."""
        return not self.is_directory and self.chunk_length != self.length

    @property
    def is_last_chunk(self) -> bool:
        return self.chunk_offset + self.chunk_length == self.length

    def to_dict(self) -> dict:
        return {
            "source_path": self.source_path,
            "length": self.length,
            "mod_time": self.mod_time,
            "is_directory": self.is_directory,
            "chunk_offset": self.chunk_offset,
            "chunk_length": self.chunk_length,
            "owner": self.owner,
            "group": self.group,
            "permission": self.permission,
            "xattrs": {k: v.hex() for k, v in self.xattrs.items()},
        }

    @classmethod
    def from_dict(cls, key: str, data: Mapping) -> ListingEntry:
        """Build an entry from a stored record.

        A leading ``/`` on *key* is dropped.  Raises ``TypeError`` when
        *key*, ``source_path`` or ``permission`` has the wrong type.
        """
        if not isinstance(key, str):
            raise TypeError(f"listing key must be a string, not {type(key).__name__}")
        source_path = data.get("source_path", "")
        if not isinstance(source_path, str):
            raise TypeError("source_path must be a string")
        permission = data.get("permission")
        if permission is not None and (
                not isinstance(permission, int) or isinstance(permission, bool)):
            raise TypeError("permission must be an integer")
        return cls(
            relative_path=key.lstrip("/"),
            source_path=source_path,
            length=int(data["length"]),
            mod_time=float(data.get("mod_time", 0.0)),
            is_directory=bool(data.get("is_directory", False)),
            chunk_offset=int(data.get("chunk_offset", 0)),
            chunk_length=(int(data["chunk_length"])
                          if data.get("chunk_length") is not None else None),
            owner=data.get("owner"),
            group=data.get("group"),
            permission=permission,
            xattrs={k: bytes.fromhex(v) for k, v in (data.get("xattrs") or {}).items()},
        )

    def __str__(self) -> str:
        kind = "dir" if self.is_directory else "file"
        return (f"{kind} {self.relative_path!r} "
                f"[{self.chunk_offset}+{self.chunk_length}/{self.length}]")


def target_path(root: str, key: str) -> str:
    """Return the target path for listing *key* under *root*."""
    if not key:
        return root
    return root.rstrip("/") + "/" + key


def chunk_path(target_file: str, entry: ListingEntry) -> str:
    """Return the path a worker wrote *entry*'s bytes to.

    Unsplit files are written in place; chunks of split files get a
    ``.____distcpSplit____<offset>.<length>`` suffix.
    """
    if not entry.is_split:
        return target_file
    return f"{target_file}{SPLIT_CHUNK_SUFFIX}{entry.chunk_offset}.{entry.chunk_length}"


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

class ListingReader:
    """Forward-only reader over a listing file.

    Use as a context manager; iterating yields :class:`ListingEntry`
    values lazily.  Reopen the file to restart.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = os.fspath(path)
        try:
            self._fh = open(self.path, "rb")
        except FileNotFoundError:
            raise ListingReadError(f"Listing not found: {self.path}")
        self.size = os.fstat(self._fh.fileno()).st_size
        self.position = 0
        self._lineno = 0

    def __iter__(self) -> Iterator[ListingEntry]:
        return self

    def __next__(self) -> ListingEntry:
        if self._fh is None:
            raise ValueError("I/O operation on closed listing")
        raw = self._fh.readline()
        if not raw:
            raise StopIteration
        self._lineno += 1
        self.position += len(raw)
        if not raw.endswith(b"\n"):
            raise ListingReadError(
                f"{self.path}:{self._lineno}: truncated listing record")
        try:
            record = json.loads(raw)
            return ListingEntry.from_dict(record["key"], record["entry"])
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ListingReadError(
                f"{self.path}:{self._lineno}: corrupt listing record: {exc}")

    @property
    def percent(self) -> int:
        """Percentage of the file consumed so far."""
        if not self.size:
            return 100
        return self.position * 100 // self.size

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def open_listing(path: str | os.PathLike[str]) -> ListingReader:
    """Open a listing for sequential reading."""
    return ListingReader(path)


def read_listing(path: str | os.PathLike[str]) -> list[ListingEntry]:
    """Read an entire listing into memory."""
    with open_listing(path) as reader:
        return list(reader)


# ---------------------------------------------------------------------------
# Writing and sorting
# ---------------------------------------------------------------------------

def write_listing(path: str | os.PathLike[str], entries: Iterable[ListingEntry]) -> int:
    """Write *entries* to *path* in the given order; return the count."""
    count = 0
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        for entry in entries:
            f.write(json.dumps({"key": entry.relative_path, "entry": entry.to_dict()},
                               sort_keys=True))
            f.write("\n")
            count += 1
    return count


def sort_listing(path: str | os.PathLike[str],
                 out_path: str | os.PathLike[str] | None = None) -> str:
    """Write a copy of the listing at *path* sorted by key.

    The sort is stable, so chunk entries of one file keep their relative
    order.  Defaults to ``<stem>_sorted.jsonl`` beside the input.  Returns
    the output path.
    """
    path = os.fspath(path)
    if out_path is None:
        stem, _ = os.path.splitext(path)
        out_path = stem + "_sorted.jsonl"
    entries = read_listing(path)
    entries.sort(key=lambda e: e.relative_path)
    write_listing(out_path, entries)
    return os.fspath(out_path)


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------

class ListingCursor:
    """Peek/advance view over an ascending sequence of entries."""

    def __init__(self, entries: Iterable[ListingEntry]):
        self._it = iter(entries)
        self.current: ListingEntry | None = None
        self.advance()

    def peek_key(self) -> str | None:
        """Key of the current entry, or ``None`` when exhausted."""
        return None if self.current is None else self.current.relative_path

    def advance(self) -> None:
        self.current = next(self._it, None)
