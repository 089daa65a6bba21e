"""Per-run commit parameters and the recognised configuration surface."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

# ---------------------------------------------------------------------------
# Option names
# ---------------------------------------------------------------------------

OPT_SYNC_FOLDERS = "sync-folders"
OPT_OVERWRITE = "overwrite"
OPT_TARGET_PATH_EXISTS = "target-path-exists"
OPT_IGNORE_FAILURES = "ignore-failures"
OPT_DELETE_MISSING = "delete-missing"
OPT_ATOMIC_COPY = "atomic-copy"
OPT_PRESERVE_STATUS = "preserve-status"
OPT_PRESERVE_RAW_XATTRS = "preserve-raw-xattrs"
OPT_LISTING_FILE_PATH = "listing-file-path"
OPT_TARGET_WORK_PATH = "target-work-path"
OPT_TARGET_FINAL_PATH = "target-final-path"
OPT_META_FOLDER = "meta-folder"
OPT_JOB_ID = "job-id"

# option name -> (CommitContext field, kind)
_OPTIONS: dict[str, tuple[str, type]] = {
    OPT_SYNC_FOLDERS: ("sync_folders", bool),
    OPT_OVERWRITE: ("overwrite", bool),
    OPT_TARGET_PATH_EXISTS: ("target_path_exists", bool),
    OPT_IGNORE_FAILURES: ("ignore_failures", bool),
    OPT_DELETE_MISSING: ("delete_missing", bool),
    OPT_ATOMIC_COPY: ("atomic_commit", bool),
    OPT_PRESERVE_STATUS: ("preserve_status", str),
    OPT_PRESERVE_RAW_XATTRS: ("preserve_raw_xattrs", bool),
    OPT_LISTING_FILE_PATH: ("listing_path", str),
    OPT_TARGET_WORK_PATH: ("target_work_path", str),
    OPT_TARGET_FINAL_PATH: ("target_final_path", str),
    OPT_META_FOLDER: ("meta_folder", str),
    OPT_JOB_ID: ("job_id", str),
}

OPTION_NAMES = tuple(_OPTIONS)

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off", ""}


def _parse_bool(name: str, value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v in _TRUE:
            return True
        if v in _FALSE:
            return False
    raise ValueError(f"Invalid boolean for {name!r}: {value!r}")


# ---------------------------------------------------------------------------
# Attribute symbols
# ---------------------------------------------------------------------------

class FileAttribute(str, Enum):
    """Attributes that can be preserved on target entries.

    Each member's value is the single-letter symbol used in the
    ``preserve-status`` option (e.g. ``"ugp"``).
    """
    REPLICATION = "r"
    BLOCKSIZE = "b"
    USER = "u"
    GROUP = "g"
    PERMISSION = "p"
    CHECKSUMTYPE = "c"
    ACL = "a"
    XATTR = "x"
    TIMES = "t"

    def __str__(self) -> str:          # noqa: D105
        return self.value


def unpack_attributes(symbols: str | None) -> frozenset[FileAttribute]:
    """Convert a symbol string such as ``"ugpt"`` to a set of attributes.

    Raises ``ValueError`` on an unknown symbol.
    """
    if not symbols:
        return frozenset()
    result = set()
    for ch in symbols.lower():
        try:
            result.add(FileAttribute(ch))
        except ValueError:
            raise ValueError(f"Unknown preserve attribute {ch!r} in {symbols!r}")
    return frozenset(result)


# ---------------------------------------------------------------------------
# CommitContext
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommitContext:
    """Immutable parameters of one commit attempt.

    Built once from job configuration with :meth:`from_options` and passed
    to every phase.

    Attributes:
        sync_folders: Run is a folder sync (``-update`` semantics).
        overwrite: Run overwrites an existing target.
        target_path_exists: The target path existed before the copy.
        ignore_failures: Downgrade listing and concat failures to warnings.
        delete_missing: Remove target entries missing from the source.
        atomic_commit: Promote the work path to the final path by rename.
        preserve_status: Attribute symbols to preserve on directories.
        preserve_raw_xattrs: Preserve ``raw.*`` extended attributes.
        listing_path: Source listing file.
        target_work_path: Directory the workers wrote into.
        target_final_path: Final target directory.
        meta_folder: Job metadata folder, removed at the end of commit.
        job_id: Job identifier, used to locate per-attempt temp files.
    """
    sync_folders: bool = False
    overwrite: bool = False
    target_path_exists: bool = True
    ignore_failures: bool = False
    delete_missing: bool = False
    atomic_commit: bool = False
    preserve_status: str = ""
    preserve_raw_xattrs: bool = False
    listing_path: str = ""
    target_work_path: str = ""
    target_final_path: str = ""
    meta_folder: str = ""
    job_id: str = ""

    @classmethod
    def from_options(cls, options: Mapping[str, object]) -> CommitContext:
        """Build a context from a mapping of option names to values.

        Keys are the option names in :data:`OPTION_NAMES`; underscores are
        accepted in place of dashes.  ``None`` values are ignored.  Raises
        ``ValueError`` for unknown names or unparseable booleans.
        """
        kwargs: dict[str, object] = {}
        for raw_name, value in options.items():
            name = raw_name.replace("_", "-")
            if name not in _OPTIONS:
                raise ValueError(f"Unknown commit option: {raw_name!r}")
            if value is None:
                continue
            attr, kind = _OPTIONS[name]
            kwargs[attr] = _parse_bool(name, value) if kind is bool else str(value)
        ctx = cls(**kwargs)
        unpack_attributes(ctx.preserve_status)
        return ctx

    @property
    def attributes(self) -> frozenset[FileAttribute]:
        return unpack_attributes(self.preserve_status)

    @property
    def preserves_attributes(self) -> bool:
        """``True`` if any directory attribute preservation is configured."""
        return bool(self.preserve_status) or self.preserve_raw_xattrs

    @property
    def attempt_id(self) -> str:
        """Per-attempt prefix derived from the job id (``job`` → ``attempt``)."""
        return self.job_id.replace("job", "attempt")
