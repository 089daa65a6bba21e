"""Shared fixtures for distcommit tests."""

import pytest
from click.testing import CliRunner

from distcommit import CommitContext, ListingEntry, LocalFS, write_listing


# ---------------------------------------------------------------------------
# Entry helpers
# ---------------------------------------------------------------------------

def file_entry(key, length, offset=0, chunk=None, **kw):
    """A file entry; pass *offset*/*chunk* for one chunk of a split file."""
    kw.setdefault("source_path", "/src/" + key)
    return ListingEntry(relative_path=key, length=length,
                        chunk_offset=offset, chunk_length=chunk, **kw)


def dir_entry(key, **kw):
    kw.setdefault("source_path", "/src/" + key)
    return ListingEntry(relative_path=key, is_directory=True, **kw)


def chunked(key, data, size):
    """Split *data* into chunk entries of *size* bytes; return (entries, parts)."""
    entries, parts = [], []
    for off in range(0, len(data), size):
        part = data[off:off + size]
        entries.append(file_entry(key, len(data), off, len(part)))
        parts.append(part)
    return entries, parts


# ---------------------------------------------------------------------------
# Filesystem doubles
# ---------------------------------------------------------------------------

class RecordingFS(LocalFS):
    """LocalFS that records calls and can be told to misbehave."""

    def __init__(self, bulk_delete_page_size=0):
        super().__init__(bulk_delete_page_size)
        self.calls = []
        self.concat_calls = []
        self.bulk_calls = []
        self.fail_rename = False
        self.fail_delete = set()
        self.bulk_results = None
        self.concat_error = None

    def rename(self, src, dst):
        self.calls.append(("rename", src, dst))
        if self.fail_rename:
            return False
        return super().rename(src, dst)

    def concat(self, dst, srcs):
        self.concat_calls.append((dst, list(srcs)))
        if self.concat_error is not None:
            raise self.concat_error
        super().concat(dst, srcs)

    def delete(self, path, recursive=False):
        self.calls.append(("delete", path))
        if path in self.fail_delete:
            return False
        return super().delete(path, recursive)

    def bulk_delete(self, paths):
        self.bulk_calls.append(list(paths))
        if self.bulk_results is not None:
            return self.bulk_results.pop(0)
        return super().bulk_delete(paths)

    def set_owner(self, path, owner, group):
        self.calls.append(("set_owner", path, owner, group))

    def set_permission(self, path, permission):
        self.calls.append(("set_permission", path, permission))

    def set_times(self, path, mtime):
        self.calls.append(("set_times", path, mtime))

    def set_xattr(self, path, name, value):
        self.calls.append(("set_xattr", path, name, value))

    def named(self, op):
        return [c for c in self.calls if c[0] == op]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def rfs():
    return RecordingFS()


class Job:
    """Directory layout of one copy job under a temp dir."""

    def __init__(self, root):
        self.root = root
        self.meta = root / "meta"
        self.work = root / "target" / ".work"
        self.final = root / "target" / "final"
        self.listing = self.meta / "fileList.jsonl"
        self.meta.mkdir()
        self.work.mkdir(parents=True)

    def write_listing(self, entries):
        write_listing(self.listing, entries)

    def put(self, key, data=b"x", *, base=None):
        p = (base or self.work) / key
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        return p

    def put_chunks(self, key, data, size):
        """Write chunk files for *key*; return the chunk entries."""
        entries, parts = chunked(key, data, size)
        target = str(self.work / key)
        for entry, part in zip(entries, parts):
            name = f"{target}.____distcpSplit____{entry.chunk_offset}.{entry.chunk_length}"
            self.put(key, part).rename(name)
        return entries

    def context(self, **options):
        base = {
            "listing-file-path": str(self.listing),
            "target-work-path": str(self.work),
            "target-final-path": str(self.final),
            "meta-folder": str(self.meta),
            "target-path-exists": False,
        }
        base.update(options)
        return CommitContext.from_options(base)


@pytest.fixture
def job(tmp_path):
    return Job(tmp_path)
