"""Tests for directory attribute preservation."""

import os

import pytest

from distcommit import FileAttribute, LocalFS, preserve_directory_attributes
from distcommit.preserve import preserve

from conftest import dir_entry, file_entry


def _attrs_listing(job):
    job.write_listing([
        dir_entry("", owner="root", permission=0o755),
        dir_entry("d", owner="alice", group="staff", permission=0o750, mod_time=1000.0,
                  xattrs={"user.tag": b"v", "raw.hidden": b"r"}),
        file_entry("d/f", 3, owner="alice", permission=0o644),
    ])


class TestPreserveDirectoryAttributes:
    def test_noop_when_not_configured(self, job, rfs):
        _attrs_listing(job)
        assert preserve_directory_attributes(rfs, job.context()) == 0
        assert rfs.calls == []

    def test_directories_only(self, job, rfs):
        _attrs_listing(job)
        n = preserve_directory_attributes(rfs, job.context(**{"preserve-status": "p"}))
        assert n == 2
        assert rfs.named("set_permission") == [
            ("set_permission", str(job.work), 0o755),
            ("set_permission", str(job.work / "d"), 0o750),
        ]

    @pytest.mark.parametrize("flag", ["sync-folders", "overwrite"])
    def test_root_skipped_for_sync_or_overwrite(self, job, rfs, flag):
        _attrs_listing(job)
        ctx = job.context(**{"preserve-status": "p", flag: True})
        assert preserve_directory_attributes(rfs, ctx) == 1
        assert [c[1] for c in rfs.named("set_permission")] == [str(job.work / "d")]

    def test_user_group_times(self, job, rfs):
        _attrs_listing(job)
        preserve_directory_attributes(rfs, job.context(**{"preserve-status": "ugt"}))
        d = str(job.work / "d")
        assert ("set_owner", d, "alice", "staff") in rfs.calls
        assert ("set_times", d, 1000.0) in rfs.calls
        assert rfs.named("set_permission") == []

    def test_xattrs_without_raw(self, job, rfs):
        _attrs_listing(job)
        preserve_directory_attributes(rfs, job.context(**{"preserve-status": "x"}))
        assert rfs.named("set_xattr") == [("set_xattr", str(job.work / "d"), "user.tag", b"v")]

    def test_raw_xattrs_only(self, job, rfs):
        _attrs_listing(job)
        preserve_directory_attributes(rfs, job.context(**{"preserve-raw-xattrs": True}))
        assert rfs.named("set_xattr") == [
            ("set_xattr", str(job.work / "d"), "raw.hidden", b"r")]

    def test_progress(self, job, rfs):
        _attrs_listing(job)
        messages = []
        preserve_directory_attributes(rfs, job.context(**{"preserve-status": "p"}),
                                      progress=messages.append)
        assert len(messages) == 2
        assert messages[0].startswith("Preserving status on directory entries. [")

    def test_errors_propagate_with_ignore_failures(self, job):
        job.write_listing([dir_entry("missing", permission=0o700)])
        ctx = job.context(**{"preserve-status": "p", "ignore-failures": True})
        with pytest.raises(FileNotFoundError):
            preserve_directory_attributes(LocalFS(), ctx)


class TestPreserveLocal:
    def test_permission_and_times_on_disk(self, tmp_path):
        d = tmp_path / "d"
        d.mkdir()
        entry = dir_entry("d", permission=0o705, mod_time=123456.0)
        preserve(LocalFS(), str(d), entry,
                 {FileAttribute.PERMISSION, FileAttribute.TIMES})
        st = os.stat(d)
        assert st.st_mode & 0o777 == 0o705
        assert st.st_mtime == 123456.0

    def test_unsupported_attributes_ignored(self, tmp_path, rfs):
        preserve(rfs, str(tmp_path), dir_entry("d"),
                 {FileAttribute.REPLICATION, FileAttribute.BLOCKSIZE,
                  FileAttribute.ACL, FileAttribute.CHECKSUMTYPE})
        assert rfs.calls == []
