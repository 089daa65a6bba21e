"""Tests for chunk reassembly."""

import pytest

from distcommit import (
    ChunkConcatError,
    CommitReport,
    ConcatOutcome,
    ListingInconsistencyError,
    concat_chunks,
    concat_file_chunks,
)

from conftest import dir_entry, file_entry


class TestConcatFileChunks:
    def test_two_chunks_reassembled(self, job, rfs):
        data = b"0123456789abcdefghij"
        job.write_listing([dir_entry("a"), *job.put_chunks("a/f", data, 10)])
        results = concat_file_chunks(rfs, job.context())

        assert [r.outcome for r in results] == [ConcatOutcome.CONCATENATED]
        assert len(rfs.concat_calls) == 1
        assert (job.work / "a" / "f").read_bytes() == data
        assert sorted(p.name for p in (job.work / "a").iterdir()) == ["f"]

    def test_many_chunks_result_length(self, job, rfs):
        data = bytes(range(256)) * 4
        job.write_listing(job.put_chunks("big", data, 100))
        concat_file_chunks(rfs, job.context())
        dst, rest = rfs.concat_calls[0]
        assert dst.endswith(".____distcpSplit____0.100")
        assert len(rest) == 10
        assert (job.work / "big").stat().st_size == len(data)
        assert (job.work / "big").read_bytes() == data

    def test_single_chunk_no_concat(self, job, rfs):
        job.put("a", b"abc")
        job.write_listing([file_entry("a", 3)])
        results = concat_file_chunks(rfs, job.context())
        assert [r.outcome for r in results] == [ConcatOutcome.SINGLE]
        assert rfs.concat_calls == []
        assert (job.work / "a").read_bytes() == b"abc"

    def test_one_concat_per_logical_file(self, job, rfs):
        entries = (job.put_chunks("a", b"a" * 30, 10)
                   + [file_entry("b", 1)]
                   + job.put_chunks("c", b"c" * 25, 10))
        job.put("b")
        job.write_listing(entries)
        report = CommitReport()
        concat_file_chunks(rfs, job.context(), report=report)
        assert [d for d, _ in rfs.concat_calls] == [
            str(job.work / "a") + ".____distcpSplit____0.10",
            str(job.work / "c") + ".____distcpSplit____0.10",
        ]
        assert report.concatenated == [str(job.work / "a"), str(job.work / "c")]
        assert (job.work / "c").read_bytes() == b"c" * 25

    def test_replaces_existing_target(self, job, rfs):
        entries = job.put_chunks("f", b"new-data!!", 5)
        job.put("f", b"stale")
        job.write_listing(entries)
        concat_file_chunks(rfs, job.context())
        assert (job.work / "f").read_bytes() == b"new-data!!"

    def test_directories_skipped(self, job, rfs):
        job.write_listing([dir_entry("d"), dir_entry("d/e")])
        assert concat_file_chunks(rfs, job.context()) == []

    def test_no_listing_path_is_noop(self, rfs):
        from distcommit import CommitContext
        assert concat_file_chunks(rfs, CommitContext()) == []

    def test_missing_chunk_is_skipped(self, job, rfs):
        entries = job.put_chunks("f", b"x" * 20, 10)
        (job.work / "f.____distcpSplit____10.10").unlink()
        job.write_listing(entries)
        report = CommitReport()
        results = concat_file_chunks(rfs, job.context(), report=report)
        assert results[0].outcome == ConcatOutcome.SKIPPED
        assert report.skipped == [str(job.work / "f")]
        assert report.warnings == []

    def test_missing_chunk_skipped_even_without_ignore_failures(self, job, rfs):
        job.write_listing([file_entry("f", 20, 0, 10), file_entry("f", 20, 10, 10)])
        results = concat_file_chunks(rfs, job.context(**{"ignore-failures": False}))
        assert results[0].outcome == ConcatOutcome.SKIPPED


# ---------------------------------------------------------------------------
# Inconsistent listings
# ---------------------------------------------------------------------------

class TestInconsistency:
    def _listing_with_gap(self, job):
        good_a = job.put_chunks("a", b"a" * 20, 10)
        bad = [file_entry("b", 30, 0, 10), file_entry("b", 30, 15, 10),
               file_entry("b", 30, 25, 5)]
        good_c = job.put_chunks("c", b"c" * 20, 10)
        job.write_listing(good_a + bad + good_c)

    def test_gap_is_fatal_by_default(self, job, rfs):
        self._listing_with_gap(job)
        with pytest.raises(ListingInconsistencyError, match="doesnt match prior entry"):
            concat_file_chunks(rfs, job.context())
        assert (job.work / "a").read_bytes() == b"a" * 20
        assert not (job.work / "c").exists()

    def test_gap_ignored_other_groups_reassemble(self, job, rfs):
        self._listing_with_gap(job)
        report = CommitReport()
        results = concat_file_chunks(rfs, job.context(**{"ignore-failures": True}),
                                     report=report)
        assert [r.path for r in results] == [str(job.work / "a"), str(job.work / "c")]
        assert (job.work / "a").read_bytes() == b"a" * 20
        assert (job.work / "c").read_bytes() == b"c" * 20
        assert len(report.warnings) == 1
        assert report.warnings[0].path == str(job.work / "b")

    def test_new_file_before_previous_finished(self, job, rfs):
        job.write_listing([file_entry("a", 20, 0, 10), file_entry("b", 1)])
        with pytest.raises(ListingInconsistencyError):
            concat_file_chunks(rfs, job.context())

    def test_new_file_before_previous_finished_ignored(self, job, rfs):
        job.put("b", b"b")
        job.write_listing([file_entry("a", 20, 0, 10), file_entry("b", 1)])
        report = CommitReport()
        results = concat_file_chunks(rfs, job.context(**{"ignore-failures": True}),
                                     report=report)
        assert [r.outcome for r in results] == [ConcatOutcome.SINGLE]
        assert report.warnings[0].path == str(job.work / "a")

    def test_chunk_not_starting_at_zero(self, job, rfs):
        job.write_listing([file_entry("a", 20, 10, 10)])
        with pytest.raises(ListingInconsistencyError):
            concat_file_chunks(rfs, job.context())

    def test_listing_ends_mid_file(self, job, rfs):
        job.write_listing([file_entry("a", 20, 0, 10)])
        with pytest.raises(ListingInconsistencyError, match="listing ended"):
            concat_file_chunks(rfs, job.context())

    def test_concat_error_fatal(self, job, rfs):
        job.write_listing(job.put_chunks("a", b"a" * 20, 10))
        rfs.concat_error = PermissionError("denied")
        with pytest.raises(ChunkConcatError, match="denied"):
            concat_file_chunks(rfs, job.context())

    def test_concat_error_ignored(self, job, rfs):
        job.write_listing(job.put_chunks("a", b"a" * 20, 10))
        rfs.concat_error = PermissionError("denied")
        report = CommitReport()
        results = concat_file_chunks(rfs, job.context(**{"ignore-failures": True}),
                                     report=report)
        assert results[0].outcome == ConcatOutcome.ERROR
        assert "denied" in report.warnings[0].error


class TestConcatChunks:
    def test_rename_failure_is_error(self, tmp_path, rfs):
        a = tmp_path / "a.0"
        b = tmp_path / "a.1"
        a.write_bytes(b"1")
        b.write_bytes(b"2")
        rfs.fail_rename = True
        result = concat_chunks(rfs, str(tmp_path / "a"), [str(a), str(b)])
        assert result.outcome == ConcatOutcome.ERROR
        assert "Fail to rename" in result.error
