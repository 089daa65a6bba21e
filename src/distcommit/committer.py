"""Commit orchestration for a completed copy job.

:class:`CopyCommitter` runs once all workers have finished.  In order, it

1. reassembles chunked files,
2. runs the composed base commit phase, if any,
3. removes per-attempt temp files left in the work path and its parent,
4. re-applies directory attributes, when configured,
5. deletes target entries missing at the source (``delete_missing``), or
   else promotes the work path to the final path (``atomic_commit``),
6. removes the meta folder, whether or not the steps above succeeded.

Usage::

    from distcommit import CommitContext, CopyCommitter, LocalFS

    ctx = CommitContext.from_options({
        "listing-file-path": "/meta/fileList.jsonl",
        "target-work-path": "/data/.work",
        "target-final-path": "/data/out",
        "meta-folder": "/meta",
        "atomic-copy": True,
    })
    report = CopyCommitter(LocalFS()).commit_job(ctx)
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable
from typing import Protocol

from .chunks import concat_file_chunks
from .context import CommitContext
from .delete import delete_missing
from .fs import LocalFS, TargetFS
from .preserve import preserve_directory_attributes
from .promote import promote
from .report import STATUS_SUCCESS, CommitReport

logger = logging.getLogger(__name__)

TEMP_FILE_PREFIX = ".distcp.tmp."


class CommitPhase(Protocol):
    """Hooks a job-lifecycle driver calls around the end of a job."""

    def setup_job(self, ctx: CommitContext) -> None: ...

    def commit_job(self, ctx: CommitContext) -> object: ...

    def abort_job(self, ctx: CommitContext, state: str) -> None: ...


class CopyCommitter:
    """Commit phase of a copy job.

    Args:
        fs: Target filesystem holding the work and final paths.
        base: Commit phase run after chunk reassembly to finalise per-task
            outputs (and first on abort).
        meta_fs: Filesystem holding the meta folder; local disk by default,
            where the listings are read from.
        progress: Called with status lines during long scans.
    """

    def __init__(
        self,
        fs: TargetFS,
        *,
        base: CommitPhase | None = None,
        meta_fs: TargetFS | None = None,
        progress: Callable[[str], None] | None = None,
    ):
        self.fs = fs
        self.base = base
        self.meta_fs = meta_fs if meta_fs is not None else LocalFS()
        self.progress = progress

    def _status(self, msg: str) -> None:
        if self.progress is not None:
            self.progress(msg)

    # -- CommitPhase ---------------------------------------------------------

    def setup_job(self, ctx: CommitContext) -> None:
        if self.base is not None:
            self.base.setup_job(ctx)

    def commit_job(self, ctx: CommitContext) -> CommitReport:
        """Run every commit step for *ctx*; see the module docstring.

        Raises the first fatal error after the meta folder has been
        removed.  The work path is left in place on failure.
        """
        report = CommitReport()
        try:
            concat_file_chunks(self.fs, ctx, report=report)

            if self.base is not None:
                self.base.commit_job(ctx)

            self.cleanup_temp_files(ctx)

            if ctx.preserves_attributes:
                report.preserved = preserve_directory_attributes(
                    self.fs, ctx, progress=self.progress)

            if ctx.delete_missing:
                report.deleted = delete_missing(self.fs, ctx, progress=self.progress)
            elif ctx.atomic_commit:
                promote(self.fs, ctx.target_work_path, ctx.target_final_path)
                report.promoted = True
                self._status(f"Data committed successfully to {ctx.target_final_path}")

            report.status = STATUS_SUCCESS
            self._status(STATUS_SUCCESS)
        finally:
            self.cleanup(ctx)
        return report

    def abort_job(self, ctx: CommitContext, state: str = "failed") -> None:
        """Abort the job: run the base abort, then remove temp state."""
        logger.info("Aborting job %s (%s)", ctx.job_id or "<unknown>", state)
        try:
            if self.base is not None:
                self.base.abort_job(ctx, state)
        finally:
            self.cleanup_temp_files(ctx)
            self.cleanup(ctx)

    # -- cleanup -------------------------------------------------------------

    def cleanup_temp_files(self, ctx: CommitContext) -> None:
        """Remove ``.distcp.tmp.<attempt>*`` files from failed attempts.

        Looks in the work path and its parent.  Failures are logged only.
        """
        if not ctx.target_work_path or not ctx.job_id:
            return
        work = ctx.target_work_path.rstrip("/") or "/"
        parent = posixpath.dirname(work)
        pattern = f"{TEMP_FILE_PREFIX}{ctx.attempt_id}*"
        directories = [work]
        if parent and parent != work:
            directories.append(parent)
        try:
            for directory in directories:
                self._delete_attempt_temp_files(directory, pattern)
        except OSError as exc:
            logger.warning("Unable to cleanup temp files: %s", exc)

    def _delete_attempt_temp_files(self, directory: str, pattern: str) -> None:
        for path in self.fs.glob(directory, pattern):
            logger.info("Cleaning up %s", path)
            self.fs.delete(path, recursive=False)

    def cleanup(self, ctx: CommitContext) -> None:
        """Remove the meta folder (listings and temp state).

        Errors are logged and never replace an error from the commit itself.
        """
        if not ctx.meta_folder:
            return
        logger.info("Cleaning up temporary work folder: %s", ctx.meta_folder)
        try:
            self.meta_fs.delete(ctx.meta_folder, recursive=True)
        except Exception:
            logger.exception("Exception encountered removing %s", ctx.meta_folder)
