"""Atomic promotion of the work directory to the final path."""

from __future__ import annotations

import logging
from enum import Enum

from .exceptions import PromotionError
from .fs import TargetFS

logger = logging.getLogger(__name__)


class PromotionState(str, Enum):
    """Lifecycle of a promotion: staged, promoting, then committed or failed."""
    STAGED = "staged"
    PROMOTING = "promoting"
    COMMITTED = "committed"
    FAILED = "failed"

    def __str__(self) -> str:          # noqa: D105
        return self.value


class Promoter:
    """Move *work_path* to *final_path* with a single rename.

    Retrying after a crash is safe: if the rename already happened (final
    exists, work is gone) a failing rename is reported as committed.
    """

    def __init__(self, fs: TargetFS, work_path: str, final_path: str):
        self.fs = fs
        self.work_path = work_path
        self.final_path = final_path
        self.state = PromotionState.STAGED

    def _fail(self, msg: str) -> PromotionError:
        self.state = PromotionState.FAILED
        logger.error(msg)
        return PromotionError(msg)

    def run(self) -> PromotionState:
        if self.state != PromotionState.STAGED:
            raise RuntimeError(f"Promotion already {self.state}")
        fs = self.fs
        logger.info("Atomic commit enabled. Moving %s to %s",
                    self.work_path, self.final_path)
        if fs.exists(self.final_path) and fs.exists(self.work_path):
            raise self._fail(
                f"Target-path can't be committed to because it exists at "
                f"{self.final_path}. Copied data is in temp-dir: {self.work_path}.")

        self.state = PromotionState.PROMOTING
        ok = fs.rename(self.work_path, self.final_path)
        if not ok:
            logger.warning("Rename failed. Perhaps data already moved. Verifying...")
            ok = fs.exists(self.final_path) and not fs.exists(self.work_path)
        if not ok:
            raise self._fail(
                f"Atomic commit failed. Temporary data in {self.work_path}, "
                f"Unable to move to {self.final_path}")

        self.state = PromotionState.COMMITTED
        logger.info("Data committed successfully to %s", self.final_path)
        return self.state


def promote(fs: TargetFS, work_path: str, final_path: str) -> PromotionState:
    """Promote *work_path* to *final_path*; see :class:`Promoter`."""
    return Promoter(fs, work_path, final_path).run()
