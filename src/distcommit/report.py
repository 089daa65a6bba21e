"""Result of a commit."""

from __future__ import annotations

from dataclasses import dataclass, field

STATUS_SUCCESS = "Commit Successful"


@dataclass
class CommitWarning:
    """A non-fatal problem recorded while committing.

    Attributes:
        path: The path (or listing entry) concerned.
        error: Human-readable message.
    """
    path: str
    error: str


@dataclass
class CommitReport:
    """What a commit did.

    Attributes:
        concatenated: Logical files reassembled from several chunks.
        skipped: Logical files whose chunks were missing (skipped upstream).
        preserved: Directory entries whose attributes were re-applied.
        deleted: Stale target entries removed.
        promoted: ``True`` if the work path was promoted to the final path.
        warnings: Failures downgraded by ``ignore_failures``.
        status: Terminal status line.
    """
    concatenated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    preserved: int = 0
    deleted: int = 0
    promoted: bool = False
    warnings: list[CommitWarning] = field(default_factory=list)
    status: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def summary(self) -> str:
        parts = [f"{len(self.concatenated)} reassembled"]
        if self.skipped:
            parts.append(f"{len(self.skipped)} skipped")
        parts.append(f"{self.preserved} dirs preserved")
        parts.append(f"{self.deleted} deleted")
        if self.promoted:
            parts.append("promoted")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warnings")
        return ", ".join(parts)
