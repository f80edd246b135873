"""Per-run accounting."""

import threading
from dataclasses import dataclass, field, fields
from enum import Enum


class Counter(Enum):
    """Names of the RunSummary counters."""

    REPOSITORIES_PROCESSED = "repositories_processed"
    ARTIFACTS_SCANNED = "artifacts_scanned"
    DELETED = "deleted"
    SKIPPED_NO_DATE = "skipped_no_date"
    ERRORS = "errors"


@dataclass
class RunSummary:
    """Counters accumulated over one cleanup run.

    Counters only ever go up.  Updates go through ``increment``, which holds
    a lock, so worker threads can share one summary.
    """

    repositories_processed: int = 0
    artifacts_scanned: int = 0
    deleted: int = 0
    skipped_no_date: int = 0
    errors: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def increment(self, counter: Counter, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError(f"Cannot decrement counter {counter.value}")
        with self._lock:
            setattr(self, counter.value, getattr(self, counter.value) + amount)

    def to_dict(self) -> dict[str, int]:
        with self._lock:
            return {
                f.name: getattr(self, f.name)
                for f in fields(self)
                if not f.name.startswith("_")
            }

    def report_lines(self) -> list[str]:
        counts = self.to_dict()
        return [
            "==================== Cleanup Summary ====================",
            f"Repositories processed: {counts['repositories_processed']}",
            f"Total artifacts scanned: {counts['artifacts_scanned']}",
            f"Artifacts deleted: {counts['deleted']}",
            f"Artifacts skipped (no date): {counts['skipped_no_date']}",
            f"Errors encountered: {counts['errors']}",
            "========================================================",
        ]
