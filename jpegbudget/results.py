"""Per-file results and the end-of-run summary."""
from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import List, Optional


class Outcome(str, enum.Enum):
    COPIED = "copied"
    COMPRESSED = "compressed"
    UNSATISFIED = "unsatisfied"
    FAILED = "failed"


@dataclass(frozen=True)
class Result:
    task_id: str
    outcome: Outcome
    final_size_bytes: Optional[int] = None
    final_quality: Optional[int] = None
    reason: Optional[str] = None
    source_path: Optional[str] = None
    output_path: Optional[str] = None
    source_size_bytes: Optional[int] = None
    target_bytes: Optional[int] = None
    trials: int = 0

    @property
    def satisfied(self) -> bool:
        return self.outcome in (Outcome.COPIED, Outcome.COMPRESSED)

    def to_report(self) -> dict:
        """Machine-readable report (one JSONL line per file)."""
        return {
            "input": self.source_path,
            "output": self.output_path,
            "outcome": self.outcome.value,
            "bytes": self.final_size_bytes,
            "target_bytes": self.target_bytes,
            "quality": self.final_quality,
            "source_bytes": self.source_size_bytes,
            "trials": self.trials,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class BatchSummary:
    total: int
    copied: int
    compressed: int
    unsatisfied: int
    failed: int
    duration_seconds: float
    results: List[Result] = field(default_factory=list)
    unsatisfied_results: List[Result] = field(default_factory=list)
    failed_results: List[Result] = field(default_factory=list)

    @property
    def status(self) -> str:
        """``empty`` (no compatible files), ``partial`` or ``ok``."""
        if self.total == 0:
            return "empty"
        if self.unsatisfied or self.failed:
            return "partial"
        return "ok"

    def describe(self) -> str:
        if self.status == "empty":
            return f"Summary: No compatible images found ({self.duration_seconds:.2f}s)"
        return (
            f"Summary: Processed {self.total} file(s) - "
            f"Copied={self.copied}, Compressed={self.compressed}, "
            f"Unsatisfied={self.unsatisfied}, Failed={self.failed} "
            f"in {self.duration_seconds:.2f}s"
        )


class ResultAggregator:
    """Collects results from concurrent workers; snapshot once the run ends."""

    def __init__(self):
        self._results: List[Result] = []
        self._lock = threading.Lock()

    def add(self, result: Result) -> None:
        with self._lock:
            self._results.append(result)

    def extend(self, results: List[Result]) -> None:
        with self._lock:
            self._results.extend(results)

    @property
    def results(self) -> List[Result]:
        with self._lock:
            return list(self._results)

    def summary(self, duration_seconds: float) -> BatchSummary:
        results = self.results
        counts = {outcome: 0 for outcome in Outcome}
        for r in results:
            counts[r.outcome] += 1
        return BatchSummary(
            total=len(results),
            copied=counts[Outcome.COPIED],
            compressed=counts[Outcome.COMPRESSED],
            unsatisfied=counts[Outcome.UNSATISFIED],
            failed=counts[Outcome.FAILED],
            duration_seconds=duration_seconds,
            results=results,
            unsatisfied_results=[r for r in results if r.outcome is Outcome.UNSATISFIED],
            failed_results=[r for r in results if r.outcome is Outcome.FAILED],
        )
