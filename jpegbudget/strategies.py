"""
Batch compression strategies.

Both implement ``run(tasks) -> List[Result]`` on top of the same WorkerPool:

- AdaptiveSearchStrategy: per-file probe + binary search for the highest
  quality under budget.
- PassStrategy: sweep every remaining file at one quality, requeue the ones
  still over budget at a lower quality, down to the quality floor.

Both copy a source that is already a JPEG within budget byte-for-byte.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence

from .config import CompressionConfig
from .encoders import Encoder, is_jpeg, make_encoder
from .results import Outcome, Result
from .search import SizeTargetSearch
from .tasks import InputReadError, OutputWriteError, Task, WorkerPool

logger = logging.getLogger(__name__)


# -----------------------------
# Task I/O helpers
# -----------------------------
def read_source(task: Task) -> bytes:
    try:
        return task.source_path.read_bytes()
    except OSError as e:
        raise InputReadError(f"Unable to read {task.source_path}: {e}") from e


def write_output(task: Task, data: bytes, config: CompressionConfig) -> None:
    if config.dry_run:
        return
    try:
        task.output_path.write_bytes(data)
    except OSError as e:
        raise OutputWriteError(f"Unable to write {task.output_path}: {e}") from e


def make_result(task: Task, outcome: Outcome, config: CompressionConfig, *,
                size: Optional[int] = None, quality: Optional[int] = None, trials: int = 0) -> Result:
    return Result(
        task_id=task.id,
        outcome=outcome,
        final_size_bytes=size,
        final_quality=quality,
        source_path=str(task.source_path),
        output_path=str(task.output_path),
        source_size_bytes=task.source_size_bytes,
        target_bytes=config.target_max_bytes,
        trials=trials,
    )


class CompressionStrategy:
    """Shared contract: compress a batch of tasks, one Result per task."""

    name = "base"

    def __init__(self, config: CompressionConfig, encoder: Optional[Encoder] = None,
                 pool: Optional[WorkerPool] = None):
        self.config = config
        self.encoder = encoder or make_encoder(config)
        self.pool = pool or WorkerPool(config.worker_count)

    def run(self, tasks: Sequence[Task]) -> List[Result]:
        raise NotImplementedError

    def copy_if_within_budget(self, task: Task, raw: bytes) -> Optional[Result]:
        """Copy unchanged when the source is already a JPEG within budget."""
        if not self.config.copy_fast_path:
            return None
        if len(raw) > self.config.target_max_bytes or not is_jpeg(raw):
            return None
        write_output(task, raw, self.config)
        logger.info(f"{task.id}: copied unchanged ({len(raw) / 1024:.1f} KB)")
        return make_result(task, Outcome.COPIED, self.config, size=len(raw))


# -----------------------------
# Per-file adaptive search
# -----------------------------
class AdaptiveSearchStrategy(CompressionStrategy):
    name = "search"

    def __init__(self, config: CompressionConfig, encoder: Optional[Encoder] = None,
                 pool: Optional[WorkerPool] = None):
        super().__init__(config, encoder, pool)
        self.engine = SizeTargetSearch(self.encoder)

    def run(self, tasks: Sequence[Task]) -> List[Result]:
        return self.pool.run(tasks, self.process)

    def process(self, task: Task) -> Result:
        raw = read_source(task)
        copied = self.copy_if_within_budget(task, raw)
        if copied is not None:
            return copied

        found = self.engine.search(raw, self.config)
        write_output(task, found.data, self.config)

        if found.satisfied:
            logger.info(f"{task.id}: {found.size / 1024:.1f} KB at quality={found.quality} ({len(found.trials)} trial(s))")
            outcome = Outcome.COMPRESSED
        else:
            logger.warning(
                f"{task.id}: still {found.size} bytes > {self.config.target_max_bytes} bytes at quality={found.quality}"
            )
            outcome = Outcome.UNSATISFIED
        return make_result(task, outcome, self.config, size=found.size, quality=found.quality,
                           trials=len(found.trials))


# -----------------------------
# Batch-uniform quality passes
# -----------------------------
class PassStrategy(CompressionStrategy):
    name = "passes"

    def quality_schedule(self) -> Iterator[int]:
        """Strictly decreasing qualities from max_quality, ending exactly at the floor."""
        quality = self.config.max_quality
        while True:
            yield quality
            if quality <= self.config.min_quality:
                return
            quality = max(quality - self.config.decrement_step, self.config.min_quality)

    def run(self, tasks: Sequence[Task]) -> List[Result]:
        final: Dict[str, Result] = {}
        pending = list(tasks)

        for pass_number, quality in enumerate(self.quality_schedule(), start=1):
            if not pending:
                break
            logger.info(f"Pass {pass_number}: quality {quality}, {len(pending)} image(s)")
            results = self.pool.run(pending, lambda task: self.process(task, quality, pass_number))
            for r in results:
                final[r.task_id] = r

            pending = [t for t in pending if final[t.id].outcome is Outcome.UNSATISFIED]
            done = len(tasks) - len(pending)
            if pending:
                logger.info(f"Progress: {done}/{len(tasks)} within limits, {len(pending)} still too large")

        for task in pending:
            r = final[task.id]
            logger.warning(
                f"{task.id}: still {r.final_size_bytes} bytes > {self.config.target_max_bytes} bytes "
                f"at quality floor {r.final_quality}"
            )
        return [final[t.id] for t in tasks]

    def process(self, task: Task, quality: int, pass_number: int = 1) -> Result:
        raw = read_source(task)
        if pass_number == 1:
            copied = self.copy_if_within_budget(task, raw)
            if copied is not None:
                return copied

        data = self.encoder.encode(raw, quality)
        write_output(task, data, self.config)
        size = len(data)
        if size <= self.config.target_max_bytes:
            logger.info(f"{task.id}: {size / 1024:.1f} KB at quality={quality}")
            outcome = Outcome.COMPRESSED
        else:
            logger.debug(f"{task.id}: {size} bytes over budget at quality={quality}")
            outcome = Outcome.UNSATISFIED
        return make_result(task, outcome, self.config, size=size, quality=quality, trials=pass_number)


STRATEGIES = {
    AdaptiveSearchStrategy.name: AdaptiveSearchStrategy,
    PassStrategy.name: PassStrategy,
}


def make_strategy(config: CompressionConfig, encoder: Optional[Encoder] = None) -> CompressionStrategy:
    """Pick the strategy named by ``config.strategy``."""
    return STRATEGIES[config.strategy](config, encoder)
