"""Batch tasks, their failure kinds, the shared queue and the worker pool."""
from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, Iterable, List, Optional

from .results import Outcome, Result, ResultAggregator

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".heic", ".heif", ".webp", ".tif", ".tiff", ".bmp")


# -----------------------------
# Per-task failures
# -----------------------------
class CompressionError(Exception):
    """Base class for failures confined to one task."""


class InputReadError(CompressionError):
    """Source file could not be read or decoded."""


class EncodeError(CompressionError):
    """The encoder failed to produce JPEG output."""


class OutputWriteError(CompressionError):
    """Destination file could not be written."""


@dataclass(frozen=True)
class Task:
    id: str                                            # source filename
    source_path: Path
    output_path: Path
    source_size_bytes: int


class TaskQueue:
    """
    Ordered worklist shared by all workers of a run.

    ``pop`` is a single lock-guarded operation, so a task is handed to exactly
    one worker.
    """

    def __init__(self, tasks: Iterable[Task] = ()):
        self._items: Deque[Task] = deque(tasks)
        self._lock = threading.Lock()

    def pop(self) -> Optional[Task]:
        """Remove and return the next task, or None once the queue is empty."""
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# -----------------------------
# Worker pool
# -----------------------------
TaskHandler = Callable[[Task], Result]


def failed_result(task: Task, reason: str) -> Result:
    return Result(
        task_id=task.id,
        outcome=Outcome.FAILED,
        reason=reason,
        source_path=str(task.source_path),
        output_path=str(task.output_path),
        source_size_bytes=task.source_size_bytes,
    )


class WorkerPool:
    """
    Spawn exactly ``worker_count`` workers over one TaskQueue.

    Each worker pops a task, runs the handler and records the Result until the
    queue is empty. A handler exception fails only its own task.
    """

    def __init__(self, worker_count: int):
        if worker_count < 1:
            raise ValueError(f"Worker count must be at least 1, got {worker_count}")
        self.worker_count = worker_count

    def _drain(self, queue: TaskQueue, handler: TaskHandler, results: ResultAggregator) -> int:
        processed = 0
        while True:
            task = queue.pop()
            if task is None:
                return processed
            results.add(self._run_one(task, handler))
            processed += 1

    @staticmethod
    def _run_one(task: Task, handler: TaskHandler) -> Result:
        try:
            return handler(task)
        except CompressionError as e:
            logger.error(f"{task.id}: {e}")
            return failed_result(task, str(e))
        except Exception as e:
            logger.error(f"{task.id}: unexpected error: {e}", exc_info=True)
            return failed_result(task, f"Unexpected error: {e}")

    def run(self, tasks: Iterable[Task], handler: TaskHandler) -> List[Result]:
        """Process every task; block until the queue is drained."""
        queue = TaskQueue(tasks)
        results = ResultAggregator()
        with ThreadPoolExecutor(max_workers=self.worker_count, thread_name_prefix="jpegbudget") as executor:
            futures = [executor.submit(self._drain, queue, handler, results) for _ in range(self.worker_count)]
            for future in futures:
                future.result()
        return results.results


# -----------------------------
# Output path generation
# -----------------------------
def output_path_for_input(output_folder: Path, input_filename: str) -> Path:
    """Keep the basename, normalize the extension to .jpg."""
    return Path(output_folder) / f"{Path(input_filename).stem}.jpg"


def collect_tasks(input_folder: Path, output_folder: Path) -> List[Task]:
    """
    Enumerate recognized images in ``input_folder`` (sorted, non-recursive).

    Files with unrecognized extensions are skipped silently. When two inputs
    share a stem (``a.png`` and ``a.jpg``) the later one is written as
    ``a_png.jpg`` so no output is shared between tasks.
    """
    input_path = Path(input_folder)
    if not input_path.exists() or not input_path.is_dir():
        raise NotADirectoryError(f"Input folder not found or not a directory: {input_folder}")

    tasks: List[Task] = []
    taken = set()
    for entry in sorted(input_path.iterdir()):
        if not entry.is_file() or entry.suffix.lower() not in SUPPORTED_EXTENSIONS:
            continue

        out_path = output_path_for_input(output_folder, entry.name)
        if out_path.name.lower() in taken:
            out_path = Path(output_folder) / f"{entry.stem}_{entry.suffix.lstrip('.').lower()}.jpg"
            logger.warning(f"{entry.name}: output name collides with another input, writing {out_path.name}")
        taken.add(out_path.name.lower())

        tasks.append(Task(
            id=entry.name,
            source_path=entry,
            output_path=out_path,
            source_size_bytes=entry.stat().st_size,
        ))
    return tasks
