"""Batch entry point: enumerate, compress concurrently, summarize."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Union

from .config import DEFAULT_CONFIG, CompressionConfig
from .encoders import Encoder
from .results import BatchSummary, ResultAggregator
from .strategies import make_strategy
from .tasks import collect_tasks

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def run_batch(
    input_folder: PathLike,
    output_folder: PathLike,
    config: CompressionConfig = DEFAULT_CONFIG,
    *,
    encoder: Optional[Encoder] = None,
) -> BatchSummary:
    """
    Compress every recognized image in ``input_folder`` into ``output_folder``.

    Blocks until all workers (and, in pass mode, all passes) are finished.
    Per-file failures become Failed results; only setup problems raise:
    NotADirectoryError for a missing input folder, OSError when the output
    folder cannot be created.
    """
    started = time.perf_counter()
    output_path = Path(output_folder)

    tasks = collect_tasks(Path(input_folder), output_path)
    aggregator = ResultAggregator()

    if not config.dry_run:
        output_path.mkdir(parents=True, exist_ok=True)

    if not tasks:
        logger.warning(f"No compatible images found in {input_folder}")
        return aggregator.summary(time.perf_counter() - started)

    strategy = make_strategy(config, encoder)
    logger.info(
        f"Processing {len(tasks)} image(s) with {config.worker_count} worker(s), "
        f"strategy={strategy.name}, budget={config.target_max_bytes} bytes"
    )
    aggregator.extend(strategy.run(tasks))

    return aggregator.summary(time.perf_counter() - started)
