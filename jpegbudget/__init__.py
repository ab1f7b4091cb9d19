"""Recompress image batches into JPEGs that each fit a byte budget."""
from .batch import run_batch
from .config import DEFAULT_CONFIG, CompressionConfig, EncodingOptions
from .encoders import OpenCVEncoder, PillowEncoder, make_encoder
from .results import BatchSummary, Outcome, Result
from .search import SearchOutcome, SizeTargetSearch, search
from .strategies import AdaptiveSearchStrategy, PassStrategy, make_strategy
from .tasks import (
    CompressionError,
    EncodeError,
    InputReadError,
    OutputWriteError,
    Task,
    TaskQueue,
    WorkerPool,
    collect_tasks,
)

__version__ = "0.1.0"

__all__ = [
    "AdaptiveSearchStrategy",
    "BatchSummary",
    "CompressionConfig",
    "CompressionError",
    "DEFAULT_CONFIG",
    "EncodeError",
    "EncodingOptions",
    "InputReadError",
    "OpenCVEncoder",
    "Outcome",
    "OutputWriteError",
    "PassStrategy",
    "PillowEncoder",
    "Result",
    "SearchOutcome",
    "SizeTargetSearch",
    "Task",
    "TaskQueue",
    "WorkerPool",
    "collect_tasks",
    "make_encoder",
    "make_strategy",
    "run_batch",
    "search",
]
