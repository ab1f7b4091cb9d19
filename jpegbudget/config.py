"""Run configuration shared read-only by every component of a batch."""
from __future__ import annotations

import os
from dataclasses import dataclass, field


SUBSAMPLING_MODES = ("4:4:4", "4:2:2", "4:2:0")
STRATEGIES = ("search", "passes")
ENCODERS = ("pillow", "opencv")

# Fraction of available CPU units handed to workers.
WORKER_CPU_FRACTION = 0.5


def default_worker_count() -> int:
    """Derive the worker count from available CPU units."""
    return max(1, int((os.cpu_count() or 2) * WORKER_CPU_FRACTION))


# -----------------------------
# Configuration
# -----------------------------
@dataclass(frozen=True)
class EncodingOptions:
    """Fixed codec parameters applied identically to every encode call."""
    progressive: bool = True                           # progressive scan order
    subsampling: str = "4:2:0"                         # chroma subsampling ratio
    optimize: bool = True                              # optimized entropy coding tables

    def __post_init__(self) -> None:
        if self.subsampling not in SUBSAMPLING_MODES:
            raise ValueError(
                f"Unknown chroma subsampling {self.subsampling!r} (expected one of {', '.join(SUBSAMPLING_MODES)})"
            )


@dataclass(frozen=True)
class CompressionConfig:
    """Configurable batch parameters. Immutable for the duration of a run."""
    target_max_bytes: int = 900 * 1024                 # output cap per file
    min_quality: int = 10                              # JPEG quality floor
    max_quality: int = 90                              # JPEG quality ceiling
    convergence_gap: int = 1                           # binary search early-exit gap
    probe_quality: int = 80                            # single fast-path quality
    worker_count: int = field(default_factory=default_worker_count)
    decrement_step: int = 10                           # quality drop between passes
    strategy: str = "search"                           # "search" or "passes"
    encoder: str = "pillow"                            # "pillow" or "opencv"
    copy_fast_path: bool = True                        # copy small JPEG sources unchanged
    dry_run: bool = False                              # encode but never write
    encoding: EncodingOptions = field(default_factory=EncodingOptions)

    def __post_init__(self) -> None:
        validate_config(self)


def validate_config(config: CompressionConfig) -> None:
    """Ensure the configuration is usable; raise ValueError otherwise."""
    if config.target_max_bytes <= 0:
        raise ValueError(f"Target size must be positive, got {config.target_max_bytes} bytes")
    if not 1 <= config.min_quality <= config.max_quality <= 100:
        raise ValueError(
            f"Quality bounds must satisfy 1 <= min <= max <= 100, got {config.min_quality}..{config.max_quality}"
        )
    if not config.min_quality <= config.probe_quality <= config.max_quality:
        raise ValueError(
            f"Probe quality {config.probe_quality} outside {config.min_quality}..{config.max_quality}"
        )
    if config.convergence_gap < 0:
        raise ValueError(f"Convergence gap must not be negative, got {config.convergence_gap}")
    if config.worker_count < 1:
        raise ValueError(f"Worker count must be at least 1, got {config.worker_count}")
    if config.decrement_step < 1:
        raise ValueError(f"Decrement step must be at least 1, got {config.decrement_step}")
    if config.strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy {config.strategy!r} (expected one of {', '.join(STRATEGIES)})")
    if config.encoder not in ENCODERS:
        raise ValueError(f"Unknown encoder {config.encoder!r} (expected one of {', '.join(ENCODERS)})")


DEFAULT_CONFIG = CompressionConfig()
