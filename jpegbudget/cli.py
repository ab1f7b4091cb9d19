"""
Command-line entry point.

Usage
-----
    jpegbudget <input_folder> <output_folder> [options]

    Options:
        --max-kb N           Per-file byte budget in KiB (default: 900)
        --strategy NAME      "search" (probe + binary search) or "passes"
        --workers N          Concurrent workers (default: half the CPUs)
        --jsonl              Emit JSON reports to stdout
        --no-summary         Suppress summary output
        --dry-run            Process without writing files
        --log-level LEVEL    Logging level (default: WARNING)

Exit codes: 0 ok (or no compatible files), 1 unsatisfied/failed files,
2 fatal input or configuration problem, 3 unexpected error.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from .batch import run_batch
from .config import DEFAULT_CONFIG, ENCODERS, STRATEGIES, SUBSAMPLING_MODES, CompressionConfig, EncodingOptions

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    defaults = DEFAULT_CONFIG
    parser = argparse.ArgumentParser(
        prog="jpegbudget",
        description="Recompress a folder of images to JPEGs that each fit a byte budget.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input_folder", help="Folder containing input images.")
    parser.add_argument("output_folder", help="Folder where compressed images will be saved.")
    parser.add_argument(
        "--max-kb",
        type=int,
        default=defaults.target_max_bytes // 1024,
        help=f"Maximum output size per file in KiB (default: {defaults.target_max_bytes // 1024}).",
    )
    parser.add_argument("--min-quality", type=int, default=defaults.min_quality, help="Lowest JPEG quality tried.")
    parser.add_argument("--max-quality", type=int, default=defaults.max_quality, help="Highest JPEG quality tried.")
    parser.add_argument(
        "--probe-quality",
        type=int,
        default=None,
        help=f"Quality tried first before a full search (default: {defaults.probe_quality}, kept within the quality bounds).",
    )
    parser.add_argument(
        "--gap",
        type=int,
        default=defaults.convergence_gap,
        help="Stop the binary search once the quality interval is narrower than this.",
    )
    parser.add_argument(
        "--step",
        type=int,
        default=defaults.decrement_step,
        help="Quality reduction between passes (passes strategy).",
    )
    parser.add_argument("--workers", type=int, default=defaults.worker_count, help="Number of concurrent workers.")
    parser.add_argument("--strategy", default=defaults.strategy, choices=STRATEGIES, help="Compression strategy.")
    parser.add_argument("--encoder", default=defaults.encoder, choices=ENCODERS, help="JPEG encoder backend.")
    parser.add_argument(
        "--subsampling",
        default=defaults.encoding.subsampling,
        choices=SUBSAMPLING_MODES,
        help="Chroma subsampling ratio.",
    )
    parser.add_argument("--no-progressive", action="store_true", help="Write baseline instead of progressive JPEGs.")
    parser.add_argument("--no-optimize", action="store_true", help="Skip optimized entropy coding.")
    parser.add_argument(
        "--no-copy",
        action="store_true",
        help="Re-encode JPEG sources even when they already fit the budget.",
    )
    parser.add_argument(
        "--jsonl",
        action="store_true",
        help="Emit one JSON report per file to stdout (useful for machine processing).",
    )
    parser.add_argument(
        "--no-summary",
        action="store_true",
        help="Suppress the end-of-run summary line.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Process images but don't write output files (for testing).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: WARNING).",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> CompressionConfig:
    probe_quality = args.probe_quality
    if probe_quality is None:
        probe_quality = min(max(DEFAULT_CONFIG.probe_quality, args.min_quality), args.max_quality)
    return CompressionConfig(
        target_max_bytes=args.max_kb * 1024,
        min_quality=args.min_quality,
        max_quality=args.max_quality,
        convergence_gap=args.gap,
        probe_quality=probe_quality,
        worker_count=args.workers,
        decrement_step=args.step,
        strategy=args.strategy,
        encoder=args.encoder,
        copy_fast_path=not args.no_copy,
        dry_run=args.dry_run,
        encoding=EncodingOptions(
            progressive=not args.no_progressive,
            subsampling=args.subsampling,
            optimize=not args.no_optimize,
        ),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper())
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        logger.critical(f"Fatal: invalid configuration: {e}")
        return 2

    if config.dry_run:
        logger.info("DRY RUN MODE - no files will be written")

    try:
        summary = run_batch(args.input_folder, args.output_folder, config)
    except NotADirectoryError as e:
        logger.critical(f"Fatal: {e}")
        return 2
    except OSError as e:
        logger.critical(f"Fatal: cannot prepare output folder: {e}")
        return 2
    except Exception as e:
        logger.critical(f"Fatal: Unexpected error: {e}", exc_info=True)
        return 3

    if args.jsonl:
        for result in summary.results:
            print(json.dumps(result.to_report(), ensure_ascii=False))

    if not args.no_summary:
        print(summary.describe(), file=sys.stderr)
        for r in summary.unsatisfied_results:
            print(f"  over budget: {r.task_id} ({r.final_size_bytes} bytes at quality={r.final_quality})", file=sys.stderr)
        for r in summary.failed_results:
            print(f"  failed: {r.task_id}: {r.reason}", file=sys.stderr)

    return 1 if summary.status == "partial" else 0


if __name__ == "__main__":
    raise SystemExit(main())
