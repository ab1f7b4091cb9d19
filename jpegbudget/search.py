"""
Size-target quality search for a single image.

Finds the highest JPEG quality whose encoded size fits the byte budget:

1) Probe once at ``probe_quality``; a fit there ends the search.
2) Otherwise binary search ``[min_quality, max_quality]`` until the interval
   is narrower than ``convergence_gap`` or exhausted.
3) Return the best under-budget trial, else the smallest over-budget one.

Size is treated as only approximately monotonic in quality, so the best trial
on each side of the budget is tracked instead of trusting the last one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import CompressionConfig
from .encoders import Encoder
from .tasks import EncodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Trial:
    """One encoder call: the quality tried and the interval it was tried in."""
    quality: int
    size: int
    low: int
    high: int


@dataclass(frozen=True)
class SearchOutcome:
    data: bytes
    quality: int
    satisfied: bool
    trials: Tuple[Trial, ...] = ()

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class SearchState:
    """Per-task bookkeeping; owned by the single worker running the search."""
    low: int
    high: int
    best_under: Optional[Tuple[int, bytes]] = None
    best_over: Optional[Tuple[int, bytes]] = None
    trials: List[Trial] = field(default_factory=list)
    # quality -> fits budget (None when the encoder failed)
    seen: Dict[int, Optional[bool]] = field(default_factory=dict)

    def record(self, quality: int, data: bytes, target_bytes: int) -> bool:
        """Record a trial; return True when it fits the budget."""
        size = len(data)
        self.trials.append(Trial(quality, size, self.low, self.high))
        fits = size <= target_bytes
        self.seen[quality] = fits
        if fits:
            if self.best_under is None or quality > self.best_under[0]:
                self.best_under = (quality, data)
            return True
        if self.best_over is None or size < len(self.best_over[1]):
            self.best_over = (quality, data)
        return False


class SizeTargetSearch:
    """Probe + binary search engine bound to one encoder."""

    def __init__(self, encoder: Encoder):
        self.encoder = encoder

    def _try(self, state: SearchState, raw: bytes, quality: int, config: CompressionConfig) -> Optional[bool]:
        """Encode once and record it. Returns None when the encoder failed.

        A quality already tried is answered from the record, not re-encoded.
        """
        if quality in state.seen:
            return state.seen[quality]
        try:
            data = self.encoder.encode(raw, quality)
        except EncodeError as e:
            logger.debug(f"Encode failed at quality={quality}: {e}")
            state.trials.append(Trial(quality, -1, state.low, state.high))
            state.seen[quality] = None
            return None
        fits = state.record(quality, data, config.target_max_bytes)
        logger.debug(f"q={quality} -> {len(data)} bytes ({'fits' if fits else 'over'}) in [{state.low}, {state.high}]")
        return fits

    def search(self, raw: bytes, config: CompressionConfig) -> SearchOutcome:
        state = SearchState(low=config.min_quality, high=config.max_quality)

        if self._try(state, raw, config.probe_quality, config):
            return self._select(state)

        while state.low <= state.high and state.high - state.low >= config.convergence_gap:
            mid = (state.low + state.high) // 2
            fits = self._try(state, raw, mid, config)
            if fits is None:
                # Encoder failures carry no size information; treat as too large.
                state.high = mid - 1
            elif fits:
                state.low = mid + 1
            else:
                state.high = mid - 1

        if state.best_under is None and config.min_quality not in state.seen:
            self._try(state, raw, config.min_quality, config)

        return self._select(state)

    def _select(self, state: SearchState) -> SearchOutcome:
        if state.best_under is not None:
            quality, data = state.best_under
            satisfied = True
        elif state.best_over is not None:
            quality, data = state.best_over
            satisfied = False
        else:
            raise EncodeError(f"Encoder produced no output in {len(state.trials)} attempt(s)")

        return SearchOutcome(data=data, quality=quality, satisfied=satisfied, trials=tuple(state.trials))


def search(raw: bytes, config: CompressionConfig, encoder: Encoder) -> SearchOutcome:
    """Run one size-target search with a throwaway engine."""
    return SizeTargetSearch(encoder).search(raw, config)
