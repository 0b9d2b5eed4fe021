"""
BIP-68 coin time resolution.

The coin time of an output confirmed at height H is the median-time-past of
block H-1: the median of the timestamps of blocks H-11 .. H-1. The median is
taken over the timestamp values alone, so blocks with out-of-order or equal
timestamps land wherever their value sorts them, regardless of height.
"""

import threading
from concurrent.futures import Future
from typing import Callable, Dict, List, Optional
import structlog

from utxo_fetcher.core.data_provider import LookupService
from utxo_fetcher.core.errors import InsufficientHistory

logger = structlog.get_logger(__name__)

MEDIAN_TIME_SPAN = 11
MEDIAN_INDEX = MEDIAN_TIME_SPAN // 2


def median_time_past(timestamps: List[int]) -> int:
    """Median of exactly 11 timestamps: the 6th smallest value."""
    if len(timestamps) != MEDIAN_TIME_SPAN:
        raise ValueError(f"Expected {MEDIAN_TIME_SPAN} timestamps, got {len(timestamps)}")
    return sorted(timestamps)[MEDIAN_INDEX]


class CoinTimeCache:
    """
    Per-run memo of height -> coin time with single-flight computation.

    Concurrent requests for the same missing height share one computation:
    the first caller computes, later callers wait on its future. Failed
    computations are not cached, so a later request retries.
    """

    def __init__(self):
        self._values: Dict[int, int] = {}
        self._in_flight: Dict[int, Future] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __contains__(self, height: int) -> bool:
        with self._lock:
            return height in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def get_or_compute(self, height: int, compute: Callable[[int], int]) -> int:
        with self._lock:
            if height in self._values:
                self.hits += 1
                return self._values[height]

            future = self._in_flight.get(height)
            owner = future is None
            if owner:
                self.misses += 1
                future = Future()
                self._in_flight[height] = future
            else:
                self.hits += 1

        if not owner:
            return future.result()

        try:
            value = compute(height)
        except BaseException as e:
            with self._lock:
                del self._in_flight[height]
            future.set_exception(e)
            raise

        with self._lock:
            self._values[height] = value
            del self._in_flight[height]
        future.set_result(value)
        return value


class CoinTimeResolver:
    """Resolve BIP-68 coin times through a ``LookupService``."""

    def __init__(self, lookup: LookupService, cache: Optional[CoinTimeCache] = None):
        self.lookup = lookup
        self.cache = cache if cache is not None else CoinTimeCache()
        self.logger = logger.bind(component="coin_time_resolver")

    def resolve(self, height: int) -> int:
        """
        Coin time for an output confirmed at ``height``.

        Raises:
            InsufficientHistory: height < 11.
            HeightNotFound, LookupUnavailable: a window timestamp lookup failed.
        """
        if height < MEDIAN_TIME_SPAN:
            raise InsufficientHistory(height)

        return self.cache.get_or_compute(height, self._compute)

    def _compute(self, height: int) -> int:
        window = range(height - MEDIAN_TIME_SPAN, height)
        self.logger.debug("Fetching window timestamps",
                          first_height=window[0],
                          last_height=window[-1])

        timestamps = [self.lookup.fetch_block_timestamp(h) for h in window]
        coin_time = median_time_past(timestamps)

        self.logger.info("Computed coin time",
                         height=height,
                         sorted_timestamps=sorted(timestamps),
                         coin_time=coin_time)
        return coin_time
