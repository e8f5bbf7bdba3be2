# ABOUTME: Inter-key interval and hold-duration distributions with percentile summaries
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .segmenter import TypingSegment
from .utils import AnalysisConfig

PERCENTILES = (50, 90, 95, 99)


@dataclass(frozen=True)
class PercentileSummary:
    """Distribution summary of a non-empty set of millisecond durations."""

    count: int
    mean: float
    median: int
    p90: int
    p95: int
    p99: int


def nearest_rank_index(n: int, k: int) -> int:
    """Index of the k-th percentile in ``n`` sorted samples.

    Picks an existing sample, never interpolates: floor((n - 1) * k / 100).
    """
    if n <= 0:
        raise ValueError("percentile of an empty sample set")
    return min(max((n - 1) * k // 100, 0), n - 1)


def percentile(samples: Sequence[int], k: int) -> int:
    ordered = np.sort(np.asarray(samples, dtype=np.int64))
    return int(ordered[nearest_rank_index(len(ordered), k)])


def summarize(samples: Sequence[int]) -> Optional[PercentileSummary]:
    """Summarize ``samples``; an empty set has no summary and yields None."""
    if len(samples) == 0:
        return None

    ordered = np.sort(np.asarray(samples, dtype=np.int64))
    n = len(ordered)
    median, p90, p95, p99 = (int(ordered[nearest_rank_index(n, k)]) for k in PERCENTILES)
    return PercentileSummary(
        count=n,
        mean=round(float(ordered.mean()), 1),
        median=median,
        p90=p90,
        p95=p95,
        p99=p99,
    )


@dataclass(frozen=True)
class HoldDuration:
    key: str
    samples: Tuple[int, ...]
    summary: PercentileSummary

    @property
    def sample_count(self) -> int:
        return len(self.samples)


@dataclass(frozen=True)
class PairInterval:
    from_key: str
    to_key: str
    samples: Tuple[int, ...]
    summary: PercentileSummary

    @property
    def display(self) -> str:
        return f"{self.from_key} -> {self.to_key}"


def _ranked_by_samples(samples: Dict, first_seen: Dict) -> List:
    return sorted(samples, key=lambda item: (-len(samples[item]), first_seen[item]))


class _HoldTracker:
    """Pairs each release with the latest open press of the same key."""

    def __init__(self, min_hold_ms: Optional[int], max_hold_ms: Optional[int]):
        self.min_hold_ms = min_hold_ms
        self.max_hold_ms = max_hold_ms
        self.open_presses: Dict[str, int] = {}
        self.samples: Dict[str, List[int]] = {}
        self.first_seen: Dict[str, int] = {}
        self.abandoned_presses = 0
        self.unmatched_releases = 0
        self.filtered_holds = 0

    def feed(self, event) -> None:
        if event.is_press:
            if event.key in self.open_presses:
                self.abandoned_presses += 1
            self.open_presses[event.key] = event.timestamp
            return

        pressed_at = self.open_presses.pop(event.key, None)
        if pressed_at is None:
            self.unmatched_releases += 1
            return

        duration = event.timestamp - pressed_at
        if (self.min_hold_ms is not None and duration < self.min_hold_ms) or (
            self.max_hold_ms is not None and duration > self.max_hold_ms
        ):
            self.filtered_holds += 1
            return

        if event.key not in self.first_seen:
            self.first_seen[event.key] = len(self.first_seen)
            self.samples[event.key] = []
        self.samples[event.key].append(duration)

    def results(self) -> Tuple[HoldDuration, ...]:
        return tuple(
            HoldDuration(
                key=key,
                samples=tuple(self.samples[key]),
                summary=summarize(self.samples[key]),
            )
            for key in _ranked_by_samples(self.samples, self.first_seen)
        )


@dataclass(frozen=True)
class TimingAnalysis:
    inter_key: Optional[PercentileSummary]
    inter_key_samples: Tuple[int, ...]
    hold_durations: Tuple[HoldDuration, ...]
    pair_intervals: Tuple[PairInterval, ...]
    abandoned_presses: int
    unmatched_releases: int
    unmatched_presses: int
    filtered_holds: int

    @classmethod
    def from_segments(
        cls, segments: Iterable[TypingSegment], config: AnalysisConfig = AnalysisConfig()
    ) -> "TimingAnalysis":
        """Collect inter-key intervals per segment and hold durations per key.

        Intervals only pair presses inside one segment. Hold pairing runs over
        the whole ordered stream, so a press and its release may sit in
        different segments.
        """
        logging.info("Analyzing timing distributions...")
        intervals: List[int] = []
        pair_samples: Dict[Tuple[str, str], List[int]] = {}
        pair_first_seen: Dict[Tuple[str, str], int] = {}
        holds = _HoldTracker(config.min_hold_ms, config.max_hold_ms)

        for segment in segments:
            previous = None
            for event in segment.events:
                holds.feed(event)
                if not event.is_press:
                    continue
                if previous is not None:
                    interval = event.timestamp - previous.timestamp
                    intervals.append(interval)
                    pair = (previous.key, event.key)
                    if pair not in pair_first_seen:
                        pair_first_seen[pair] = len(pair_first_seen)
                        pair_samples[pair] = []
                    pair_samples[pair].append(interval)
                previous = event

        pair_intervals = tuple(
            PairInterval(
                from_key=pair[0],
                to_key=pair[1],
                samples=tuple(pair_samples[pair]),
                summary=summarize(pair_samples[pair]),
            )
            for pair in _ranked_by_samples(pair_samples, pair_first_seen)
            if len(pair_samples[pair]) >= config.min_pair_samples
        )

        if holds.unmatched_releases:
            logging.warning(
                f"Skipped {holds.unmatched_releases} releases with no open press"
            )

        return cls(
            inter_key=summarize(intervals),
            inter_key_samples=tuple(intervals),
            hold_durations=holds.results(),
            pair_intervals=pair_intervals,
            abandoned_presses=holds.abandoned_presses,
            unmatched_releases=holds.unmatched_releases,
            unmatched_presses=len(holds.open_presses),
            filtered_holds=holds.filtered_holds,
        )

    def hold_for(self, key: str) -> Optional[HoldDuration]:
        for hold in self.hold_durations:
            if hold.key == key:
                return hold
        return None

    def top_hold_durations(self, n: int) -> Sequence[HoldDuration]:
        return self.hold_durations[:n]

    def top_pair_intervals(self, n: int) -> Sequence[PairInterval]:
        return self.pair_intervals[:n]
