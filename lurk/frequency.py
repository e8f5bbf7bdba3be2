# ABOUTME: Key, bigram and trigram frequency counting over typing segments
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from .segmenter import TypingSegment

NGram = Tuple[str, ...]


@dataclass(frozen=True)
class NGramCount:
    """Occurrences of one key sequence, with its share of the table total."""

    keys: NGram
    count: int
    percentage: float

    @property
    def display(self) -> str:
        return " -> ".join(self.keys)

    @property
    def order(self) -> int:
        return len(self.keys)


def rank_counts(counts: Dict[NGram, int], first_seen: Dict[NGram, int]) -> List[NGramCount]:
    """Order n-grams by count descending, earliest first occurrence breaking ties."""
    total = sum(counts.values())
    ranked = sorted(counts, key=lambda gram: (-counts[gram], first_seen[gram]))
    return [
        NGramCount(
            keys=gram,
            count=counts[gram],
            percentage=(counts[gram] / total) * 100 if total else 0.0,
        )
        for gram in ranked
    ]


class _NGramCounter:
    def __init__(self) -> None:
        self.counts: Counter[NGram] = Counter()
        self.first_seen: Dict[NGram, int] = {}

    def add(self, gram: NGram) -> None:
        if gram not in self.first_seen:
            self.first_seen[gram] = len(self.first_seen)
        self.counts[gram] += 1

    def ranked(self) -> Tuple[NGramCount, ...]:
        return tuple(rank_counts(self.counts, self.first_seen))


@dataclass(frozen=True)
class FrequencyAnalysis:
    total_presses: int
    keys: Tuple[NGramCount, ...]
    bigrams: Tuple[NGramCount, ...]
    trigrams: Tuple[NGramCount, ...]

    @classmethod
    def from_segments(cls, segments: Iterable[TypingSegment]) -> "FrequencyAnalysis":
        """Count 1-, 2- and 3-grams of pressed keys, one segment at a time.

        Windows restart at every segment, so no n-gram ever joins keys
        typed on either side of an idle gap.
        """
        logging.info("Analyzing key frequencies...")
        unigrams, bigrams, trigrams = _NGramCounter(), _NGramCounter(), _NGramCounter()
        total_presses = 0

        for segment in segments:
            keys = [event.key for event in segment.presses]
            total_presses += len(keys)
            for i, key in enumerate(keys):
                unigrams.add((key,))
                if i >= 1:
                    bigrams.add((keys[i - 1], key))
                if i >= 2:
                    trigrams.add((keys[i - 2], keys[i - 1], key))

        return cls(
            total_presses=total_presses,
            keys=unigrams.ranked(),
            bigrams=bigrams.ranked(),
            trigrams=trigrams.ranked(),
        )

    def top_keys(self, n: int) -> Sequence[NGramCount]:
        return self.keys[:n]

    def top_bigrams(self, n: int) -> Sequence[NGramCount]:
        return self.bigrams[:n]

    def top_trigrams(self, n: int) -> Sequence[NGramCount]:
        return self.trigrams[:n]
