# ABOUTME: Gap-based segmentation of a key event log into typing segments
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .utils import KeyEvent


@dataclass(frozen=True)
class TypingSegment:
    """A contiguous run of events with no idle gap between its presses."""

    index: int
    events: Tuple[KeyEvent, ...]

    def __len__(self) -> int:
        return len(self.events)

    @property
    def presses(self) -> List[KeyEvent]:
        return [e for e in self.events if e.is_press]

    @property
    def start(self) -> int:
        return self.events[0].timestamp

    @property
    def end(self) -> int:
        return self.events[-1].timestamp

    @property
    def duration_ms(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class SegmentationResult:
    segments: Tuple[TypingSegment, ...]
    malformed_events: int
    out_of_order_events: int


def segment_events(
    events: Sequence[KeyEvent], gap_threshold_ms: int = 5000
) -> SegmentationResult:
    """Split ``events`` into typing segments.

    A new segment starts at a press whose timestamp is more than
    ``gap_threshold_ms`` after the previous press. Releases never open a
    segment; they stay with whichever segment is open when they arrive.
    Events are kept in input order even when timestamps go backwards.
    Malformed events (no key) are counted and left out of every segment.
    """
    segments: List[TypingSegment] = []
    current: List[KeyEvent] = []
    last_press_ts = None
    last_ts = None
    malformed = 0
    out_of_order = 0

    for event in events:
        if event.is_malformed:
            malformed += 1
            continue

        if last_ts is not None and event.timestamp < last_ts:
            out_of_order += 1
        last_ts = event.timestamp

        if event.is_press:
            if (
                last_press_ts is not None
                and event.timestamp - last_press_ts > gap_threshold_ms
                and current
            ):
                segments.append(TypingSegment(len(segments), tuple(current)))
                current = []
            last_press_ts = event.timestamp

        current.append(event)

    if current:
        segments.append(TypingSegment(len(segments), tuple(current)))

    if malformed:
        logging.warning(f"Skipped {malformed} malformed events with no key")
    if out_of_order:
        logging.warning(
            f"{out_of_order} events have timestamps earlier than their predecessor; "
            "keeping input order"
        )
    logging.info(f"Segmented {len(events)} events into {len(segments)} typing segments")

    return SegmentationResult(tuple(segments), malformed, out_of_order)
