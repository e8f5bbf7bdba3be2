# ABOUTME: Report aggregation, text summary rendering and CSV/JSON export
import json
import logging
from collections import Counter
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .frequency import FrequencyAnalysis, NGramCount
from .segmenter import SegmentationResult, TypingSegment, segment_events
from .timing import HoldDuration, PairInterval, PercentileSummary, TimingAnalysis
from .utils import AnalysisConfig, KeyEvent

NO_DATA = "no data"

CSV_COLUMNS = [
    "section",
    "rank",
    "item",
    "count",
    "percentage",
    "mean",
    "median",
    "p90",
    "p95",
    "p99",
]


@dataclass(frozen=True)
class Diagnostics:
    """Counts of events the engine could not use as-is."""

    malformed_events: int = 0
    unmatched_releases: int = 0
    abandoned_presses: int = 0
    unmatched_presses: int = 0
    out_of_order_events: int = 0
    filtered_holds: int = 0
    excluded_segments: int = 0

    @property
    def skipped_events(self) -> int:
        return self.malformed_events + self.unmatched_releases


@dataclass(frozen=True)
class AnalysisReport:
    total_events: int
    segment_count: int
    analyzed_events: int
    press_count: int
    release_count: int
    time_range: Optional[Tuple[int, int]]
    top_keys: Tuple[NGramCount, ...]
    top_bigrams: Tuple[NGramCount, ...]
    top_trigrams: Tuple[NGramCount, ...]
    inter_key: Optional[PercentileSummary]
    inter_key_samples: Tuple[int, ...]
    hold_durations: Tuple[HoldDuration, ...]
    pair_intervals: Tuple[PairInterval, ...]
    top_applications: Tuple[Tuple[str, int], ...]
    diagnostics: Diagnostics
    config: AnalysisConfig

    @property
    def key_counts(self) -> Dict[str, int]:
        return {entry.keys[0]: entry.count for entry in self.top_keys}

    @property
    def hold_samples(self) -> List[int]:
        """Every hold sample, grouped by key in ranking order."""
        return [s for hold in self.hold_durations for s in hold.samples]

    def hold_for(self, key: str) -> Optional[HoldDuration]:
        for hold in self.hold_durations:
            if hold.key == key:
                return hold
        return None


def _rank_applications(segments: Sequence[TypingSegment], n: int) -> Tuple[Tuple[str, int], ...]:
    counts: Counter[str] = Counter()
    first_seen: Dict[str, int] = {}
    for segment in segments:
        for event in segment.presses:
            if not event.app_context:
                continue
            if event.app_context not in first_seen:
                first_seen[event.app_context] = len(first_seen)
            counts[event.app_context] += 1
    ranked = sorted(counts, key=lambda app: (-counts[app], first_seen[app]))
    return tuple((app, counts[app]) for app in ranked[:n])


def build_report(
    total_events: int,
    segmentation: SegmentationResult,
    included: Sequence[TypingSegment],
    frequency: FrequencyAnalysis,
    timing: TimingAnalysis,
    config: AnalysisConfig,
) -> AnalysisReport:
    """Assemble stage outputs into one report without recomputing anything."""
    segments = segmentation.segments
    # Totals describe the analyzed segments, the same events the tables cover
    events = [event for segment in included for event in segment.events]
    press_count = sum(1 for event in events if event.is_press)
    time_range = None
    if events:
        timestamps = [event.timestamp for event in events]
        time_range = (min(timestamps), max(timestamps))

    n = config.top_n
    return AnalysisReport(
        total_events=total_events,
        segment_count=len(segments),
        analyzed_events=len(events),
        press_count=press_count,
        release_count=len(events) - press_count,
        time_range=time_range,
        top_keys=tuple(frequency.top_keys(n)),
        top_bigrams=tuple(frequency.top_bigrams(n)),
        top_trigrams=tuple(frequency.top_trigrams(n)),
        inter_key=timing.inter_key,
        inter_key_samples=timing.inter_key_samples,
        hold_durations=timing.hold_durations,
        pair_intervals=tuple(timing.top_pair_intervals(n)),
        top_applications=_rank_applications(included, n),
        diagnostics=Diagnostics(
            malformed_events=segmentation.malformed_events,
            unmatched_releases=timing.unmatched_releases,
            abandoned_presses=timing.abandoned_presses,
            unmatched_presses=timing.unmatched_presses,
            out_of_order_events=segmentation.out_of_order_events,
            filtered_holds=timing.filtered_holds,
            excluded_segments=len(segments) - len(included),
        ),
        config=config,
    )


def analyze_events(
    events: Sequence[KeyEvent], config: Optional[AnalysisConfig] = None
) -> AnalysisReport:
    """Run segmentation, frequency and timing analysis over one batch of events.

    Raises InvalidConfiguration before touching the events if an option is
    unusable. The same events and config always produce an equal report.
    """
    config = (config or AnalysisConfig()).validate()

    segmentation = segment_events(events, config.gap_threshold_ms)
    if config.min_segment_events is None:
        included = list(segmentation.segments)
    else:
        included = [
            segment
            for segment in segmentation.segments
            if len(segment) >= config.min_segment_events
        ]
        excluded = len(segmentation.segments) - len(included)
        if excluded:
            logging.info(
                f"Excluded {excluded} segments shorter than "
                f"{config.min_segment_events} events"
            )

    frequency = FrequencyAnalysis.from_segments(included)
    timing = TimingAnalysis.from_segments(included, config)
    return build_report(len(events), segmentation, included, frequency, timing, config)


def _summary_dict(summary: Optional[PercentileSummary]) -> Optional[Dict[str, Any]]:
    return asdict(summary) if summary is not None else None


def report_to_dict(report: AnalysisReport) -> Dict[str, Any]:
    """Structured-record form of a report."""

    def table(entries: Sequence[NGramCount]) -> List[Dict[str, Any]]:
        return [
            {
                "keys": list(entry.keys),
                "display": entry.display,
                "count": entry.count,
                "percentage": round(entry.percentage, 2),
            }
            for entry in entries
        ]

    return {
        "totals": {
            "total_events": report.total_events,
            "segments": report.segment_count,
            "analyzed_events": report.analyzed_events,
            "presses": report.press_count,
            "releases": report.release_count,
        },
        "time_range": (
            {"start": report.time_range[0], "end": report.time_range[1]}
            if report.time_range
            else None
        ),
        "top_keys": table(report.top_keys),
        "top_bigrams": table(report.top_bigrams),
        "top_trigrams": table(report.top_trigrams),
        "inter_key": {
            "summary": _summary_dict(report.inter_key),
            "samples": list(report.inter_key_samples),
        },
        "hold_durations": [
            {
                "key": hold.key,
                "summary": _summary_dict(hold.summary),
                "samples": list(hold.samples),
            }
            for hold in report.hold_durations
        ],
        "pair_intervals": [
            {
                "from": pair.from_key,
                "to": pair.to_key,
                "summary": _summary_dict(pair.summary),
            }
            for pair in report.pair_intervals
        ],
        "top_applications": [
            {"application": app, "count": count} for app, count in report.top_applications
        ],
        "diagnostics": dict(
            asdict(report.diagnostics), skipped_events=report.diagnostics.skipped_events
        ),
        "config": asdict(report.config),
    }


def report_to_json(report: AnalysisReport) -> str:
    return json.dumps(report_to_dict(report), indent=2, sort_keys=True)


def export_json(report: AnalysisReport, filename: Union[str, Path]) -> Path:
    filename = Path(filename)
    filename.write_text(report_to_json(report))
    logging.info(f"Wrote JSON report to {filename}")
    return filename


def report_to_frame(report: AnalysisReport) -> pd.DataFrame:
    """Long-form table of every ranked entry and timing summary in the report."""
    rows: List[Dict[str, Any]] = []

    for section, entries in (
        ("key", report.top_keys),
        ("bigram", report.top_bigrams),
        ("trigram", report.top_trigrams),
    ):
        for rank, entry in enumerate(entries, 1):
            rows.append(
                {
                    "section": section,
                    "rank": rank,
                    "item": entry.display,
                    "count": entry.count,
                    "percentage": round(entry.percentage, 2),
                }
            )

    def timing_row(section: str, rank: int, item: str, summary: Optional[PercentileSummary]):
        row = {"section": section, "rank": rank, "item": item}
        if summary is not None:
            row.update(asdict(summary))
        else:
            row["count"] = 0
        return row

    rows.append(timing_row("inter_key", 1, "all", report.inter_key))
    for rank, hold in enumerate(report.hold_durations, 1):
        rows.append(timing_row("hold", rank, hold.key, hold.summary))
    for rank, pair in enumerate(report.pair_intervals, 1):
        rows.append(timing_row("pair_interval", rank, pair.display, pair.summary))

    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def export_csv(report: AnalysisReport, filename: Union[str, Path]) -> Path:
    filename = Path(filename)
    report_to_frame(report).to_csv(filename, index=False)
    logging.info(f"Wrote CSV report to {filename}")
    return filename


def format_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S UTC"
    )


def _format_summary(summary: Optional[PercentileSummary]) -> List[str]:
    if summary is None:
        return [f"  {NO_DATA}"]
    return [
        f"  Samples: {summary.count:,}",
        f"  Mean:    {summary.mean:.1f} ms",
        f"  Median:  {summary.median} ms",
        f"  P90:     {summary.p90} ms",
        f"  P95:     {summary.p95} ms",
        f"  P99:     {summary.p99} ms",
    ]


def render_summary(report: AnalysisReport, detailed: bool = False) -> str:
    """Human-readable summary block of a report."""
    n = report.config.top_n
    lines = [
        "=== Typing Pattern Analysis Summary ===",
        f"Total Events:     {report.total_events:,}",
        f"Key Presses:      {report.press_count:,}",
        f"Key Releases:     {report.release_count:,}",
        f"Segments:         {report.segment_count:,}",
        f"Analyzed Events:  {report.analyzed_events:,}",
        f"Skipped Events:   {report.diagnostics.skipped_events:,}",
    ]

    if report.time_range:
        lines += [
            "",
            "Date Range:",
            f"  Start: {format_timestamp(report.time_range[0])}",
            f"  End:   {format_timestamp(report.time_range[1])}",
        ]

    for title, entries in (
        ("Keys", report.top_keys),
        ("Bigrams", report.top_bigrams),
        ("Trigrams", report.top_trigrams),
    ):
        lines += ["", f"--- Top {n} {title} ---"]
        if not entries:
            lines.append(f"  {NO_DATA}")
        for i, entry in enumerate(entries, 1):
            lines.append(
                f"{i:2}. {entry.display:25} {entry.count:>8} ({entry.percentage:.1f}%)"
            )

    lines += ["", "--- Inter-Key Timing ---"] + _format_summary(report.inter_key)

    lines += ["", f"--- Top {n} Hold Durations ---"]
    if not report.hold_durations:
        lines.append(f"  {NO_DATA}")
    for i, hold in enumerate(report.hold_durations[:n], 1):
        s = hold.summary
        lines.append(
            f"{i:2}. {hold.key:15} n={s.count:<6} mean={s.mean:.1f}ms "
            f"median={s.median}ms p95={s.p95}ms"
        )

    if report.top_applications:
        lines += ["", f"--- Top {n} Applications ---"]
        for i, (app, count) in enumerate(report.top_applications, 1):
            pct = (count / report.press_count) * 100 if report.press_count else 0.0
            lines.append(f"{i:2}. {app:25} {count:>8} ({pct:.1f}%)")

    if detailed:
        lines += ["", f"--- Top {n} Key Pair Intervals ---"]
        if not report.pair_intervals:
            lines.append(f"  {NO_DATA}")
        for i, pair in enumerate(report.pair_intervals, 1):
            s = pair.summary
            lines.append(
                f"{i:2}. {pair.display:25} n={s.count:<6} mean={s.mean:.1f}ms "
                f"median={s.median}ms p95={s.p95}ms"
            )

        d = report.diagnostics
        lines += [
            "",
            "--- Diagnostics ---",
            f"  Malformed events:     {d.malformed_events}",
            f"  Unmatched releases:   {d.unmatched_releases}",
            f"  Abandoned presses:    {d.abandoned_presses}",
            f"  Unreleased presses:   {d.unmatched_presses}",
            f"  Out-of-order events:  {d.out_of_order_events}",
            f"  Filtered holds:       {d.filtered_holds}",
            f"  Excluded segments:    {d.excluded_segments}",
        ]

    return "\n".join(lines)
