# ABOUTME: Unit tests for percentile summaries, inter-key intervals and hold durations
import pytest

from lurk.segmenter import segment_events
from lurk.timing import (
    PercentileSummary,
    TimingAnalysis,
    nearest_rank_index,
    percentile,
    summarize,
)
from lurk.utils import AnalysisConfig, EventKind, KeyEvent


def press(key, timestamp):
    return KeyEvent(timestamp=timestamp, key=key, kind=EventKind.PRESS)


def release(key, timestamp):
    return KeyEvent(timestamp=timestamp, key=key, kind=EventKind.RELEASE)


def analyze(events, config=AnalysisConfig()):
    segments = segment_events(events, config.gap_threshold_ms).segments
    return TimingAnalysis.from_segments(segments, config)


class TestPercentiles:
    """Test nearest-rank percentile summaries."""

    SAMPLES = [100, 150, 179, 200, 811, 1327, 2000]

    def test_p90_of_known_sample_set(self):
        """p90 of seven samples is the sample at index 5."""
        assert percentile(self.SAMPLES, 90) == 1327

    def test_summary_of_known_sample_set(self):
        summary = summarize(self.SAMPLES)
        assert summary == PercentileSummary(
            count=7, mean=681.0, median=200, p90=1327, p95=1327, p99=1327
        )

    def test_input_order_irrelevant(self):
        """Samples are sorted before ranking."""
        assert summarize(list(reversed(self.SAMPLES))) == summarize(self.SAMPLES)

    def test_never_interpolates(self):
        """Every percentile is one of the samples."""
        summary = summarize([10, 20])
        assert summary.median == 10
        assert summary.p99 == 10

    def test_one_to_hundred(self):
        summary = summarize(list(range(1, 101)))
        assert summary.median == 50
        assert summary.p90 == 90
        assert summary.p95 == 95
        assert summary.p99 == 99
        assert summary.mean == 50.5

    def test_single_sample(self):
        summary = summarize([42])
        assert summary == PercentileSummary(
            count=1, mean=42.0, median=42, p90=42, p95=42, p99=42
        )

    def test_mean_rounded_to_one_decimal(self):
        assert summarize([1, 1, 2]).mean == 1.3

    def test_empty_has_no_data(self):
        """An empty sample set yields no summary rather than zeros."""
        assert summarize([]) is None

    def test_index_rule(self):
        assert nearest_rank_index(7, 90) == 5
        assert nearest_rank_index(1, 99) == 0
        with pytest.raises(ValueError):
            nearest_rank_index(0, 50)


class TestTimingAnalysis:
    """Test interval and hold-duration collection."""

    def test_empty_events(self):
        analysis = analyze([])
        assert analysis.inter_key is None
        assert analysis.inter_key_samples == ()
        assert analysis.hold_durations == ()

    def test_basic_scenario(self):
        """One interval inside segment one; three hold samples."""
        analysis = analyze(
            [
                press("A", 0),
                release("A", 50),
                press("B", 60),
                release("B", 110),
                press("A", 5200),
                release("A", 5260),
            ]
        )

        assert analysis.inter_key_samples == (60,)
        assert analysis.inter_key.count == 1
        assert analysis.inter_key.median == 60
        assert analysis.hold_for("A").samples == (50, 60)
        assert analysis.hold_for("B").samples == (50,)

    def test_intervals_do_not_cross_segments(self):
        """The pause between segments is never an interval sample."""
        analysis = analyze([press("A", 0), press("B", 100), press("C", 9000)])
        assert analysis.inter_key_samples == (100,)

    def test_repeated_press_abandons_first(self):
        """press A, press A, release A pairs the release with the later press."""
        analysis = analyze([press("A", 0), press("A", 50), release("A", 120)])

        assert analysis.hold_for("A").samples == (70,)
        assert analysis.abandoned_presses == 1

    def test_unmatched_release_skipped(self):
        """A release with no open press gives no sample and is counted."""
        analysis = analyze([release("A", 10), press("B", 20), release("B", 90)])

        assert analysis.hold_for("A") is None
        assert analysis.hold_for("B").samples == (70,)
        assert analysis.unmatched_releases == 1

    def test_unreleased_press_at_end(self):
        analysis = analyze([press("A", 0), press("B", 100), release("B", 150)])
        assert analysis.hold_for("A") is None
        assert analysis.unmatched_presses == 1

    def test_hold_pairs_across_segments(self):
        """A release in a later segment still closes its press."""
        analysis = analyze([press("A", 0), press("B", 6000), release("A", 6050)])

        assert analysis.hold_for("A").samples == (6050,)
        assert analysis.inter_key_samples == ()

    def test_hold_bounds_filter(self):
        """Configured hold bounds drop out-of-range samples."""
        config = AnalysisConfig(min_hold_ms=10, max_hold_ms=500)
        analysis = analyze(
            [
                press("A", 0),
                release("A", 5),
                press("B", 100),
                release("B", 1000),
                press("C", 2000),
                release("C", 2100),
            ],
            config,
        )

        assert [h.key for h in analysis.hold_durations] == ["C"]
        assert analysis.filtered_holds == 2

    def test_holds_ranked_by_sample_count(self):
        events = [
            press("B", 0),
            release("B", 50),
            press("A", 100),
            release("A", 150),
            press("A", 200),
            release("A", 260),
        ]
        analysis = analyze(events)
        assert [h.key for h in analysis.top_hold_durations(10)] == ["A", "B"]

    def test_pair_intervals(self):
        """Key pairs with enough samples get their own summary."""
        events = [press(key, i * 100) for i, key in enumerate("ABABABAB")]
        analysis = analyze(events)

        pairs = [(p.display, p.summary.count) for p in analysis.pair_intervals]
        assert pairs == [("A -> B", 4), ("B -> A", 3)]
        assert analysis.pair_intervals[0].summary.mean == 100.0

    def test_pair_intervals_minimum_samples(self):
        events = [press(key, i * 100) for i, key in enumerate("ABAB")]
        analysis = analyze(events)
        assert analysis.pair_intervals == ()
