# ABOUTME: Tests for report aggregation, rendering and export
import json
import tempfile
from pathlib import Path

import pandas as pd
import pytest

from lurk.report import (
    CSV_COLUMNS,
    analyze_events,
    export_csv,
    export_json,
    render_summary,
    report_to_dict,
    report_to_frame,
    report_to_json,
)
from lurk.utils import AnalysisConfig, EventKind, InvalidConfiguration, KeyEvent


def press(key, timestamp, app=None):
    return KeyEvent(timestamp=timestamp, key=key, kind=EventKind.PRESS, app_context=app)


def release(key, timestamp, app=None):
    return KeyEvent(timestamp=timestamp, key=key, kind=EventKind.RELEASE, app_context=app)


@pytest.fixture
def basic_events():
    return [
        press("A", 0, "com.apple.TextEdit"),
        release("A", 50, "com.apple.TextEdit"),
        press("B", 60, "com.apple.TextEdit"),
        release("B", 110, "com.apple.TextEdit"),
        press("A", 5200, "com.apple.Terminal"),
        release("A", 5260, "com.apple.Terminal"),
    ]


class TestAnalyzeEvents:
    """Test the full events -> report pipeline."""

    def test_basic_stats(self, basic_events):
        report = analyze_events(basic_events)

        assert report.total_events == 6
        assert report.segment_count == 2
        assert report.analyzed_events == 6
        assert report.press_count == 3
        assert report.release_count == 3
        assert report.key_counts == {"A": 2, "B": 1}
        assert report.inter_key_samples == (60,)
        assert sorted(report.hold_samples) == [50, 50, 60]
        assert report.time_range == (0, 5260)

    def test_top_applications(self, basic_events):
        report = analyze_events(basic_events)
        assert report.top_applications == (
            ("com.apple.TextEdit", 2),
            ("com.apple.Terminal", 1),
        )

    def test_cross_boundary_bigram_absent(self):
        """A pair typed across a long pause is not in the bigram table."""
        events = [press("Q", 0), press("W", 100), press("E", 5101), press("R", 5200)]
        report = analyze_events(events)

        bigrams = [entry.keys for entry in report.top_bigrams]
        assert ("W", "E") not in bigrams
        assert bigrams == [("Q", "W"), ("E", "R")]

    def test_empty_input(self):
        """No events gives zero counts and no timing data."""
        report = analyze_events([])

        assert report.total_events == 0
        assert report.segment_count == 0
        assert report.analyzed_events == 0
        assert report.top_keys == ()
        assert report.top_bigrams == ()
        assert report.top_trigrams == ()
        assert report.inter_key is None
        assert report.hold_durations == ()
        assert report.time_range is None

    def test_idempotent(self, basic_events):
        """Two runs on the same input give identical reports."""
        first = analyze_events(basic_events)
        second = analyze_events(list(basic_events))

        assert first == second
        assert report_to_json(first) == report_to_json(second)

    def test_malformed_and_unmatched_events(self):
        """Bad records are counted in diagnostics, never raised."""
        events = [
            press("A", 0),
            KeyEvent(10, None, EventKind.RELEASE),
            release("B", 20),
            release("A", 30),
        ]
        report = analyze_events(events)

        assert report.total_events == 4
        assert report.analyzed_events == 3
        assert report.diagnostics.malformed_events == 1
        assert report.diagnostics.unmatched_releases == 1
        assert report.diagnostics.skipped_events == 2
        assert report.hold_samples == [30]
        assert report.hold_for("B") is None

    def test_min_segment_events(self):
        """Segments below the minimum are excluded from analysis but still counted."""
        events = [
            press("A", 0),
            release("A", 50),
            press("B", 10000),
            press("C", 20000),
            release("C", 20050),
        ]
        report = analyze_events(events, AnalysisConfig(min_segment_events=2))

        assert report.segment_count == 3
        assert report.analyzed_events == 4
        assert report.key_counts == {"A": 1, "C": 1}
        assert report.diagnostics.excluded_segments == 1
        assert report.press_count == 2
        assert report.release_count == 2
        assert report.time_range == (0, 20050)

    def test_excluded_segments_left_out_of_totals(self):
        """Press totals and application shares cover the analyzed segments only."""
        events = [
            press("A", 0, "app1"),
            press("B", 10000, "app2"),
            press("C", 10100, "app2"),
        ]
        report = analyze_events(events, AnalysisConfig(min_segment_events=2))

        assert report.total_events == 3
        assert report.analyzed_events == 2
        assert report.press_count == 2
        assert report.time_range == (10000, 10100)
        assert report.top_applications == (("app2", 2),)
        assert "(100.0%)" in render_summary(report)

    def test_top_n_truncates_tables(self):
        events = [press(key, i * 100) for i, key in enumerate("ABCDEFGHIJKL")]
        report = analyze_events(events, AnalysisConfig(top_n=10))

        assert len(report.top_keys) == 10
        assert len(report.top_bigrams) == 10
        assert [e.keys[0] for e in report.top_keys[:3]] == ["A", "B", "C"]


class TestConfigurationValidation:
    """Invalid options fail before any processing."""

    @pytest.mark.parametrize(
        "config, option",
        [
            (AnalysisConfig(gap_threshold_ms=0), "gap_threshold_ms"),
            (AnalysisConfig(gap_threshold_ms=-5), "gap_threshold_ms"),
            (AnalysisConfig(top_n=0), "top_n"),
            (AnalysisConfig(min_segment_events=0), "min_segment_events"),
            (AnalysisConfig(min_hold_ms=500, max_hold_ms=100), "min_hold_ms"),
        ],
    )
    def test_rejected(self, config, option):
        with pytest.raises(InvalidConfiguration) as excinfo:
            analyze_events([press("A", 0)], config)

        assert excinfo.value.option == option
        assert option in str(excinfo.value)

    def test_bool_is_not_an_integer(self):
        with pytest.raises(InvalidConfiguration):
            AnalysisConfig(gap_threshold_ms=True).validate()


class TestRendering:
    """Test the text summary."""

    def test_summary_block(self, basic_events):
        text = render_summary(analyze_events(basic_events))

        assert "=== Typing Pattern Analysis Summary ===" in text
        assert "Total Events:     6" in text
        assert "Segments:         2" in text
        assert "--- Top 10 Keys ---" in text
        assert "A -> B" in text
        assert "Median:  60 ms" in text
        assert "--- Top 10 Hold Durations ---" in text

    def test_empty_summary_says_no_data(self):
        text = render_summary(analyze_events([]))
        assert "no data" in text
        assert "Median" not in text

    def test_detailed_adds_diagnostics(self, basic_events):
        text = render_summary(analyze_events(basic_events), detailed=True)
        assert "--- Diagnostics ---" in text
        assert "--- Top 10 Key Pair Intervals ---" in text


class TestExport:
    """Test CSV and JSON output."""

    def test_report_dict(self, basic_events):
        data = report_to_dict(analyze_events(basic_events))

        assert data["totals"]["segments"] == 2
        assert data["inter_key"]["summary"]["median"] == 60
        assert data["top_keys"][0]["keys"] == ["A"]
        assert data["diagnostics"]["skipped_events"] == 0

    def test_empty_report_dict_has_null_summary(self):
        data = report_to_dict(analyze_events([]))
        assert data["inter_key"]["summary"] is None

    def test_report_frame(self, basic_events):
        frame = report_to_frame(analyze_events(basic_events))

        assert list(frame.columns) == CSV_COLUMNS
        keys = frame[frame["section"] == "key"]
        assert list(keys["item"]) == ["A", "B"]
        inter_key = frame[frame["section"] == "inter_key"].iloc[0]
        assert inter_key["median"] == 60

    def test_export_files(self, basic_events):
        report = analyze_events(basic_events)
        with tempfile.TemporaryDirectory() as temp_dir:
            json_path = export_json(report, Path(temp_dir) / "report.json")
            csv_path = export_csv(report, Path(temp_dir) / "report.csv")

            with open(json_path) as f:
                assert json.load(f)["totals"]["total_events"] == 6

            frame = pd.read_csv(csv_path)
            assert set(frame["section"]) == {"key", "bigram", "inter_key", "hold"}
