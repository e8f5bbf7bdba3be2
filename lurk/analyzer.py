# ABOUTME: Analysis orchestration and command line entry point for lurk
import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .report import (
    AnalysisReport,
    analyze_events,
    export_csv,
    export_json,
    format_timestamp,
    render_summary,
)
from .utils import (
    AnalysisConfig,
    ConfigManager,
    DataManager,
    InvalidConfiguration,
    KeyEvent,
    setup_logging,
)


class TypingPatternAnalyzer:
    """Loads stored key events and turns them into an AnalysisReport."""

    def __init__(self, config_path: Optional[str] = None, data_dir: Optional[str] = None):
        self.config = ConfigManager(config_path or "config.yaml")
        self.data_manager = DataManager(
            data_dir or self.config.get("output.data_directory", "./data")
        )
        self.reports_dir = Path(
            self.config.get("output.reports_directory", "./reports")
        )
        self.reports_dir.mkdir(parents=True, exist_ok=True)

        setup_logging(
            self.config.get("output.log_level", "INFO"),
            self.config.get("output.log_file"),
        )

        self.analysis_config = AnalysisConfig.from_manager(self.config)
        self.events: List[KeyEvent] = []
        self.report: Optional[AnalysisReport] = None

    def load_data(
        self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> None:
        """Load key events for analysis."""
        logging.info("Loading key event data...")
        self.events = self.data_manager.load_data(start_date, end_date)
        logging.info(f"Loaded {len(self.events)} key events")

    def load_recent(self, days: int) -> None:
        """Load only the last ``days`` days of key events."""
        logging.info(f"Loading key events from the last {days} days...")
        self.events = self.data_manager.load_data_since(days)
        logging.info(f"Loaded {len(self.events)} key events")

    def run_full_analysis(self, **overrides) -> AnalysisReport:
        """Analyze the loaded events; keyword overrides replace config options."""
        config = self.analysis_config.with_overrides(**overrides)
        logging.info("Running typing pattern analysis...")

        if not self.events:
            logging.warning("No events loaded; report will be empty")

        self.report = analyze_events(self.events, config)
        return self.report

    def generate_reports(
        self, formats: Optional[List[str]] = None, output_dir: Optional[str] = None
    ) -> Dict[str, str]:
        """Write the current report in the requested formats."""
        if self.report is None:
            logging.error("No analysis results available. Run analysis first.")
            return {}

        formats = formats or self.config.get("reporting.export_formats", ["json", "csv"])
        reports_dir = Path(output_dir) if output_dir else self.reports_dir
        reports_dir.mkdir(parents=True, exist_ok=True)
        generated_files = {}

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        for format_type in formats:
            if format_type == "json":
                filename = reports_dir / f"typing_analysis_{timestamp}.json"
                export_json(self.report, filename)
                generated_files["json"] = str(filename)

            elif format_type == "csv":
                filename = reports_dir / f"typing_analysis_{timestamp}.csv"
                export_csv(self.report, filename)
                generated_files["csv"] = str(filename)

            else:
                logging.warning(f"Unknown report format '{format_type}', skipping")

        logging.info(f"Generated reports: {list(generated_files.keys())}")
        return generated_files

    def export_events(self, filename: str) -> str:
        """Dump the loaded raw events to CSV."""
        return str(self.data_manager.export_events_csv(self.events, filename))


def format_stats(report: AnalysisReport) -> str:
    """Short totals block for the ``stats`` command."""
    if report.total_events == 0:
        return "No keystroke data recorded yet."

    lines = [
        "=== Lurk Statistics ===",
        "",
        f"Total Events:     {report.total_events}",
        f"Key Presses:      {report.press_count}",
        f"Key Releases:     {report.release_count}",
    ]

    if report.time_range:
        start, end = report.time_range
        days_recorded = max((end - start) // 86_400_000, 1)
        lines += [
            "",
            "Date Range:",
            f"  Start: {format_timestamp(start)}",
            f"  End:   {format_timestamp(end)}",
            f"  Duration: {days_recorded} days",
            "",
            f"Average: {report.press_count // days_recorded} presses/day",
        ]

    lines += ["", f"--- Top {report.config.top_n} Keys ---"]
    for i, entry in enumerate(report.top_keys, 1):
        lines.append(f"{i:2}. {entry.display:15} {entry.count:>8} ({entry.percentage:.1f}%)")

    if report.top_applications:
        lines += ["", f"--- Top {report.config.top_n} Applications ---"]
        for i, (app, count) in enumerate(report.top_applications, 1):
            app_short = app.split(".")[-1]
            pct = (count / report.press_count) * 100 if report.press_count else 0.0
            lines.append(f"{i:2}. {app_short:25} {count:>8} ({pct:.1f}%)")

    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default="config.yaml", help="Configuration file path")
    common.add_argument("--input", help="Input data directory")
    common.add_argument("--days", type=int, help="Limit to last N days")

    parser = argparse.ArgumentParser(
        prog="lurk",
        description="Keystroke log analysis: key frequencies and typing timing",
    )
    subparsers = parser.add_subparsers(dest="command")

    analyze = subparsers.add_parser(
        "analyze", parents=[common], help="Analyze typing patterns"
    )
    analyze.add_argument("--top", type=int, help="Number of top items to show")
    analyze.add_argument(
        "--max-gap", type=int, help="Idle gap in ms that splits typing segments"
    )
    analyze.add_argument(
        "--min-segment-events",
        type=int,
        help="Ignore segments with fewer events than this",
    )
    analyze.add_argument(
        "--detailed",
        action="store_true",
        help="Show per-pair timing and diagnostics",
    )
    analyze.add_argument(
        "--export",
        nargs="+",
        choices=["json", "csv"],
        help="Also write the report in these formats",
    )
    analyze.add_argument("--output", help="Output directory for reports")

    subparsers.add_parser("stats", parents=[common], help="Show keystroke statistics")

    export = subparsers.add_parser("export", parents=[common], help="Export keystroke data")
    export.add_argument(
        "--format",
        choices=["csv", "json"],
        default="csv",
        help="csv dumps raw events, json writes the analysis report",
    )
    export.add_argument("--output", required=True, help="Output file path")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the analyzer."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    analyzer = TypingPatternAnalyzer(args.config, data_dir=args.input)
    if args.days is not None:
        analyzer.load_recent(args.days)
    else:
        analyzer.load_data()

    overrides = {}
    if args.command == "analyze":
        overrides = {
            "top_n": args.top,
            "gap_threshold_ms": args.max_gap,
            "min_segment_events": args.min_segment_events,
        }

    try:
        report = analyzer.run_full_analysis(**overrides)
    except InvalidConfiguration as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.command == "stats":
        print(format_stats(report))
        return 0

    if args.command == "export":
        if args.format == "csv":
            path = analyzer.export_events(args.output)
        else:
            path = str(export_json(report, args.output))
        print(f"Exported {len(analyzer.events)} events to {path}")
        return 0

    if not analyzer.events:
        print("No keystroke data found.")
        return 0

    print(render_summary(report, detailed=args.detailed))

    if args.export:
        generated_files = analyzer.generate_reports(args.export, args.output)
        print("\nReports generated:")
        for format_type, filepath in generated_files.items():
            print(f"  {format_type.upper()}: {filepath}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
