# ABOUTME: Package initialization for the lurk keystroke analyzer
"""
Lurk Typing Pattern Analyzer

Turns a recorded log of key press/release events into key, bigram and
trigram frequencies plus inter-key and hold-duration timing statistics.
"""

__version__ = "0.1.0"
__description__ = "Keystroke log analysis for keyboard layout and typing studies"

from .analyzer import TypingPatternAnalyzer
from .frequency import FrequencyAnalysis, NGramCount
from .report import AnalysisReport, Diagnostics, analyze_events, render_summary
from .segmenter import TypingSegment, segment_events
from .timing import PercentileSummary, TimingAnalysis, percentile, summarize
from .utils import (
    AnalysisConfig,
    ConfigManager,
    DataManager,
    EventKind,
    InvalidConfiguration,
    KeyEvent,
)

__all__ = [
    "TypingPatternAnalyzer",
    "FrequencyAnalysis",
    "NGramCount",
    "AnalysisReport",
    "Diagnostics",
    "analyze_events",
    "render_summary",
    "TypingSegment",
    "segment_events",
    "PercentileSummary",
    "TimingAnalysis",
    "percentile",
    "summarize",
    "AnalysisConfig",
    "ConfigManager",
    "DataManager",
    "EventKind",
    "InvalidConfiguration",
    "KeyEvent",
]
