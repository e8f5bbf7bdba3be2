# ABOUTME: Shared data model, configuration and event storage for the lurk analyzer
import json
import copy
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Any, Union
from dataclasses import dataclass, asdict, replace
from pathlib import Path
import pandas as pd
import yaml
import logging


class EventKind(str, Enum):
    """Whether a key went down or came back up."""

    PRESS = "press"
    RELEASE = "release"


@dataclass(frozen=True)
class KeyEvent:
    """A single recorded key transition.

    ``timestamp`` is a monotonic millisecond counter supplied by the event
    source. ``key`` is the rendered key identifier ("A", "Space", ...); a
    missing or empty key marks the event as malformed.
    """

    timestamp: int
    key: Optional[str]
    kind: EventKind
    app_context: Optional[str] = None

    @property
    def is_press(self) -> bool:
        return self.kind is EventKind.PRESS

    @property
    def is_release(self) -> bool:
        return self.kind is EventKind.RELEASE

    @property
    def is_malformed(self) -> bool:
        return not self.key

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyEvent":
        """Create from a stored record.

        Accepts the native layout (``key``/``kind``/``app_context``) as well as
        the capture daemon's export layout (``key_code``/``event_type``/
        ``application``).
        """
        key = data.get("key")
        if key is None and data.get("key_code") is not None:
            key = key_name_for_code(int(data["key_code"]))

        return cls(
            timestamp=int(data["timestamp"]),
            key=key,
            kind=EventKind(data.get("kind", data.get("event_type"))),
            app_context=data.get("app_context", data.get("application")),
        )


# macOS virtual key codes as written by the capture daemon
KEY_CODE_NAMES = {
    0x00: "A",
    0x01: "S",
    0x02: "D",
    0x03: "F",
    0x04: "H",
    0x05: "G",
    0x06: "Z",
    0x07: "X",
    0x08: "C",
    0x09: "V",
    0x0B: "B",
    0x0C: "Q",
    0x0D: "W",
    0x0E: "E",
    0x0F: "R",
    0x10: "Y",
    0x11: "T",
    0x12: "1",
    0x13: "2",
    0x14: "3",
    0x15: "4",
    0x16: "6",
    0x17: "5",
    0x18: "=",
    0x19: "9",
    0x1A: "7",
    0x1B: "-",
    0x1C: "8",
    0x1D: "0",
    0x1E: "]",
    0x1F: "O",
    0x20: "U",
    0x21: "[",
    0x22: "I",
    0x23: "P",
    0x24: "Return",
    0x25: "L",
    0x26: "J",
    0x27: "'",
    0x28: "K",
    0x29: ";",
    0x2A: "\\",
    0x2B: ",",
    0x2C: "/",
    0x2D: "N",
    0x2E: "M",
    0x2F: ".",
    0x30: "Tab",
    0x31: "Space",
    0x32: "`",
    0x33: "Backspace",
    0x35: "Escape",
    0x36: "RightCommand",
    0x37: "LeftCommand",
    0x38: "LeftShift",
    0x39: "CapsLock",
    0x3A: "LeftAlt",
    0x3B: "LeftControl",
    0x3C: "RightShift",
    0x3D: "RightAlt",
    0x3E: "RightControl",
    0x3F: "Function",
    0x7A: "F1",
    0x78: "F2",
    0x63: "F3",
    0x76: "F4",
    0x60: "F5",
    0x61: "F6",
    0x62: "F7",
    0x64: "F8",
    0x65: "F9",
    0x6D: "F10",
    0x67: "F11",
    0x6F: "F12",
    0x73: "Home",
    0x74: "PageUp",
    0x75: "Delete",
    0x77: "End",
    0x79: "PageDown",
    0x7B: "LeftArrow",
    0x7C: "RightArrow",
    0x7D: "DownArrow",
    0x7E: "UpArrow",
}


def key_name_for_code(code: int) -> str:
    """Render a virtual key code as a key identifier."""
    return KEY_CODE_NAMES.get(code, f"Unknown(0x{code:02X})")


class InvalidConfiguration(ValueError):
    """Raised before analysis starts when an option has an unusable value."""

    def __init__(self, option: str, value: Any, reason: str):
        self.option = option
        self.value = value
        self.reason = reason
        super().__init__(f"{option}={value!r}: {reason}")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class AnalysisConfig:
    """Engine options for one analysis run."""

    gap_threshold_ms: int = 5000
    top_n: int = 10
    min_segment_events: Optional[int] = None
    min_hold_ms: Optional[int] = None
    max_hold_ms: Optional[int] = None
    min_pair_samples: int = 3

    def validate(self) -> "AnalysisConfig":
        """Check every option, raising InvalidConfiguration on the first bad one."""
        for option in ("gap_threshold_ms", "top_n", "min_pair_samples"):
            value = getattr(self, option)
            if not _is_int(value) or value <= 0:
                raise InvalidConfiguration(option, value, "must be a positive integer")

        if self.min_segment_events is not None and (
            not _is_int(self.min_segment_events) or self.min_segment_events <= 0
        ):
            raise InvalidConfiguration(
                "min_segment_events",
                self.min_segment_events,
                "must be a positive integer when set",
            )

        for option in ("min_hold_ms", "max_hold_ms"):
            value = getattr(self, option)
            if value is not None and (not _is_int(value) or value < 0):
                raise InvalidConfiguration(
                    option, value, "must be a non-negative integer when set"
                )

        if (
            self.min_hold_ms is not None
            and self.max_hold_ms is not None
            and self.min_hold_ms > self.max_hold_ms
        ):
            raise InvalidConfiguration(
                "min_hold_ms", self.min_hold_ms, "must not exceed max_hold_ms"
            )
        return self

    def with_overrides(self, **overrides: Any) -> "AnalysisConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_manager(cls, config: "ConfigManager") -> "AnalysisConfig":
        defaults = cls()
        return cls(
            gap_threshold_ms=config.get(
                "analysis.gap_threshold_ms", defaults.gap_threshold_ms
            ),
            top_n=config.get("analysis.top_n", defaults.top_n),
            min_segment_events=config.get("analysis.min_segment_events"),
            min_hold_ms=config.get("analysis.min_hold_ms"),
            max_hold_ms=config.get("analysis.max_hold_ms"),
            min_pair_samples=config.get(
                "analysis.min_pair_samples", defaults.min_pair_samples
            ),
        )


DEFAULT_CONFIG: Dict[str, Any] = {
    "analysis": {
        "gap_threshold_ms": 5000,
        "top_n": 10,
        "min_segment_events": None,
        "min_hold_ms": None,
        "max_hold_ms": None,
        "min_pair_samples": 3,
    },
    "output": {
        "data_directory": "./data",
        "reports_directory": "./reports",
        "log_level": "INFO",
        "log_file": None,
    },
    "reporting": {
        "export_formats": ["json", "csv"],
    },
}


class ConfigManager:
    """Configuration management with validation."""

    def __init__(self, config_path: Union[str, Path] = "config.yaml"):
        self.config_path = Path(config_path)
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration and merge it over the defaults."""
        try:
            with open(self.config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logging.warning(f"Config file {self.config_path} not found, using defaults")
            return self._default_config()
        except yaml.YAMLError as e:
            logging.error(f"Error parsing config file: {e}")
            return self._default_config()

        if not isinstance(loaded, dict):
            logging.error(f"Config file {self.config_path} is not a mapping, using defaults")
            return self._default_config()

        config = self._default_config()
        for section, values in loaded.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values
        return config

    def _default_config(self) -> Dict[str, Any]:
        """Default configuration values."""
        return copy.deepcopy(DEFAULT_CONFIG)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with dot notation."""
        keys = key.split(".")
        value = self.config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return default if value is None else value


class DataManager:
    """JSON-file event store: buffered writes, time-windowed reads."""

    def __init__(self, data_dir: Union[str, Path] = "./data"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._buffer: List[KeyEvent] = []
        self._buffer_size = 10000

    def add_event(self, event: KeyEvent) -> None:
        """Add event to buffer."""
        self._buffer.append(event)
        if len(self._buffer) >= self._buffer_size:
            self.flush_buffer()

    def flush_buffer(self) -> Optional[Path]:
        """Save buffer to disk."""
        if not self._buffer:
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        filename = self.data_dir / f"keystrokes_{timestamp}.json"
        suffix = 1
        while filename.exists():
            filename = self.data_dir / f"keystrokes_{timestamp}_{suffix}.json"
            suffix += 1

        data = [event.to_dict() for event in self._buffer]
        with open(filename, "w") as f:
            json.dump(data, f, indent=2)

        logging.info(f"Saved {len(self._buffer)} key events to {filename}")
        self._buffer.clear()
        return filename

    def load_data(
        self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> List[KeyEvent]:
        """Load key events within date range, ordered by timestamp then log order."""
        events = []
        for file_path in sorted(self.data_dir.glob("keystrokes_*.json")):
            try:
                with open(file_path, "r") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logging.error(f"Error loading {file_path}: {e}")
                continue

            if isinstance(data, dict) and isinstance(data.get("events"), list):
                data = data["events"]
            if not isinstance(data, list):
                logging.error(f"Skipping {file_path}: expected a list of events")
                continue

            for item in data:
                if not isinstance(item, dict):
                    logging.error(f"Skipping unreadable record in {file_path}: {item!r}")
                    continue
                try:
                    event = KeyEvent.from_dict(item)
                except (KeyError, ValueError, TypeError) as e:
                    logging.error(f"Skipping unreadable record in {file_path}: {e}")
                    continue
                if self._in_date_range(event.timestamp, start_date, end_date):
                    events.append(event)

        return sorted(events, key=lambda x: x.timestamp)

    def load_data_since(self, days: int) -> List[KeyEvent]:
        """Load the last ``days`` days of events."""
        return self.load_data(start_date=datetime.now() - timedelta(days=days))

    def export_events_csv(self, events: List[KeyEvent], filename: Union[str, Path]) -> Path:
        """Export raw key events to CSV format."""
        filename = Path(filename)
        df = pd.DataFrame(
            [event.to_dict() for event in events],
            columns=["timestamp", "key", "kind", "app_context"],
        )
        df.to_csv(filename, index=False)
        logging.info(f"Exported {len(events)} events to {filename}")
        return filename

    def _in_date_range(
        self, timestamp: int, start: Optional[datetime], end: Optional[datetime]
    ) -> bool:
        """Check if a millisecond timestamp is within date range."""
        dt = datetime.fromtimestamp(timestamp / 1000)
        if start and dt < start:
            return False
        if end and dt > end:
            return False
        return True


def setup_logging(level: str = "INFO", log_file: Optional[Union[str, Path]] = None) -> None:
    """Configure logging for the application."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
