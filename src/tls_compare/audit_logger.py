"""
Structured run log for the TLS stack comparison tool.

Every entry is written as a JSON object, a human-readable line, or both,
and only when its level reaches the configured minimum. The log goes to
stderr so that stdout stays reserved for the live result mirror.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TextIO

from tls_compare.enums import LogLevel


OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class LogEntry:
    """One emitted log record."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }


class AuditLogger:
    """
    Leveled logger with JSON and/or text rendering.

    Emitted entries can be retained (``entries``) so tests and the CLI can
    inspect what a run reported.
    """

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.INFO,
        keep_entries: bool = True,
    ):
        """
        Args:
            output_format: One of 'json', 'text' or 'both'
            output_stream: Where lines are written (sys.stderr when None)
            min_level: Lowest level that is emitted
            keep_entries: Retain emitted entries in memory
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown log output format: {output_format}")

        self._format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = min_level
        self._keep_entries = keep_entries
        self._entries: list[LogEntry] = []

    @classmethod
    def from_config(
        cls,
        level: str,
        output_format: str,
        output_stream: Optional[TextIO] = None,
        keep_entries: bool = False,
    ) -> "AuditLogger":
        """Build a logger from the ``logging`` section of the run configuration."""
        return cls(
            output_format=output_format,
            output_stream=output_stream,
            min_level=LogLevel(level),
            keep_entries=keep_entries,
        )

    @property
    def output_format(self) -> str:
        return self._format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level.rank >= self._min_level.rank

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Emit one entry.

        Returns:
            The emitted LogEntry, or None when ``level`` is below the minimum
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=dict(data or {}),
        )
        if self._keep_entries:
            self._entries.append(entry)

        self._write(entry)
        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[BaseException] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """Emit an ERROR entry describing ``error``; structured errors add their ``to_dict``."""
        data = dict(additional_data or {})

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            to_dict = getattr(error, "to_dict", None)
            if callable(to_dict):
                data["error"] = to_dict()

        return self.log(LogLevel.ERROR, component, message, data)

    def _write(self, entry: LogEntry) -> None:
        lines = []
        if self._format != "text":
            lines.append(self.format_json(entry))
        if self._format != "json":
            lines.append(self.format_text(entry))

        for line in lines:
            self._stream.write(line + "\n")
        self._stream.flush()

    def format_json(self, entry: LogEntry) -> str:
        return json.dumps(entry.to_dict(), ensure_ascii=False, default=str)

    def format_text(self, entry: LogEntry) -> str:
        # [timestamp] LEVEL [component] message {data}
        line = f"[{entry.timestamp}] {entry.level.value.upper()} [{entry.component}] {entry.message}"
        if entry.data:
            line += " " + json.dumps(entry.data, ensure_ascii=False, default=str)
        return line

    def clear_entries(self) -> None:
        self._entries.clear()
