"""Telemetry helpers for publishing diagnostic messages to operators."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Protocol

from loguru import logger

from stocksim.core.events import DiagnosticEvent


class TelemetrySink(Protocol):
    """Protocol implemented by telemetry sinks."""

    def emit(self, event: DiagnosticEvent) -> None: ...


class LogTelemetrySink:
    """Emit telemetry entries to loguru logger."""

    def emit(self, event: DiagnosticEvent) -> None:
        logger.log(event.level.upper(), "[telemetry] {} {}", event.message, event.context or "")


class FileTelemetrySink:
    """Append telemetry entries to a JSON lines file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: DiagnosticEvent) -> None:
        record = asdict(event)
        record["timestamp"] = event.timestamp.isoformat()
        record["context"] = sanitize(record.get("context"))
        with self._path.open("a", encoding="utf-8") as handle:
            json.dump(record, handle, separators=(",", ":"))
            handle.write("\n")


def sanitize(value: object) -> object:
    """Convert telemetry context values into JSON-friendly primitives."""
    if value is None:
        return None
    if isinstance(value, dict):
        return {str(k): sanitize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


class TelemetryReporter:
    """Emit telemetry messages to registered sinks.

    A failing sink is logged and skipped so that reporting never breaks the
    operation being reported on.
    """

    def __init__(self, *sinks: TelemetrySink) -> None:
        if sinks:
            self._sinks: list[TelemetrySink] = list(sinks)
        else:
            self._sinks = [LogTelemetrySink()]

    def info(self, message: str, *, context: dict[str, object] | None = None) -> None:
        self._emit("INFO", message, context=context)

    def warning(self, message: str, *, context: dict[str, object] | None = None) -> None:
        self._emit("WARNING", message, context=context)

    def error(self, message: str, *, context: dict[str, object] | None = None) -> None:
        self._emit("ERROR", message, context=context)

    def _emit(self, level: str, message: str, *, context: dict[str, object] | None) -> None:
        event = DiagnosticEvent(
            level=level.upper(),
            message=message,
            timestamp=datetime.now(tz=UTC),
            context=context,
        )
        for sink in list(self._sinks):
            try:
                sink.emit(event)
            except Exception as exc:
                logger.warning("Telemetry sink {} failed: {}", type(sink).__name__, exc)


def build_telemetry_reporter(
    *,
    log_sink: bool = True,
    file_path: Path | None = None,
) -> TelemetryReporter:
    """Utility constructor assembling common telemetry sinks."""

    sinks: list[TelemetrySink] = []
    if log_sink:
        sinks.append(LogTelemetrySink())
    if file_path is not None:
        sinks.append(FileTelemetrySink(file_path))
    return TelemetryReporter(*sinks)
