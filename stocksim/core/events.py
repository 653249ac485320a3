"""Event payloads shared by the activity log and telemetry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class SuspiciousActivityKind(str, Enum):
    """Kinds of anomalous requests retained for review."""

    INVALID_QUANTITY = "INVALID_QUANTITY"
    INVALID_PRICE = "INVALID_PRICE"
    RAPID_TRADING = "RAPID_TRADING"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    FAILED_LOGIN = "FAILED_LOGIN"


@dataclass(frozen=True, slots=True)
class SuspiciousActivityEvent:
    """A logged signal of an anomalous or invalid request.

    ``identifier`` is a user id for trade checks and a client identifier
    (address, username) for login and rate-limit checks.
    """

    identifier: str
    kind: SuspiciousActivityKind
    detail: dict[str, object]
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class DiagnosticEvent:
    """Telemetry message for instrumentation warnings/info."""

    level: str
    message: str
    timestamp: datetime
    context: dict[str, object] | None = None
