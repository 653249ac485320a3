"""Suspicious-activity sink and per-client request rate limiting."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from collections.abc import Callable
from datetime import UTC, datetime

from loguru import logger

from stocksim.core.events import SuspiciousActivityEvent, SuspiciousActivityKind
from stocksim.core.telemetry import TelemetryReporter
from stocksim.errors import RateLimitExceededError


class SuspiciousActivityLog:
    """Retains the most recent suspicious-activity events for review.

    Recording is fire-and-forget: telemetry sinks swallow their own failures,
    and nothing here blocks or locks out the offending identifier. Once
    ``max_events`` are held the oldest are dropped; the telemetry file keeps
    the full history.
    """

    def __init__(
        self,
        *,
        telemetry: TelemetryReporter | None = None,
        max_events: int = 10_000,
    ) -> None:
        if max_events <= 0:
            raise ValueError("max_events must be positive")
        self._telemetry = telemetry
        self._events: deque[SuspiciousActivityEvent] = deque(maxlen=max_events)

    def record(
        self,
        identifier: str,
        kind: SuspiciousActivityKind,
        detail: dict[str, object] | None = None,
    ) -> SuspiciousActivityEvent:
        event = SuspiciousActivityEvent(
            identifier=identifier,
            kind=kind,
            detail=dict(detail or {}),
            timestamp=datetime.now(tz=UTC),
        )
        self._events.append(event)
        logger.warning("Suspicious activity {} from {}: {}", kind.value, identifier, event.detail)
        if self._telemetry is not None:
            self._telemetry.warning(
                f"Suspicious activity: {kind.value}",
                context={"identifier": identifier, **event.detail},
            )
        return event

    def events(
        self,
        *,
        identifier: str | None = None,
        kind: SuspiciousActivityKind | None = None,
    ) -> list[SuspiciousActivityEvent]:
        return [
            event
            for event in self._events
            if (identifier is None or event.identifier == identifier)
            and (kind is None or event.kind == kind)
        ]

    def __len__(self) -> int:
        return len(self._events)


class RequestRateLimiter:
    """Sliding-window request counter keyed by client identifier.

    Clients idle for a whole window are forgotten on the next sweep, which
    runs at most once per window.
    """

    def __init__(
        self,
        activity: SuspiciousActivityLog,
        *,
        limit: int = 100,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self._activity = activity
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._requests: dict[str, deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def check(self, client_id: str, *, path: str | None = None) -> None:
        """Count one request for ``client_id``.

        Raises:
            RateLimitExceededError: If the client exceeded the window limit.
        """
        now = self._clock()
        if now - self._last_sweep >= self._window:
            self._sweep(now)
        requests = self._requests[client_id]
        while requests and now - requests[0] >= self._window:
            requests.popleft()
        requests.append(now)
        if len(requests) > self._limit:
            self._activity.record(
                client_id,
                SuspiciousActivityKind.RATE_LIMIT_EXCEEDED,
                {"path": path, "count": len(requests)},
            )
            raise RateLimitExceededError()

    def _sweep(self, now: float) -> None:
        idle = [
            client_id
            for client_id, requests in self._requests.items()
            if not requests or now - requests[-1] >= self._window
        ]
        for client_id in idle:
            del self._requests[client_id]
        self._last_sweep = now
        if idle:
            logger.debug("Rate limiter dropped {} idle clients", len(idle))
