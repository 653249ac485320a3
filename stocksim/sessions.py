"""Session tokens resolving a presented credential to a user id."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from collections.abc import Callable

from stocksim.errors import SessionExpiredError, UnauthorizedError


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


class SessionManager:
    """Issues and verifies HMAC-SHA256 signed session tokens.

    Token layout is ``<payload>.<signature>``, both url-safe base64; the
    payload is JSON with the user id and an expiry in epoch seconds.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = 7 * 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Session secret cannot be empty")
        self._secret = secret.encode("utf-8")
        self._ttl = ttl_seconds
        self._clock = clock

    def issue(self, user_id: str) -> str:
        payload = {"user_id": user_id, "exp": int(self._clock()) + self._ttl}
        body = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return f"{body}.{self._sign(body)}"

    def resolve(self, token: str | None) -> str:
        """Return the user id carried by ``token``.

        Raises:
            UnauthorizedError: If the token is missing, malformed or forged
            SessionExpiredError: If the token is past its expiry
        """
        if not token:
            raise UnauthorizedError()
        body, _, signature = token.partition(".")
        if not body or not signature:
            raise UnauthorizedError()
        if not hmac.compare_digest(signature, self._sign(body)):
            raise UnauthorizedError()
        try:
            payload = json.loads(_b64decode(body))
            user_id = str(payload["user_id"])
            expires_at = int(payload["exp"])
        except (binascii.Error, ValueError, KeyError, TypeError) as exc:
            raise UnauthorizedError() from exc
        if self._clock() >= expires_at:
            raise SessionExpiredError()
        return user_id

    def _sign(self, body: str) -> str:
        digest = hmac.new(self._secret, body.encode("utf-8"), hashlib.sha256).digest()
        return _b64encode(digest)
