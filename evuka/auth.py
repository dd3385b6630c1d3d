"""Sign-in helpers: failed-attempt rate limiting and error messages."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from .errors import AuthenticationError, RateLimitError

if TYPE_CHECKING:
    from .config import AuthConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


@dataclass
class _Attempts:
    count: int = 0
    first_failure: float = 0.0


class LoginRateLimiter:
    """Count failed sign-ins per key and lock the key out once over the limit.

    The counter clears when the window since the first failure elapses or
    when a sign-in succeeds. State lives in memory only.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_attempts = max_attempts
        self._window = window_seconds
        self._clock = clock
        self._attempts: dict[str, _Attempts] = {}

    @classmethod
    def from_config(cls, config: AuthConfig) -> LoginRateLimiter:
        return cls(
            max_attempts=config.max_login_attempts,
            window_seconds=config.lockout_seconds,
        )

    def _current(self, key: str) -> _Attempts | None:
        entry = self._attempts.get(key)
        if entry is not None and self._clock() - entry.first_failure >= self._window:
            del self._attempts[key]
            return None
        return entry

    def remaining(self, key: str) -> int:
        entry = self._current(key)
        used = entry.count if entry else 0
        return max(self._max_attempts - used, 0)

    def check(self, key: str) -> None:
        """Raise RateLimitError if ``key`` is locked out."""
        entry = self._current(key)
        if entry is None or entry.count < self._max_attempts:
            return
        retry_after = self._window - (self._clock() - entry.first_failure)
        logger.warning("Sign-in rate limited for %s", key)
        raise RateLimitError(
            f"Too many failed sign-in attempts. Please try again in "
            f"{int(retry_after) + 1} seconds.",
            retry_after=retry_after,
        )

    def _prune(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, entry in self._attempts.items()
            if now - entry.first_failure >= self._window
        ]
        for key in expired:
            del self._attempts[key]

    def record_failure(self, key: str) -> int:
        """Count a failed attempt. Returns the failures inside the window."""
        self._prune()
        entry = self._attempts.get(key)
        if entry is None:
            entry = self._attempts[key] = _Attempts(first_failure=self._clock())
        entry.count += 1
        return entry.count

    def record_success(self, key: str) -> None:
        self._attempts.pop(key, None)

    async def attempt(self, key: str, action: Callable[[], Awaitable[T]]) -> T:
        """Run a sign-in action under the limiter.

        A failing action counts against ``key`` and its error is re-raised.
        """
        self.check(key)
        try:
            result = await action()
        except AuthenticationError:
            self.record_failure(key)
            raise
        self.record_success(key)
        return result


def validate_credentials(email: str, password: str) -> None:
    """Reject obviously malformed sign-in input before calling the provider."""
    if not email or not password:
        raise AuthenticationError("Please enter both email and password")
    if not _EMAIL_RE.match(email):
        raise AuthenticationError("Please enter a valid email address")


def format_auth_error(exc: BaseException) -> str:
    """Map a provider error to a message suitable for a sign-in form."""
    if isinstance(exc, RateLimitError):
        return exc.user_message

    message = str(exc)
    lower = message.lower()
    if "invalid login credentials" in lower or "invalid password" in lower:
        return "Invalid email or password. Please try again."
    if "email not confirmed" in lower:
        return "Please verify your email address before signing in."
    if "rate limit" in lower or "too many" in lower:
        return "Too many attempts. Please try again later."
    return message or "Failed to sign in"
