"""Request-scoped deadline threaded through every suspension point."""

import asyncio
import time

from relcis.core.exceptions import DeadlineExceeded


class Deadline:
    """Absolute monotonic deadline for one top-level operation.

    Waits never exceed ``remaining()``; once it reaches zero the next
    ``check()`` raises ``DeadlineExceeded``.
    """

    def __init__(self, seconds: float | None):
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> float:
        if self._expires_at is None:
            return float("inf")
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, what: str = "operation") -> None:
        if self.expired:
            raise DeadlineExceeded(f"Deadline exceeded during {what}")

    def timeout_ms(self, cap_ms: int) -> int:
        """Playwright timeout for the next wait, capped by the deadline.

        Playwright reads 0 as "no timeout", so under a millisecond left
        counts as expired.
        """
        self.check()
        remaining_ms = self.remaining() * 1000
        if remaining_ms < 1:
            raise DeadlineExceeded("Deadline exceeded before the next wait")
        return int(min(cap_ms, remaining_ms))

    def timeout_s(self, cap_s: float) -> float:
        self.check()
        return min(cap_s, self.remaining())

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` but never past the deadline."""
        self.check("backoff")
        await asyncio.sleep(min(seconds, self.remaining()))
        self.check("backoff")
