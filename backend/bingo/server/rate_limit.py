"""Per-connection inbound frame throttle."""

import time


class TokenBucket:
    """Token bucket refilled continuously at ``rate`` tokens per second.

    The bucket starts full at ``burst`` tokens. Each accepted frame spends one.
    """

    def __init__(self, rate: float, burst: int) -> None:
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_refill = time.monotonic()

    @property
    def tokens(self) -> float:
        return self._tokens

    def _refill(self) -> None:
        now = time.monotonic()
        gained = (now - self._last_refill) * self._rate
        self._tokens = min(float(self._burst), self._tokens + gained)
        self._last_refill = now

    def consume(self) -> bool:
        """Spend one token. False means the frame should be rejected."""
        self._refill()
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True
