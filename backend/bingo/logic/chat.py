"""Chat moderation: slow mode, length cap, term masking and a bounded log."""

import re
import time
from collections import deque
from collections.abc import Iterable

from pydantic import BaseModel, Field

from bingo.logic.exceptions import RateLimitedError


class ChatEntry(BaseModel):
    """A stored chat line. client_id is kept so a ban can purge the sender's lines."""

    sender: str
    text: str
    is_host: bool = False
    is_system: bool = False
    client_id: str | None = Field(default=None, exclude=True)


class ChatLog:
    """Room transcript capped at `limit` entries; the oldest are evicted first."""

    def __init__(self, limit: int = 50) -> None:
        self._entries: deque[ChatEntry] = deque(maxlen=limit)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: ChatEntry) -> None:
        self._entries.append(entry)

    def purge_client(self, client_id: str) -> int:
        """Remove every entry sent by `client_id`. Returns how many were removed."""
        kept = [entry for entry in self._entries if entry.client_id != client_id]
        removed = len(self._entries) - len(kept)
        self._entries.clear()
        self._entries.extend(kept)
        return removed

    @property
    def entries(self) -> list[ChatEntry]:
        return list(self._entries)


class ChatModerator:
    def __init__(
        self,
        cooldown_seconds: float = 10,
        max_length: int = 200,
        disallowed_terms: Iterable[str] = (),
    ) -> None:
        self._cooldown_seconds = cooldown_seconds
        self._max_length = max_length
        terms = sorted({t.strip() for t in disallowed_terms if t.strip()}, key=len, reverse=True)
        # longest first so an overlapping shorter term cannot split a longer match
        self._pattern = re.compile("|".join(re.escape(t) for t in terms), re.IGNORECASE) if terms else None

    def check_cooldown(self, last_sent_at: float | None, now: float | None = None) -> None:
        """Raise RateLimitedError if the sender is still inside slow mode.

        A rejected attempt does not restart the cooldown; the caller only
        records a new timestamp for accepted messages.
        """
        if last_sent_at is None:
            return
        now = time.monotonic() if now is None else now
        remaining = self._cooldown_seconds - (now - last_sent_at)
        if remaining > 0:
            raise RateLimitedError(remaining)

    def sanitize(self, text: str) -> str:
        """Truncate to the length cap, then mask disallowed terms with same-length `*` runs."""
        text = text[: self._max_length]
        if self._pattern is None:
            return text
        return self._pattern.sub(lambda m: "*" * len(m.group(0)), text)
