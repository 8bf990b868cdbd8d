"""Process-wide store of prior turns used to build a bounded context window."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionEntry:
    """One prior user/assistant exchange."""

    user: str
    assistant: str

    def as_messages(self) -> list[dict[str, Any]]:
        return [
            {"role": "user", "content": self.user},
            {"role": "assistant", "content": self.assistant},
        ]


class SessionStore:
    """Append-only mapping from session id to the turn it contributes.

    The turn produced by request ``n`` is stored under ``n + 1`` so that the
    next request sees it at the top of its window.
    """

    def __init__(self, window: int = 3) -> None:
        self.window = max(0, window)
        self._entries: dict[int, SessionEntry] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entries)

    def allocate(self) -> int:
        """Return a fresh, process-unique session id."""

        return next(self._ids)

    def get(self, key: int) -> SessionEntry | None:
        return self._entries.get(key)

    def record(self, session_id: int, user: str, assistant: str) -> None:
        # Blank replies are skipped; an assistant turn with no content is rejected upstream.
        if not assistant.strip():
            logger.debug("Not recording empty turn for session %s", session_id)
            return
        self._entries[session_id + 1] = SessionEntry(user=user, assistant=assistant)

    def context_for(
        self, session_id: int, prior_id: Optional[int] = None
    ) -> list[dict[str, Any]]:
        """Return the most recent turns as chat messages, oldest first."""

        anchor = prior_id + 1 if prior_id is not None else session_id
        messages: list[dict[str, Any]] = []
        for key in range(anchor - self.window + 1, anchor + 1):
            entry = self._entries.get(key)
            if entry is not None:
                messages.extend(entry.as_messages())
        return messages


__all__ = ["SessionEntry", "SessionStore"]
