"""Append one JSON line per completed generation to the interaction log."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

PACIFIC = ZoneInfo("America/Los_Angeles")


class InteractionLogWriter:
    """Persist prompt/result pairs as JSON lines."""

    def __init__(self, path: Path) -> None:
        self._path = path.resolve()

    @property
    def path(self) -> Path:
        return self._path

    async def write(
        self,
        *,
        kind: str,
        prompt: str,
        result: str,
        model: str,
        ip: str | None,
        session_id: int,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        timestamp = (now or datetime.now(timezone.utc)).astimezone(PACIFIC)
        entry = {
            "timestamp": timestamp.strftime("%m/%d/%Y, %I:%M:%S %p ")
            + (timestamp.tzname() or "PT"),
            "type": kind,
            "prompt": prompt,
            "result": result,
            "model": model,
            "ip": ip,
            "id": session_id,
        }
        line = json.dumps(entry, ensure_ascii=False) + "\n"
        await asyncio.to_thread(self._append_line, line)
        return entry

    def _append_line(self, content: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(content)


__all__ = ["InteractionLogWriter"]
