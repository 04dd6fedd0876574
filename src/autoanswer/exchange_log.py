"""Bounded in-memory log of recent provider exchanges."""

from __future__ import annotations

import copy
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from .config import EXCHANGE_LOG_MAX_AGE_DAYS, EXCHANGE_LOG_MAX_ENTRIES


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExchangeEntry:
    timestamp: datetime
    kind: str
    ok: bool
    request: Dict[str, Any] = field(default_factory=dict)
    response: Optional[Any] = None
    error: Optional[str] = None
    elapsed_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind,
            "ok": self.ok,
            "request": self.request,
            "response": self.response,
            "error": self.error,
            "elapsed_ms": self.elapsed_ms,
        }


class ExchangeLog:
    """Keeps the newest ``max_entries`` exchanges younger than ``max_age``."""

    def __init__(
        self,
        max_entries: int = EXCHANGE_LOG_MAX_ENTRIES,
        max_age: timedelta = timedelta(days=EXCHANGE_LOG_MAX_AGE_DAYS),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_age = max_age
        self._clock = clock
        self._entries: Deque[ExchangeEntry] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(
        self,
        kind: str,
        *,
        ok: bool,
        request: Optional[Dict[str, Any]] = None,
        response: Optional[Any] = None,
        error: Optional[str] = None,
        elapsed_ms: Optional[float] = None,
    ) -> ExchangeEntry:
        entry = ExchangeEntry(
            timestamp=self._clock(),
            kind=kind,
            ok=ok,
            request=request or {},
            response=response,
            error=error,
            elapsed_ms=elapsed_ms,
        )
        self._prune(entry.timestamp)
        self._entries.append(entry)
        return entry

    def entries(self) -> List[ExchangeEntry]:
        self._prune(self._clock())
        return [copy.deepcopy(entry) for entry in self._entries]

    def _prune(self, now: datetime) -> None:
        cutoff = now - self.max_age
        while self._entries and self._entries[0].timestamp < cutoff:
            self._entries.popleft()
