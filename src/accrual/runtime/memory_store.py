from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Tuple

Json = Dict[str, Any]


class MemoryPoolStore:
    """
    Process-local pool store used for unit tests and ephemeral dev pools.

    Same surface as SqlitePoolStore:
      exists(), read(participant_ids), update(mut, participant_ids), iter_participants()

    update() is copy-on-write: mut() runs against a private copy of the pool
    record and the requested participants, and nothing is published unless
    it returns without raising.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pool: Optional[Json] = None
        self._participants: Dict[str, Json] = {}

    def _snapshot(self, participant_ids: Iterable[str]) -> Json:
        parts: Json = {}
        for pid in participant_ids:
            rec = self._participants.get(pid)
            if rec is not None:
                parts[pid] = copy.deepcopy(rec)
        return {
            "pool": copy.deepcopy(self._pool) if self._pool is not None else {},
            "participants": parts,
        }

    def exists(self) -> bool:
        with self._lock:
            return self._pool is not None

    def read(self, participant_ids: Iterable[str] = ()) -> Json:
        with self._lock:
            return self._snapshot(participant_ids)

    def update(self, mut: Callable[[Json], Any], *, participant_ids: Iterable[str] = ()) -> Any:
        with self._lock:
            working = self._snapshot(participant_ids)
            out = mut(working)

            pool = working.get("pool")
            if not isinstance(pool, dict):
                raise ValueError("pool record is not a dict")
            parts = working.get("participants")
            if not isinstance(parts, dict):
                raise ValueError("participants is not a dict")

            self._pool = pool
            for pid, rec in parts.items():
                self._participants[str(pid)] = rec
            return out

    def iter_participants(self) -> Iterator[Tuple[str, Json]]:
        with self._lock:
            items = [(pid, copy.deepcopy(rec)) for pid, rec in sorted(self._participants.items())]
        return iter(items)
