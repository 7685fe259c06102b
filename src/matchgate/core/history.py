"""Bounded log of admitted joins, kept for diagnostics and tests.

A ring buffer: once ``limit`` records are held, each append evicts the
oldest and bumps ``dropped``.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

from matchgate.models.join import JoinRecord


class JoinHistory:
    def __init__(self, limit: int = 1000) -> None:
        if limit < 1:
            msg = f"history limit must be at least 1, got {limit}"
            raise ValueError(msg)
        self._records: deque[JoinRecord] = deque(maxlen=limit)
        self._dropped = 0

    @property
    def limit(self) -> int:
        return self._records.maxlen or 0

    @property
    def dropped(self) -> int:
        return self._dropped

    def append(self, record: JoinRecord) -> None:
        if len(self._records) == self.limit:
            self._dropped += 1
        self._records.append(record)

    def records(self) -> tuple[JoinRecord, ...]:
        return tuple(self._records)

    def for_request(self, request_id: str) -> list[JoinRecord]:
        """Joins that filled slots of the given backfill request."""
        return [r for r in self._records if r.backfill_request_id == request_id]

    def for_candidate(self, candidate_id: str) -> list[JoinRecord]:
        return [r for r in self._records if r.candidate_id == candidate_id]

    def clear(self) -> None:
        self._records.clear()
        self._dropped = 0

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[JoinRecord]:
        return iter(tuple(self._records))
