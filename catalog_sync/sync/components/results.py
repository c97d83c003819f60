# catalog_sync/sync/components/results.py
from __future__ import annotations

import asyncio
from typing import Any, Dict

from catalog_sync.models import ReconciliationResult

_COUNTERS = {"created", "updated", "skipped", "not_found", "failed", "warnings", "attempted", "processed"}


class ResultAccumulator:
    """
    Lock-guarded counters + bounded samples shared by concurrent workers.
    The wrapped result is only handed out once the workers are done.
    """

    def __init__(self, result: ReconciliationResult):
        self.result = result
        self._lock = asyncio.Lock()

    async def record(self, counter: str, sample: Dict[str, Any] | None = None, *, bucket: str | None = None) -> None:
        if counter not in _COUNTERS:
            raise KeyError(counter)
        async with self._lock:
            setattr(self.result, counter, getattr(self.result, counter) + 1)
            if sample is not None:
                self.result.add_sample(bucket or counter, sample)

    async def snapshot(self) -> Dict[str, Any]:
        async with self._lock:
            return self.result.to_dict()
