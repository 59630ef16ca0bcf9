"""
Repository: in-memory storage for parse jobs.

This file contains only storage code. Jobs live in a dict keyed by
job id and guarded by a lock, because FastAPI runs sync routes on a
thread pool. Keep business rules (limits, eviction order, status
shaping) out of this module; they belong to `ParseService`.
"""

import threading
from typing import Any, Dict, List, Optional


class JobRepo:
    """Storage only. No business logic here.

    Responsibilities:
    - Keep job objects by id
    - Hand back jobs in insertion order so callers can evict the oldest
    """

    def __init__(self):
        self._jobs: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def add(self, job_id: str, job: Any) -> None:
        with self._lock:
            self._jobs[job_id] = job

    def get(self, job_id: str) -> Optional[Any]:
        with self._lock:
            return self._jobs.get(job_id)

    def remove(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def all(self) -> List[Any]:
        """Jobs oldest first."""

        with self._lock:
            return list(self._jobs.values())

    def count(self) -> int:
        with self._lock:
            return len(self._jobs)
