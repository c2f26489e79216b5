import asyncio
from typing import Dict, List, Optional

from ..core.models import BuildRevisionRecord
from .base import BaseBuildStore


class InMemoryBuildStore(BaseBuildStore):
    """
    Build store held in process memory.

    Async-safe with a single asyncio.Lock; state is lost on exit.
    """

    def __init__(self):
        self.lock = asyncio.Lock()
        self._records: Dict[str, Dict[int, BuildRevisionRecord]] = {}
        self._next_changes: Dict[str, int] = {}

    async def save_record(self, record: BuildRevisionRecord):
        async with self.lock:
            builds = self._records.setdefault(record.job_name, {})
            if record.build_id in builds:
                raise ValueError(
                    f"Build {record.job_name}#{record.build_id} already has a revision record"
                )
            builds[record.build_id] = record

    async def load_record(self, job_name: str, build_id: int) -> Optional[BuildRevisionRecord]:
        async with self.lock:
            return self._records.get(job_name, {}).get(build_id)

    async def list_records(self, job_name: str) -> List[BuildRevisionRecord]:
        async with self.lock:
            builds = self._records.get(job_name, {})
            return [builds[k] for k in sorted(builds)]

    async def save_next_change(self, job_name: str, change: int):
        async with self.lock:
            self._next_changes[job_name] = change

    async def load_next_change(self, job_name: str) -> Optional[int]:
        async with self.lock:
            return self._next_changes.get(job_name)

    async def clear_next_change(self, job_name: str):
        async with self.lock:
            self._next_changes.pop(job_name, None)
