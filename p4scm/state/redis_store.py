import json
import logging
from typing import List, Optional

from redis import asyncio as aioredis

from ..core.models import BuildRevisionRecord
from .base import BaseBuildStore


class RedisBuildStore(BaseBuildStore):
    """
    Redis-backed build store, shared by every poller and build node.

    Keys::

        <prefix><job>:builds        hash  build_id -> record JSON
        <prefix><job>:next_change   string
    """

    def __init__(
        self,
        url: str = 'redis://localhost:6379',
        key_prefix: str = 'p4scm:',
        max_connections: int = 10
    ):
        self.url = url
        self.key_prefix = key_prefix
        self.max_connections = max_connections
        self.redis: Optional[aioredis.Redis] = None
        self.logger = logging.getLogger(__name__)

    def _builds_key(self, job_name: str) -> str:
        return f"{self.key_prefix}{job_name}:builds"

    def _next_change_key(self, job_name: str) -> str:
        return f"{self.key_prefix}{job_name}:next_change"

    def _ensure_connected(self):
        if not self.redis:
            raise RuntimeError("Redis not connected. Call connect() first.")

    async def connect(self):
        self.redis = aioredis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self.max_connections
        )

    async def disconnect(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def save_record(self, record: BuildRevisionRecord):
        self._ensure_connected()
        created = await self.redis.hsetnx(
            self._builds_key(record.job_name),
            str(record.build_id),
            json.dumps(record.to_dict())
        )
        if not created:
            raise ValueError(
                f"Build {record.job_name}#{record.build_id} already has a revision record"
            )
        self.logger.info(
            f"Recorded revision {record.revision} for {record.job_name}#{record.build_id}"
        )

    async def load_record(self, job_name: str, build_id: int) -> Optional[BuildRevisionRecord]:
        self._ensure_connected()
        data = await self.redis.hget(self._builds_key(job_name), str(build_id))
        if data is None:
            return None
        return BuildRevisionRecord.from_dict(json.loads(data))

    async def list_records(self, job_name: str) -> List[BuildRevisionRecord]:
        self._ensure_connected()
        values = await self.redis.hvals(self._builds_key(job_name))
        records = [BuildRevisionRecord.from_dict(json.loads(v)) for v in values]
        return sorted(records, key=lambda r: r.build_id)

    async def save_next_change(self, job_name: str, change: int):
        self._ensure_connected()
        await self.redis.set(self._next_change_key(job_name), str(change))

    async def load_next_change(self, job_name: str) -> Optional[int]:
        self._ensure_connected()
        value = await self.redis.get(self._next_change_key(job_name))
        return int(value) if value is not None else None

    async def clear_next_change(self, job_name: str):
        self._ensure_connected()
        await self.redis.delete(self._next_change_key(job_name))
