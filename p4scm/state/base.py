from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.models import BuildRevisionRecord


class BaseBuildStore(ABC):
    """
    Per-job, per-build key-value store for build revision state.

    Checkout writes one BuildRevisionRecord per build; polling, changelog
    computation, environment export and workspace cleanup read them back.
    The per-change boundary computed by polling is kept here as well, so
    checkout reads it explicitly rather than through a shared filter object.
    """

    @abstractmethod
    async def save_record(self, record: BuildRevisionRecord):
        """
        Persist a build's record.

        Raises:
            ValueError: If the build already has a record (records are immutable)
        """
        pass

    @abstractmethod
    async def load_record(self, job_name: str, build_id: int) -> Optional[BuildRevisionRecord]:
        pass

    @abstractmethod
    async def list_records(self, job_name: str) -> List[BuildRevisionRecord]:
        """All records of a job, ordered by build id"""
        pass

    async def load_last_record(
        self,
        job_name: str,
        before: Optional[int] = None
    ) -> Optional[BuildRevisionRecord]:
        """
        Most recent record of a job.

        Args:
            job_name: Job name
            before: Only consider builds with a lower id than this
        """
        records = await self.list_records(job_name)
        if before is not None:
            records = [r for r in records if r.build_id < before]
        return records[-1] if records else None

    @abstractmethod
    async def save_next_change(self, job_name: str, change: int):
        pass

    @abstractmethod
    async def load_next_change(self, job_name: str) -> Optional[int]:
        pass

    @abstractmethod
    async def clear_next_change(self, job_name: str):
        pass

    async def connect(self):
        """Initialize connection (for external stores like Redis)"""
        pass

    async def disconnect(self):
        """Close connection and cleanup resources"""
        pass

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False
