"""
File-backed build store.
Keeps one directory per job with the build records and the per-change boundary.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional
from threading import Lock

from ..core.exceptions import StoreError
from ..core.models import BuildRevisionRecord
from .base import BaseBuildStore


class FileBuildStore(BaseBuildStore):
    """
    Persists build records to disk as JSON.

    Layout::

        <state_dir>/<job>/builds.json        # list of records, oldest first
        <state_dir>/<job>/next_change.json   # per-change boundary
    """

    def __init__(self, state_dir: str = "./data/build_states", max_history: int = 100):
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.max_history = max_history
        self._locks: Dict[str, Lock] = {}
        self.logger = logging.getLogger(__name__)

    def _get_lock(self, job_name: str) -> Lock:
        """Get or create a lock for a specific job"""
        if job_name not in self._locks:
            self._locks[job_name] = Lock()
        return self._locks[job_name]

    def _get_job_dir(self, job_name: str) -> Path:
        job_dir = self.state_dir / job_name
        job_dir.mkdir(parents=True, exist_ok=True)
        return job_dir

    def _get_builds_file(self, job_name: str) -> Path:
        return self._get_job_dir(job_name) / "builds.json"

    def _get_next_change_file(self, job_name: str) -> Path:
        return self._get_job_dir(job_name) / "next_change.json"

    def _read_builds(self, job_name: str, strict: bool = False) -> List[Dict]:
        """
        Read a job's records. Unreadable files read as empty unless strict,
        so that an update never overwrites history it could not parse.
        """
        builds_file = self._get_builds_file(job_name)
        if not builds_file.exists():
            return []
        try:
            with open(builds_file, 'r') as f:
                return json.load(f)
        except Exception as e:
            if strict:
                raise StoreError(f"Cannot read build records for {job_name} from {builds_file}: {e}") from e
            self.logger.error(f"Error reading build records for {job_name}: {e}")
            return []

    def _write_json(self, path: Path, data):
        """Replace path atomically (temp file in the same directory, then os.replace)"""
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    async def save_record(self, record: BuildRevisionRecord):
        with self._get_lock(record.job_name):
            builds = self._read_builds(record.job_name, strict=True)
            if any(b.get('build_id') == record.build_id for b in builds):
                raise ValueError(
                    f"Build {record.job_name}#{record.build_id} already has a revision record"
                )

            builds.append(record.to_dict())
            builds.sort(key=lambda b: b['build_id'])
            builds = builds[-self.max_history:]

            self._write_json(self._get_builds_file(record.job_name), builds)

        self.logger.info(
            f"Recorded revision {record.revision} for {record.job_name}#{record.build_id}"
        )

    async def load_record(self, job_name: str, build_id: int) -> Optional[BuildRevisionRecord]:
        with self._get_lock(job_name):
            builds = self._read_builds(job_name)
        for data in builds:
            if data.get('build_id') == build_id:
                return BuildRevisionRecord.from_dict(data)
        return None

    async def list_records(self, job_name: str) -> List[BuildRevisionRecord]:
        with self._get_lock(job_name):
            builds = self._read_builds(job_name)
        return [BuildRevisionRecord.from_dict(b) for b in builds]

    async def save_next_change(self, job_name: str, change: int):
        with self._get_lock(job_name):
            self._write_json(self._get_next_change_file(job_name), {'next_change': change})
        self.logger.debug(f"Next change for {job_name} -> {change}")

    async def load_next_change(self, job_name: str) -> Optional[int]:
        next_file = self._get_next_change_file(job_name)
        if not next_file.exists():
            return None

        with self._get_lock(job_name):
            try:
                with open(next_file, 'r') as f:
                    return json.load(f).get('next_change')
            except Exception as e:
                self.logger.error(f"Error reading next change for {job_name}: {e}")
                return None

    async def clear_next_change(self, job_name: str):
        next_file = self._get_next_change_file(job_name)
        with self._get_lock(job_name):
            if next_file.exists():
                next_file.unlink()
