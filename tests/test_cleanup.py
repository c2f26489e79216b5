"""
Test cases for WorkspaceCleaner.
"""

import pytest
from unittest.mock import AsyncMock, patch
from p4scm.client import InMemoryRemoteClient
from p4scm.core.exceptions import RemoteError
from p4scm.core.models import BuildRevisionRecord, RevisionMarker
from p4scm.scm.cleanup import WorkspaceCleaner


async def record_build(store, client="jenkins-node1-project", build_id=1):
    await store.save_record(BuildRevisionRecord(
        job_name="project",
        build_id=build_id,
        client=client,
        credential="builder",
        revision=RevisionMarker.at_change(105)
    ))


class TestWorkspaceCleaner:
    """Test suite for unsyncing a workspace before deletion"""

    @pytest.mark.asyncio
    async def test_unsyncs_last_client(self, depot, store, client_factory):
        await record_build(store, client="ws-old", build_id=1)
        await record_build(store, client="ws-new", build_id=2)
        depot.have["ws-new"] = 105

        assert await WorkspaceCleaner("builder", store, client_factory).before_deletion("project") is True

        assert depot.sync_history == [("ws-new", RevisionMarker.at_change(0))]
        assert depot.have["ws-new"] == 0
        assert depot.connects == depot.disconnects == 1

    @pytest.mark.asyncio
    async def test_uses_forced_sync(self, store, client_factory):
        await record_build(store)

        with patch.object(InMemoryRemoteClient, 'sync', new_callable=AsyncMock) as mock_sync:
            await WorkspaceCleaner("builder", store, client_factory).before_deletion("project")

        target, populate = mock_sync.call_args[0]
        assert target == RevisionMarker.at_change(0)
        assert populate.force is True

    @pytest.mark.asyncio
    async def test_no_builds_still_allows_deletion(self, depot, store, client_factory):
        assert await WorkspaceCleaner("builder", store, client_factory).before_deletion("project") is True
        assert depot.connects == 0

    @pytest.mark.asyncio
    async def test_sync_failure_still_allows_deletion(self, depot, store, client_factory):
        await record_build(store)

        with patch.object(InMemoryRemoteClient, 'sync', new_callable=AsyncMock) as mock_sync:
            mock_sync.side_effect = RemoteError("Client unknown", command="sync")
            result = await WorkspaceCleaner("builder", store, client_factory).before_deletion("project")

        assert result is True
        assert depot.disconnects == 1

    @pytest.mark.asyncio
    async def test_store_failure_still_allows_deletion(self, store, client_factory):
        with patch.object(store, 'list_records', new_callable=AsyncMock) as mock_list:
            mock_list.side_effect = OSError("disk gone")
            result = await WorkspaceCleaner("builder", store, client_factory).before_deletion("project")

        assert result is True
