"""
Test cases for the build stores.
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from p4scm.core.exceptions import StoreError
from p4scm.core.models import BuildRevisionRecord, RevisionMarker
from p4scm.state import FileBuildStore, InMemoryBuildStore, RedisBuildStore, get_build_store


def make_record(build_id, change=105, job_name="project"):
    return BuildRevisionRecord(
        job_name=job_name,
        build_id=build_id,
        client="jenkins-node1-project",
        credential="builder",
        revision=RevisionMarker.at_change(change)
    )


@pytest.fixture(params=['memory', 'file'])
def any_store(request, tmp_path):
    if request.param == 'memory':
        return InMemoryBuildStore()
    return FileBuildStore(state_dir=str(tmp_path / "states"))


class TestBuildStore:
    """Behaviour shared by the local stores"""

    @pytest.mark.asyncio
    async def test_save_and_load_record(self, any_store):
        record = make_record(1)
        await any_store.save_record(record)

        loaded = await any_store.load_record("project", 1)

        assert loaded == record
        assert await any_store.load_record("project", 2) is None

    @pytest.mark.asyncio
    async def test_records_are_immutable(self, any_store):
        await any_store.save_record(make_record(1, change=101))

        with pytest.raises(ValueError, match="already has a revision record"):
            await any_store.save_record(make_record(1, change=105))

        assert (await any_store.load_record("project", 1)).revision.change == 101

    @pytest.mark.asyncio
    async def test_list_records_ordered_by_build(self, any_store):
        for build_id in (3, 1, 2):
            await any_store.save_record(make_record(build_id, change=100 + build_id))

        records = await any_store.list_records("project")

        assert [r.build_id for r in records] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_load_last_record_before(self, any_store):
        await any_store.save_record(make_record(1, change=101))
        await any_store.save_record(make_record(4, change=104))

        assert (await any_store.load_last_record("project")).build_id == 4
        assert (await any_store.load_last_record("project", before=4)).build_id == 1
        assert await any_store.load_last_record("project", before=1) is None
        assert await any_store.load_last_record("other") is None

    @pytest.mark.asyncio
    async def test_next_change_lifecycle(self, any_store):
        assert await any_store.load_next_change("project") is None

        await any_store.save_next_change("project", 101)
        await any_store.save_next_change("project", 103)
        assert await any_store.load_next_change("project") == 103

        await any_store.clear_next_change("project")
        assert await any_store.load_next_change("project") is None

    @pytest.mark.asyncio
    async def test_jobs_are_isolated(self, any_store):
        await any_store.save_record(make_record(1, job_name="a"))
        await any_store.save_next_change("a", 7)

        assert await any_store.list_records("b") == []
        assert await any_store.load_next_change("b") is None

    @pytest.mark.asyncio
    async def test_context_manager_keeps_state(self, any_store):
        async with any_store:
            await any_store.save_record(make_record(1))
        async with any_store:
            assert await any_store.load_record("project", 1) is not None


class TestFileBuildStore:
    """Test suite for FileBuildStore specifics"""

    @pytest.mark.asyncio
    async def test_layout_on_disk(self, tmp_path):
        store = FileBuildStore(state_dir=str(tmp_path))
        await store.save_record(make_record(1))
        await store.save_next_change("project", 103)

        with open(tmp_path / "project" / "builds.json") as f:
            builds = json.load(f)
        assert builds[0]['revision'] == {'kind': 'change', 'change': 105, 'label': None}
        with open(tmp_path / "project" / "next_change.json") as f:
            assert json.load(f) == {'next_change': 103}

    @pytest.mark.asyncio
    async def test_history_is_capped(self, tmp_path):
        store = FileBuildStore(state_dir=str(tmp_path), max_history=2)
        for build_id in (1, 2, 3):
            await store.save_record(make_record(build_id))

        assert [r.build_id for r in await store.list_records("project")] == [2, 3]

    @pytest.mark.asyncio
    async def test_state_survives_new_instance(self, tmp_path):
        await FileBuildStore(state_dir=str(tmp_path)).save_record(make_record(1))

        reopened = FileBuildStore(state_dir=str(tmp_path))

        assert (await reopened.load_record("project", 1)).revision.change == 105

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_empty(self, tmp_path):
        store = FileBuildStore(state_dir=str(tmp_path))
        (tmp_path / "project").mkdir()
        (tmp_path / "project" / "builds.json").write_text("{not json")

        assert await store.list_records("project") == []

    @pytest.mark.asyncio
    async def test_save_after_corruption_keeps_file(self, tmp_path):
        store = FileBuildStore(state_dir=str(tmp_path))
        builds_file = tmp_path / "project" / "builds.json"
        builds_file.parent.mkdir()
        builds_file.write_text("{not json")

        with pytest.raises(StoreError):
            await store.save_record(make_record(1))

        assert builds_file.read_text() == "{not json"

    @pytest.mark.asyncio
    async def test_writes_leave_no_temp_files(self, tmp_path):
        store = FileBuildStore(state_dir=str(tmp_path))

        await store.save_record(make_record(1))
        await store.save_next_change("project", 103)

        assert sorted(p.name for p in (tmp_path / "project").iterdir()) == ["builds.json", "next_change.json"]


class TestRedisBuildStore:
    """Test suite for RedisBuildStore against a mocked client"""

    @pytest.fixture
    def redis_mock(self):
        mock = MagicMock()
        mock.hsetnx = AsyncMock(return_value=1)
        mock.hget = AsyncMock(return_value=None)
        mock.hvals = AsyncMock(return_value=[])
        mock.set = AsyncMock()
        mock.get = AsyncMock(return_value=None)
        mock.delete = AsyncMock()
        mock.aclose = AsyncMock()
        return mock

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, redis_mock):
        store = RedisBuildStore(url="redis://redis:6379/1")

        with patch('p4scm.state.redis_store.aioredis.from_url', return_value=redis_mock) as mock_from_url:
            async with store:
                assert store.redis is redis_mock

        mock_from_url.assert_called_once()
        assert mock_from_url.call_args[0][0] == "redis://redis:6379/1"
        redis_mock.aclose.assert_awaited_once()
        assert store.redis is None

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        with pytest.raises(RuntimeError, match="not connected"):
            await RedisBuildStore().load_next_change("project")

    @pytest.mark.asyncio
    async def test_save_record_uses_hsetnx(self, redis_mock):
        store = RedisBuildStore(key_prefix="ci:")
        store.redis = redis_mock
        record = make_record(5)

        await store.save_record(record)

        key, field, value = redis_mock.hsetnx.call_args[0]
        assert key == "ci:project:builds"
        assert field == "5"
        assert BuildRevisionRecord.from_dict(json.loads(value)) == record

    @pytest.mark.asyncio
    async def test_duplicate_record_rejected(self, redis_mock):
        redis_mock.hsetnx.return_value = 0
        store = RedisBuildStore()
        store.redis = redis_mock

        with pytest.raises(ValueError):
            await store.save_record(make_record(5))

    @pytest.mark.asyncio
    async def test_list_records_sorted(self, redis_mock):
        redis_mock.hvals.return_value = [
            json.dumps(make_record(9).to_dict()),
            json.dumps(make_record(2).to_dict())
        ]
        store = RedisBuildStore()
        store.redis = redis_mock

        records = await store.list_records("project")

        assert [r.build_id for r in records] == [2, 9]

    @pytest.mark.asyncio
    async def test_next_change(self, redis_mock):
        redis_mock.get.return_value = "103"
        store = RedisBuildStore()
        store.redis = redis_mock

        await store.save_next_change("project", 103)
        assert await store.load_next_change("project") == 103
        await store.clear_next_change("project")

        redis_mock.set.assert_awaited_once_with("p4scm:project:next_change", "103")
        redis_mock.delete.assert_awaited_once_with("p4scm:project:next_change")


class TestGetBuildStore:
    """Test suite for the store factory"""

    def test_known_types(self, tmp_path):
        assert isinstance(get_build_store('memory', {}), InMemoryBuildStore)
        assert isinstance(get_build_store('FILE', {'state_dir': str(tmp_path)}), FileBuildStore)
        store = get_build_store('redis', {'redis_url': 'redis://r:6379', 'key_prefix': 'x:'})
        assert isinstance(store, RedisBuildStore)
        assert store.key_prefix == 'x:'

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unsupported store type"):
            get_build_store('sqlite', {})
