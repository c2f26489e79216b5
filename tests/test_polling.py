"""
Test cases for PollingEngine.
"""

import pytest
from unittest.mock import AsyncMock, patch
from p4scm.client import InMemoryRemoteClient
from p4scm.core.enums import PollResult, PollReason
from p4scm.core.exceptions import RemoteError
from p4scm.core.models import BuildRevisionRecord, RevisionMarker
from p4scm.scm.checkout import CheckoutOrchestrator
from p4scm.scm.polling import PollingEngine

CLIENT_NAME = "jenkins-node1-project"


class TestPollingDecision:
    """Test suite for the build-now / no-changes decision"""

    @pytest.mark.asyncio
    async def test_never_synced_workspace_sees_all_changes(self, make_config, store, client_factory, client_env):
        engine = PollingEngine(make_config(), store, client_factory)

        decision = await engine.poll(env=client_env)

        assert decision.result == PollResult.BUILD_NOW
        assert decision.reasons == [PollReason.NEW_CHANGES, PollReason.WORKSPACE_STALE]
        assert decision.changes == [105, 103, 101]
        assert decision.baseline == 0
        assert decision.client == CLIENT_NAME
        assert decision.next_change is None

    @pytest.mark.asyncio
    async def test_synced_workspace_has_no_changes(self, depot, make_config, store, client_factory, client_env):
        depot.have[CLIENT_NAME] = 105
        engine = PollingEngine(make_config(), store, client_factory)

        decision = await engine.poll(env=client_env)

        assert decision.result == PollResult.NO_CHANGES
        assert decision.baseline == 105
        assert decision.changes == []
        assert decision.error is None

    @pytest.mark.asyncio
    async def test_polling_twice_is_idempotent(self, depot, make_config, store, client_factory, client_env):
        depot.have[CLIENT_NAME] = 105
        engine = PollingEngine(make_config(), store, client_factory)

        first = await engine.poll(env=client_env)
        second = await engine.poll(env=client_env)

        assert first.result == PollResult.NO_CHANGES
        assert second.result == PollResult.NO_CHANGES

    @pytest.mark.asyncio
    async def test_filtered_changes_only_report_stale_workspace(self, depot, make_config, store, client_factory, client_env):
        """Filtered changes add nothing, but the workspace is still behind head"""
        depot.have[CLIENT_NAME] = 101
        config = make_config(filters=[
            {'type': 'user', 'user': 'BOB'},
            {'type': 'path', 'path': '//depot/main/'},
        ])
        engine = PollingEngine(config, store, client_factory)

        decision = await engine.poll(env=client_env)

        assert decision.changes == []
        assert decision.result == PollResult.BUILD_NOW
        assert decision.reasons == [PollReason.WORKSPACE_STALE]

    @pytest.mark.asyncio
    async def test_stale_until_synced_to_head(self, depot, client_factory):
        depot.have[CLIENT_NAME] = 103
        async with client_factory("builder", CLIENT_NAME) as p4:
            assert await p4.is_workspace_stale() is True

        depot.have[CLIENT_NAME] = 105
        async with client_factory("builder", CLIENT_NAME) as p4:
            assert await p4.is_workspace_stale() is False

    @pytest.mark.asyncio
    async def test_path_filter_keeps_partially_excluded_change(self, depot, make_config, store, client_factory, client_env):
        depot.have[CLIENT_NAME] = 101
        config = make_config(filters=[{'type': 'path', 'path': '//depot/main/docs/'}])
        engine = PollingEngine(config, store, client_factory)

        decision = await engine.poll(env=client_env)

        # 103 only touches docs, 105 also touches src
        assert decision.changes == [105]
        assert decision.build_now

    @pytest.mark.asyncio
    async def test_stale_workspace_forces_build(self, depot, make_config, store, client_factory, client_env):
        """Drift triggers a build even with no new changelists"""
        depot.have[CLIENT_NAME] = 105
        depot.mark_drifted(CLIENT_NAME)
        engine = PollingEngine(make_config(), store, client_factory)

        decision = await engine.poll(env=client_env)

        assert decision.result == PollResult.BUILD_NOW
        assert decision.reasons == [PollReason.WORKSPACE_STALE]
        assert decision.changes == []

    @pytest.mark.asyncio
    async def test_pin_bounds_the_query(self, depot, make_config, store, client_factory, client_env):
        depot.add_label("release", revision_spec="@103")
        engine = PollingEngine(make_config(pin="${RELEASE}"), store, client_factory)

        decision = await engine.poll(env={**client_env, 'RELEASE': 'release'})

        assert decision.changes == [103, 101]

    @pytest.mark.asyncio
    async def test_non_integer_entries_ignored(self, depot, make_config, store, client_factory, client_env):
        engine = PollingEngine(make_config(), store, client_factory)

        with patch.object(InMemoryRemoteClient, 'list_changes', new_callable=AsyncMock) as mock_changes:
            mock_changes.return_value = [105, "release", 101]
            decision = await engine.poll(env=client_env)

        assert decision.changes == [105, 101]


class TestPollingClient:
    """Test suite for client name lookup and connection handling"""

    @pytest.mark.asyncio
    async def test_client_from_previous_build(self, depot, make_config, store, client_factory):
        """The previous build's client wins over the polling environment"""
        depot.have["jenkins-node7-project"] = 105
        await store.save_record(BuildRevisionRecord(
            job_name="project",
            build_id=1,
            client="jenkins-node7-project",
            credential="builder",
            revision=RevisionMarker.at_change(105)
        ))
        engine = PollingEngine(make_config(), store, client_factory)

        decision = await engine.poll(env={'P4_CLIENT': 'something-else'})

        assert decision.client == "jenkins-node7-project"
        assert decision.result == PollResult.NO_CHANGES

    @pytest.mark.asyncio
    async def test_missing_client_reports_no_changes(self, depot, make_config, store, client_factory):
        engine = PollingEngine(make_config(), store, client_factory)

        decision = await engine.poll(env={})

        assert decision.result == PollResult.NO_CHANGES
        assert decision.failed
        assert depot.connects == 0

    @pytest.mark.asyncio
    async def test_remote_error_reports_no_changes_and_disconnects(self, depot, make_config, store, client_factory, client_env):
        engine = PollingEngine(make_config(), store, client_factory)

        with patch.object(InMemoryRemoteClient, 'get_changelist', new_callable=AsyncMock) as mock_describe:
            mock_describe.side_effect = RemoteError("TCP receive failed", command="describe")
            decision = await engine.poll(env=client_env)

        assert decision.result == PollResult.NO_CHANGES
        assert "TCP receive failed" in decision.error
        assert depot.connects == 1
        assert depot.disconnects == 1

    @pytest.mark.asyncio
    async def test_connection_released_on_success(self, depot, make_config, store, client_factory, client_env):
        engine = PollingEngine(make_config(), store, client_factory)

        await engine.poll(env=client_env)

        assert depot.connects == depot.disconnects == 1


class TestPerChangeGate:
    """Test suite for per-change gating"""

    @pytest.mark.asyncio
    async def test_lowest_change_becomes_next_boundary(self, make_config, store, client_factory, client_env):
        config = make_config(filters=[{'type': 'per_change'}])
        engine = PollingEngine(config, store, client_factory)

        decision = await engine.poll(env=client_env)

        assert decision.changes == [105, 103, 101]
        assert decision.next_change == 101
        assert await store.load_next_change("project") == 101

    @pytest.mark.asyncio
    async def test_disabled_gate_sets_nothing(self, make_config, store, client_factory, client_env):
        config = make_config(filters=[{'type': 'per_change', 'enabled': False}])
        engine = PollingEngine(config, store, client_factory)

        decision = await engine.poll(env=client_env)

        assert decision.next_change is None
        assert await store.load_next_change("project") is None

    @pytest.mark.asyncio
    async def test_gate_walks_one_change_per_build(self, depot, tmp_path, make_config, store, client_factory, client_env):
        """Poll/checkout cycles build 101, then 103, then 105"""
        config = make_config(filters=[{'type': 'per_change'}])
        engine = PollingEngine(config, store, client_factory)
        orchestrator = CheckoutOrchestrator(config, store, client_factory, changelog_dir=str(tmp_path))

        built = []
        for build_id in (1, 2, 3):
            decision = await engine.poll(env=client_env)
            assert decision.build_now
            result = await orchestrator.checkout(build_id, client_env)
            built.append(result.record.revision.change)

        assert built == [101, 103, 105]
        final = await engine.poll(env=client_env)
        assert final.result == PollResult.NO_CHANGES


class TestMonotonicBaseline:
    """Test suite for baseline progression across builds"""

    @pytest.mark.asyncio
    async def test_checkout_moves_baseline(self, depot, tmp_path, make_config, store, client_factory, client_env):
        config = make_config()
        engine = PollingEngine(config, store, client_factory)
        orchestrator = CheckoutOrchestrator(config, store, client_factory, changelog_dir=str(tmp_path))

        assert (await engine.poll(env=client_env)).build_now
        result = await orchestrator.checkout(1, client_env)
        assert result.record.revision == RevisionMarker.at_change(105)

        decision = await engine.poll(env=client_env)
        assert decision.baseline == 105
        assert decision.result == PollResult.NO_CHANGES

        depot.submit(107, "dave", ["//depot/main/src/new.c"])
        decision = await engine.poll(env=client_env)
        assert decision.baseline == 105
        assert decision.changes == [107]
