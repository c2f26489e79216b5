"""
Test cases for build environment export and workspace variable expansion.
"""

import pytest
from unittest.mock import AsyncMock, patch
from p4scm.client import InMemoryRemoteClient
from p4scm.core.exceptions import RemoteError
from p4scm.core.models import BuildRevisionRecord, RevisionMarker
from p4scm.core.workspace import WorkspaceTemplate, expand_variables
from p4scm.scm.environment import build_env_vars


def make_record(revision, client="jenkins-node1-project"):
    return BuildRevisionRecord(
        job_name="project",
        build_id=1,
        client=client,
        credential="builder",
        revision=revision
    )


class TestBuildEnvVars:
    """Test suite for build_env_vars"""

    @pytest.mark.asyncio
    async def test_change_revision(self):
        env = await build_env_vars(make_record(RevisionMarker.at_change(105)))

        assert env == {'P4_CHANGELIST': '105', 'P4_CLIENT': 'jenkins-node1-project'}

    @pytest.mark.asyncio
    async def test_no_record(self):
        assert await build_env_vars(None) == {}

    @pytest.mark.asyncio
    async def test_head_revision_exports_client_only(self):
        env = await build_env_vars(make_record(RevisionMarker.head()))

        assert env == {'P4_CLIENT': 'jenkins-node1-project'}

    @pytest.mark.asyncio
    async def test_label_with_change_spec(self, depot, client_factory):
        depot.add_label("release-1", revision_spec="@103")

        env = await build_env_vars(make_record(RevisionMarker.at_label("release-1")), client_factory)

        assert env['P4_CHANGELIST'] == '103'
        assert depot.connects == depot.disconnects == 1

    @pytest.mark.asyncio
    async def test_label_without_spec_exports_name(self, depot, client_factory):
        depot.add_label("nightly", change=103)

        env = await build_env_vars(make_record(RevisionMarker.at_label("nightly")), client_factory)

        assert env['P4_CHANGELIST'] == 'nightly'

    @pytest.mark.asyncio
    async def test_label_lookup_error_exports_name(self, depot, client_factory):
        with patch.object(InMemoryRemoteClient, 'connect', new_callable=AsyncMock) as mock_connect:
            mock_connect.side_effect = RemoteError("Connect to server failed")
            env = await build_env_vars(make_record(RevisionMarker.at_label("release-1")), client_factory)

        assert env == {'P4_CHANGELIST': 'release-1', 'P4_CLIENT': 'jenkins-node1-project'}

    @pytest.mark.asyncio
    async def test_label_without_factory(self):
        env = await build_env_vars(make_record(RevisionMarker.at_label("release-1")))

        assert env['P4_CHANGELIST'] == 'release-1'


class TestExpandVariables:
    """Test suite for ${VAR} expansion"""

    @pytest.mark.parametrize("text,expected", [
        ("jenkins-${NODE_NAME}-${JOB_NAME}", "jenkins-node1-project"),
        ("$NODE_NAME/build", "node1/build"),
        ("keep-${UNKNOWN}", "keep-${UNKNOWN}"),
        ("plain", "plain"),
        ("", ""),
        (None, None),
    ])
    def test_expand(self, text, expected):
        env = {'NODE_NAME': 'node1', 'JOB_NAME': 'project'}
        assert expand_variables(text, env) == expected


class TestWorkspaceTemplate:
    """Test suite for WorkspaceTemplate"""

    def test_clone_is_independent(self):
        template = WorkspaceTemplate(name="ws-${JOB_NAME}", view=["//depot/... //${P4_CLIENT}/..."])
        build = template.clone()

        build.load({'JOB_NAME': 'project', 'P4_CLIENT': 'ws-project'})

        assert build.full_name == "ws-project"
        assert template.full_name == "ws-${JOB_NAME}"
        assert template.variables == {}

    def test_clear_drops_previous_build(self):
        workspace = WorkspaceTemplate(name="ws-${JOB_NAME}")
        workspace.load({'JOB_NAME': 'one'})

        workspace.clear()
        workspace.load({'OTHER': 'x'})

        assert workspace.full_name == "ws-${JOB_NAME}"

    def test_dict_form(self):
        workspace = WorkspaceTemplate(name="ws", root="/build", view=["//depot/... //ws/..."])

        assert WorkspaceTemplate.from_dict(workspace.to_dict()) == workspace
