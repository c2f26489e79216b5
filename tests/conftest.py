"""Pytest configuration and fixtures for p4scm tests."""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
import pytest
import logging

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from p4scm.client import InMemoryDepot, InMemoryRemoteClient
from p4scm.config.config_loader import ScmConfig, ScmConfigLoader
from p4scm.state import InMemoryBuildStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CLIENT_NAME = "jenkins-node1-project"


@pytest.fixture
def depot() -> InMemoryDepot:
    """Depot with three submitted changes: 101, 103, 105."""
    depot = InMemoryDepot()
    depot.submit(101, "alice", ["//depot/main/src/app.c"])
    depot.submit(103, "bob", ["//depot/main/docs/readme.txt"])
    depot.submit(105, "carol", ["//depot/main/src/app.c", "//depot/main/docs/guide.txt"])
    return depot


@pytest.fixture
def store() -> InMemoryBuildStore:
    return InMemoryBuildStore()


@pytest.fixture
def client_factory(depot):
    """Factory opening in-memory clients against the shared depot."""
    def factory(credential: str, workspace: str) -> InMemoryRemoteClient:
        return InMemoryRemoteClient(depot, credential, workspace)
    return factory


@pytest.fixture
def client_env() -> Dict[str, str]:
    """Build environment as injected by the build host."""
    return {
        'NODE_NAME': 'node1',
        'JOB_NAME': 'project',
        'P4_CLIENT': CLIENT_NAME,
    }


@pytest.fixture
def make_config():
    """Build a job ScmConfig from keyword overrides."""
    def _make(
        filters: Optional[List[Dict[str, Any]]] = None,
        pin: Optional[str] = None,
        **overrides
    ) -> ScmConfig:
        data = {
            'name': 'project',
            'credential': 'builder@perforce:1666',
            'workspace': {
                'name': 'jenkins-${NODE_NAME}-${JOB_NAME}',
                'view': ['//depot/main/... //${P4_CLIENT}/...'],
            },
            'filters': filters or [],
            'populate': {'pin': pin} if pin else {},
        }
        data.update(overrides)
        return ScmConfigLoader.load_from_dict(data)
    return _make
