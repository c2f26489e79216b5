"""
Builds remote clients and build stores from the global configuration.
"""
from typing import Optional

from ..client import InMemoryDepot, get_remote_client
from ..client.base import BaseRemoteClient, RemoteClientFactory
from ..state import BaseBuildStore, get_build_store
from .global_config_loader import GlobalConfig


def create_client_factory(
    global_config: GlobalConfig,
    depot: Optional[InMemoryDepot] = None
) -> RemoteClientFactory:
    """
    Create a factory opening one remote client per (credential, workspace).

    Args:
        global_config: Loaded global configuration
        depot: Shared depot when the server client_type is 'memory'; defaults to
            one loaded from server.depot_file, or an empty one
    """
    server = global_config.server
    options = server.client_options()
    if server.client_type == 'memory' and depot is None:
        # seeded once per process; syncs are not written back
        depot = InMemoryDepot.from_yaml(server.depot_file) if server.depot_file else InMemoryDepot()

    def factory(credential: str, workspace: str) -> BaseRemoteClient:
        return get_remote_client(server.client_type, credential, workspace, options, depot)

    return factory


def create_build_store(global_config: GlobalConfig) -> BaseBuildStore:
    """Create the build store configured under 'storage'"""
    storage = global_config.storage
    return get_build_store(storage.type, storage.store_options())
