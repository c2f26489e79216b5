from typing import Optional

from .base import BaseRemoteClient, RemoteClientFactory
from .memory import InMemoryDepot, InMemoryRemoteClient
from .p4cli import P4CommandClient


def get_remote_client(
    client_type: str,
    credential: str,
    workspace: str,
    config: Optional[dict] = None,
    depot: Optional[InMemoryDepot] = None
) -> BaseRemoteClient:
    """
    Factory function to create remote client instances.

    Args:
        client_type: Type of client ('p4', 'memory')
        credential: Opaque credential reference
        workspace: Client workspace name
        config: Client settings (port, user, p4_bin, timeout, charset)
        depot: Shared depot for the 'memory' type

    Returns:
        Unconnected remote client
    """
    config = config or {}
    client_type = client_type.lower()

    if client_type == 'p4':
        return P4CommandClient(
            credential,
            workspace,
            port=config.get('port'),
            user=config.get('user'),
            p4_bin=config.get('p4_bin', 'p4'),
            timeout=config.get('timeout', 60.0),
            charset=config.get('charset'),
            check_login=config.get('check_login', True)
        )
    elif client_type == 'memory':
        return InMemoryRemoteClient(depot or InMemoryDepot(), credential, workspace)
    else:
        raise ValueError(f"Unsupported client type: {client_type}. Supported: 'p4', 'memory'")

__all__ = [
    'BaseRemoteClient',
    'RemoteClientFactory',
    'InMemoryDepot',
    'InMemoryRemoteClient',
    'P4CommandClient',
    'get_remote_client'
]
