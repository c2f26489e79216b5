from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Union
import logging

from ..core.models import Changelist, LabelInfo, PopulateOptions, RevisionMarker
from ..core.workspace import WorkspaceTemplate


class BaseRemoteClient(ABC):
    """
    Connection to the versioning server, bound to one credential and one client workspace.

    One instance is one connection. Use it as an async context manager so the
    connection is released on every exit path::

        async with factory(credential, client_name) as p4:
            have = await p4.list_synced_revisions()
    """

    def __init__(self, credential: str, workspace: str):
        """
        Args:
            credential: Opaque credential reference (e.g. 'user@ssl:perforce:1666')
            workspace: Client workspace name the commands run against
        """
        self.credential = credential
        self.workspace = workspace
        self.logger = logging.getLogger(__name__)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False

    @abstractmethod
    async def connect(self):
        """Open the connection (login if needed)"""
        pass

    @abstractmethod
    async def disconnect(self):
        """Close the connection and release resources"""
        pass

    @abstractmethod
    async def list_synced_revisions(self) -> List[int]:
        """
        Changelists currently synced into the workspace (the have list).

        Returns:
            Change numbers in ascending order, empty if never synced
        """
        pass

    @abstractmethod
    async def list_changes(
        self,
        from_revision: int,
        to: Optional[str] = None
    ) -> List[Union[int, str]]:
        """
        Submitted changes in the workspace view after from_revision.

        Args:
            from_revision: Exclusive lower bound (0 for all history)
            to: Inclusive upper bound as a change number or label; None for head

        Returns:
            Change identifiers, newest first
        """
        pass

    @abstractmethod
    async def get_changelist(self, change: int) -> Changelist:
        """Full detail of a submitted changelist"""
        pass

    @abstractmethod
    async def is_workspace_stale(self) -> bool:
        """True if a sync to head would modify the workspace"""
        pass

    @abstractmethod
    async def save_workspace(self, workspace: WorkspaceTemplate):
        """
        Create or update the client spec from an expanded workspace.

        The root, view and stream of the template replace the server's;
        other spec fields are left as they are.
        """
        pass

    @abstractmethod
    async def sync(self, target: RevisionMarker, populate: PopulateOptions) -> bool:
        """
        Synchronize the workspace to target.

        A CHANGE marker of 0 removes every file from the workspace.

        Returns:
            True if the sync completed
        """
        pass

    @abstractmethod
    async def get_label(self, name: str) -> Optional[LabelInfo]:
        """Label spec, or None if no such label exists"""
        pass

    @abstractmethod
    async def get_latest_change(self, spec: Optional[str] = None) -> Optional[int]:
        """
        Highest submitted change in the workspace view.

        Args:
            spec: Optional revision specifier bounding the query (e.g. '@my-label')
        """
        pass


# (credential, workspace name) -> unconnected client
RemoteClientFactory = Callable[[str, str], BaseRemoteClient]
