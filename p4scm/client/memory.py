import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import yaml

from ..core.enums import FileAction
from ..core.exceptions import RemoteError
from ..core.models import (
    Changelist,
    ChangelistFile,
    LabelInfo,
    PopulateOptions,
    RevisionMarker
)
from ..core.workspace import WorkspaceTemplate
from .base import BaseRemoteClient


class InMemoryDepot:
    """
    Process-local model of a versioning server.

    Holds submitted changelists, labels and the have-state of each client
    workspace. Shared by every InMemoryRemoteClient opened against it.
    """

    def __init__(self):
        self.changes: Dict[int, Changelist] = {}
        self.labels: Dict[str, LabelInfo] = {}
        self.label_changes: Dict[str, int] = {}  # highest change tagged by a spec-less label
        self.have: Dict[str, int] = {}
        self.workspaces: Dict[str, Dict[str, Any]] = {}
        self.drifted: Set[str] = set()
        self.sync_history: List[Tuple[str, RevisionMarker]] = []
        self.connects = 0
        self.disconnects = 0
        self.lock = asyncio.Lock()

    def submit(
        self,
        change: int,
        author: str,
        files: Iterable[str],
        description: str = ""
    ) -> Changelist:
        """Add a submitted changelist touching the given depot paths"""
        changelist = Changelist(
            id=change,
            author=author,
            description=description or f"change {change}",
            submitted_at=datetime.now(timezone.utc).isoformat(),
            files=[ChangelistFile(depot_path=p, action=FileAction.EDIT) for p in files]
        )
        self.changes[change] = changelist
        return changelist

    def add_label(
        self,
        name: str,
        revision_spec: Optional[str] = None,
        change: Optional[int] = None
    ):
        """
        Create a label.

        Args:
            name: Label name
            revision_spec: Automatic label spec such as '@1234'
            change: For static labels, the highest change the label tags
        """
        self.labels[name] = LabelInfo(name=name, revision_spec=revision_spec)
        if change is not None:
            self.label_changes[name] = change

    def mark_drifted(self, client: str):
        """Simulate files in a workspace diverging from its have list"""
        self.drifted.add(client)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InMemoryDepot':
        """
        Build a depot from its YAML form::

            changes:
              - {change: 101, author: alice, files: [//depot/main/a.c]}
            labels:
              - {name: release-1, revision_spec: "@101"}
            have:
              jenkins-node1-project: 101
        """
        depot = cls()
        for entry in data.get('changes') or []:
            depot.submit(
                int(entry['change']),
                entry.get('author', ''),
                entry.get('files') or [],
                entry.get('description', '')
            )
        for entry in data.get('labels') or []:
            depot.add_label(entry['name'], entry.get('revision_spec'), entry.get('change'))
        for client, change in (data.get('have') or {}).items():
            depot.have[client] = int(change)
        return depot

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'InMemoryDepot':
        with open(yaml_path, 'r') as f:
            return cls.from_dict(yaml.safe_load(f) or {})

    @property
    def head(self) -> int:
        return max(self.changes) if self.changes else 0

    def resolve_bound(self, spec: Optional[str]) -> int:
        """Highest change number a revision specifier covers"""
        if spec is None or spec == "":
            return self.head

        text = str(spec).lstrip('@')
        if text.isdigit():
            return int(text)
        if text == "now":
            return self.head

        label = self.labels.get(text)
        if label is None:
            raise RemoteError(f"Invalid changelist/client/label/date '@{text}'.", command="changes")

        if label.revision_spec:
            bound = label.revision_spec.lstrip('@')
            if bound.isdigit():
                return int(bound)
            raise RemoteError(f"Invalid revision spec '{label.revision_spec}' on label {text}.")
        return self.label_changes.get(text, 0)


class InMemoryRemoteClient(BaseRemoteClient):
    """
    Remote client backed by an InMemoryDepot.

    Used for tests and dry runs ('memory' client type).
    """

    def __init__(self, depot: InMemoryDepot, credential: str, workspace: str):
        super().__init__(credential, workspace)
        self.depot = depot
        self.connected = False

    async def connect(self):
        self.connected = True
        self.depot.connects += 1

    async def disconnect(self):
        if self.connected:
            self.connected = False
            self.depot.disconnects += 1

    def _ensure_connected(self):
        if not self.connected:
            raise RuntimeError("Client not connected. Call connect() first.")

    async def list_synced_revisions(self) -> List[int]:
        self._ensure_connected()
        have = self.depot.have.get(self.workspace, 0)
        return sorted(c for c in self.depot.changes if c <= have)

    async def list_changes(
        self,
        from_revision: int,
        to: Optional[str] = None
    ) -> List[Union[int, str]]:
        self._ensure_connected()
        upper = self.depot.resolve_bound(to)
        return sorted(
            (c for c in self.depot.changes if from_revision < c <= upper),
            reverse=True
        )

    async def get_changelist(self, change: int) -> Changelist:
        self._ensure_connected()
        changelist = self.depot.changes.get(change)
        if changelist is None:
            raise RemoteError(f"Change {change} unknown.", command="describe")
        return changelist

    async def is_workspace_stale(self) -> bool:
        self._ensure_connected()
        if self.workspace in self.depot.drifted:
            return True
        return self.depot.have.get(self.workspace, 0) < self.depot.head

    async def save_workspace(self, workspace: WorkspaceTemplate):
        self._ensure_connected()
        self.depot.workspaces[workspace.full_name] = {
            'root': workspace.expand(workspace.root),
            'view': workspace.expanded_view(),
            'stream': workspace.expand(workspace.stream)
        }

    async def sync(self, target: RevisionMarker, populate: PopulateOptions) -> bool:
        self._ensure_connected()
        async with self.depot.lock:
            if target.is_head:
                bound = self.depot.head
            elif target.is_change:
                bound = target.change
            else:
                bound = self.depot.resolve_bound(target.to_spec())

            if populate.have_list:
                self.depot.have[self.workspace] = bound
            self.depot.drifted.discard(self.workspace)
            self.depot.sync_history.append((self.workspace, target))

        self.logger.debug(f"Synced {self.workspace} to {target} (@{bound})")
        return True

    async def get_label(self, name: str) -> Optional[LabelInfo]:
        self._ensure_connected()
        return self.depot.labels.get(name)

    async def get_latest_change(self, spec: Optional[str] = None) -> Optional[int]:
        self._ensure_connected()
        upper = self.depot.resolve_bound(spec)
        candidates = [c for c in self.depot.changes if c <= upper]
        return max(candidates) if candidates else None
