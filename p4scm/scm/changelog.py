"""
Changelog computation and serialization.
"""
import json
import logging
from pathlib import Path
from typing import List, Optional

from ..client.base import BaseRemoteClient
from ..core.models import ChangelogEntry, RevisionMarker
from .resolver import RevisionResolver

CHANGELOG_VERSION = 1


class ChangelogComputer:
    """Lists the changelists a build picked up since an earlier revision"""

    def __init__(self, client: BaseRemoteClient, resolver: Optional[RevisionResolver] = None):
        self.client = client
        self.resolver = resolver or RevisionResolver(client)
        self.logger = logging.getLogger(__name__)

    async def delta(
        self,
        from_marker: Optional[RevisionMarker],
        to_marker: RevisionMarker
    ) -> List[ChangelogEntry]:
        """
        Changes after from_marker up to and including to_marker.

        Args:
            from_marker: Revision of the previous build, None if there is none
            to_marker: Revision of this build

        Returns:
            Entries in server order (newest first). Without a previous
            revision the changelog is just to_marker itself.
        """
        if from_marker is None:
            return [await self.entry_for(to_marker)]

        from_change = await self.resolver.to_change_number(from_marker)
        if from_change is None:
            self.logger.warning(f"Could not resolve previous revision {from_marker}, listing from 0")
            from_change = 0

        upper = None if to_marker.is_head else to_marker.value
        changes = await self.client.list_changes(from_change, upper)

        entries = []
        for change in changes:
            if not isinstance(change, int):
                self.logger.debug(f"Ignoring non-change entry {change!r}")
                continue
            changelist = await self.client.get_changelist(change)
            entries.append(ChangelogEntry(
                revision=RevisionMarker.at_change(change),
                changelist=changelist
            ))

        self.logger.info(f"Changelog {from_marker} -> {to_marker}: {len(entries)} changes")
        return entries

    async def entry_for(self, marker: RevisionMarker) -> ChangelogEntry:
        """Single changelog entry for a revision, with detail where it maps to a change"""
        change = await self.resolver.to_change_number(marker)
        if change is None:
            return ChangelogEntry(revision=marker)
        changelist = await self.client.get_changelist(change)
        return ChangelogEntry(revision=marker, changelist=changelist)


class ChangelogWriter:
    """Reads and writes a build's changelog file"""

    @staticmethod
    def store(path: Path, entries: List[ChangelogEntry]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            'version': CHANGELOG_VERSION,
            'entries': [e.to_dict() for e in entries]
        }
        with open(path, 'w') as f:
            json.dump(payload, f, indent=2)
        return path

    @staticmethod
    def load(path: Path) -> List[ChangelogEntry]:
        path = Path(path)
        if not path.exists():
            return []

        with open(path, 'r') as f:
            payload = json.load(f)

        version = payload.get('version')
        if version != CHANGELOG_VERSION:
            raise ValueError(f"Unsupported changelog version {version} in {path}")
        return [ChangelogEntry.from_dict(e) for e in payload.get('entries', [])]
