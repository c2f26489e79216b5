"""
Resolves symbolic revision pins into revision markers.
"""
import logging
from typing import Mapping, Optional, Union

from ..client.base import BaseRemoteClient
from ..core.models import RevisionMarker
from ..core.workspace import expand_variables


class RevisionResolver:
    """Turns pins (label, change number or empty) into RevisionMarkers"""

    def __init__(self, client: BaseRemoteClient):
        """
        Initialize resolver.

        Args:
            client: Connected remote client used for label lookups
        """
        self.client = client
        self.logger = logging.getLogger(__name__)

    async def resolve(
        self,
        pin: Union[int, str, None],
        env: Optional[Mapping[str, str]] = None
    ) -> RevisionMarker:
        """
        Resolve a pin against the server.

        The pin is variable-expanded first. Numbers pass straight through;
        labels are looked up and replaced by their '@<change>' spec when they
        have one. Lookup failures keep the raw label name. Never raises.

        Args:
            pin: Configured pin, may contain ${VAR} placeholders
            env: Workspace environment used for expansion

        Returns:
            HEAD, CHANGE or LABEL marker
        """
        if isinstance(pin, str):
            pin = expand_variables(pin, env or {})

        marker = RevisionMarker.parse(pin)
        if not marker.is_label:
            return marker

        name = marker.label[1:] if marker.label.startswith('@') else marker.label
        try:
            label = await self.client.get_label(name)
        except Exception as e:
            self.logger.warning(f"Label lookup failed for '{name}', using it as-is: {e}")
            return marker

        if label is None:
            self.logger.debug(f"'{name}' is not a label, using it as-is")
            return marker

        spec = (label.revision_spec or "").strip()
        if not spec:
            # a label, but no revision spec: sync by label
            return marker

        number = spec[1:] if spec.startswith('@') else spec
        if number.isdigit():
            self.logger.debug(f"Label {name} resolves to change {number}")
            return RevisionMarker.at_change(int(number))

        self.logger.warning(f"Label {name} has unsupported revision spec '{spec}', syncing by label")
        return marker

    async def to_change_number(self, marker: RevisionMarker) -> Optional[int]:
        """
        Concrete change number behind a marker.

        Labels without a numeric spec map to the highest change they contain,
        HEAD to the latest submitted change. Returns None if nothing matches.
        """
        if marker.is_change:
            return marker.change

        if marker.is_label:
            resolved = await self.resolve(marker.label)
            if resolved.is_change:
                return resolved.change

        return await self.client.get_latest_change(marker.to_spec() or None)

    async def change_string(self, marker: RevisionMarker) -> str:
        """
        Value exported as the build's changelist.

        The change number where the label spec gives one, else the label name.
        """
        if marker.is_label:
            resolved = await self.resolve(marker.label)
            return resolved.value
        return marker.value
