"""
Environment variables exported to a build from its revision record.
"""
import logging
from typing import Dict, Optional

from ..client.base import RemoteClientFactory
from ..core.models import BuildRevisionRecord
from .resolver import RevisionResolver

CHANGELIST_VARIABLE = "P4_CHANGELIST"
CLIENT_VARIABLE = "P4_CLIENT"

logger = logging.getLogger(__name__)


async def build_env_vars(
    record: Optional[BuildRevisionRecord],
    client_factory: Optional[RemoteClientFactory] = None
) -> Dict[str, str]:
    """
    Variables describing the revision a build was synced to.

    Label revisions are looked up on the server so that P4_CHANGELIST holds
    the label's change number when it has one; if the lookup cannot be made
    the label name is exported instead.

    Args:
        record: The build's revision record, None if it has none
        client_factory: Used to open a connection for label lookups

    Returns:
        Dict with P4_CHANGELIST and P4_CLIENT where known
    """
    env: Dict[str, str] = {}
    if record is None:
        return env

    revision = record.revision
    if revision.is_label and client_factory is not None:
        try:
            async with client_factory(record.credential, record.client) as p4:
                env[CHANGELIST_VARIABLE] = await RevisionResolver(p4).change_string(revision)
        except Exception as e:
            logger.warning(f"P4: Could not look up label {revision.label}: {e}")
            env[CHANGELIST_VARIABLE] = revision.value
    elif revision.value:
        env[CHANGELIST_VARIABLE] = revision.value

    if record.client:
        env[CLIENT_VARIABLE] = record.client

    return env
