import logging

from ..client.base import RemoteClientFactory
from ..core.models import PopulateOptions, RevisionMarker
from ..state.base import BaseBuildStore


class WorkspaceCleaner:
    """Removes a job's files from its client workspace before the workspace is deleted"""

    def __init__(self, credential: str, store: BaseBuildStore, client_factory: RemoteClientFactory):
        self.credential = credential
        self.store = store
        self.client_factory = client_factory
        self.logger = logging.getLogger(__name__)

    async def before_deletion(self, job_name: str) -> bool:
        """
        Unsync the client used by the job's last build.

        Best effort: failures are logged and never block the deletion.

        Returns:
            Always True (deletion may proceed)
        """
        try:
            record = await self.store.load_last_record(job_name)
        except Exception as e:
            self.logger.warning(f"P4: Unable to read P4_CLIENT for {job_name}: {e}")
            return True

        if record is None:
            self.logger.warning(f"P4: Unable to read P4_CLIENT for {job_name}: no recorded builds")
            return True

        client = record.client
        try:
            async with self.client_factory(self.credential, client) as p4:
                self.logger.info(f"P4: unsyncing client: {client}")
                await p4.sync(RevisionMarker.at_change(0), PopulateOptions(force=True, quiet=False))
        except Exception as e:
            self.logger.warning(f"P4: Not able to unsync client: {client}: {e}")

        return True
