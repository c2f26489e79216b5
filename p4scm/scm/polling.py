"""
Decides whether pending server changes warrant a new build.
"""
import logging
from typing import Mapping, Optional

from ..client.base import BaseRemoteClient, RemoteClientFactory
from ..config.config_loader import ScmConfig
from ..core.enums import PollReason
from ..core.exceptions import MissingEnvironmentError
from ..core.filters import find_gate, should_exclude
from ..core.models import PollDecision
from ..core.workspace import expand_variables
from ..state.base import BaseBuildStore

CLIENT_VARIABLE = "P4_CLIENT"


class PollingEngine:
    """
    Polls the server for changes since the workspace's last sync.

    A failed poll never triggers a build: errors are logged and reported as
    NO_CHANGES with the error attached to the decision. The next cycle
    re-queries from the same baseline.
    """

    def __init__(
        self,
        config: ScmConfig,
        store: BaseBuildStore,
        client_factory: RemoteClientFactory
    ):
        """
        Initialize polling engine.

        Args:
            config: Job SCM configuration
            store: Build store holding previous build records
            client_factory: Creates one remote connection per poll
        """
        self.config = config
        self.store = store
        self.client_factory = client_factory
        self.logger = logging.getLogger(__name__)

    async def poll(
        self,
        job_name: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None
    ) -> PollDecision:
        """
        Run one poll cycle.

        Args:
            job_name: Job to poll (defaults to the configured name)
            env: Environment available at polling time, used for pin expansion

        Returns:
            PollDecision
        """
        job_name = job_name or self.config.name
        env = dict(env or {})

        # The polling environment lacks node-specific variables, so the
        # expanded client name comes from the previous build.
        try:
            client_name = await self._client_name(job_name, env)
        except MissingEnvironmentError as e:
            self.logger.warning(f"P4: Unable to read {CLIENT_VARIABLE} for {job_name}: {e}")
            return PollDecision(error=str(e))

        self.logger.info(f"P4: Polling {job_name} with client: {client_name}")

        decision = PollDecision(client=client_name)
        try:
            async with self.client_factory(self.config.credential, client_name) as p4:
                await self._poll(p4, job_name, env, decision)
        except Exception as e:
            self.logger.error(f"P4: Polling error for {job_name}: {e}", exc_info=True)
            return PollDecision(client=client_name, error=str(e))

        self.logger.info(
            f"P4: Poll of {job_name} complete: result={decision.result.value}, "
            f"changes={len(decision.changes)}, "
            f"reasons={[r.value for r in decision.reasons]}"
        )
        return decision

    async def _client_name(self, job_name: str, env: Mapping[str, str]) -> str:
        try:
            previous = await self.store.load_last_record(job_name)
        except Exception as e:
            raise MissingEnvironmentError(f"could not read last build record: {e}")

        if previous is not None and previous.client:
            return previous.client

        client_name = env.get(CLIENT_VARIABLE)
        if not client_name:
            raise MissingEnvironmentError("no previous build and no client in the environment")
        return client_name

    async def _poll(
        self,
        p4: BaseRemoteClient,
        job_name: str,
        env: Mapping[str, str],
        decision: PollDecision
    ):
        have = await p4.list_synced_revisions()
        baseline = max(have) if have else 0
        decision.baseline = baseline

        pin = self.config.pin
        if pin:
            pin = expand_variables(pin, env)
            self.logger.info(f"P4: Polling with label/change: {baseline},{pin}")
            changes = await p4.list_changes(baseline, pin)
        else:
            self.logger.info(f"P4: Polling with label/change: {baseline},now")
            changes = await p4.list_changes(baseline)

        for change in changes:
            # label queries may hand back tokens that are not change numbers
            if not isinstance(change, int) or isinstance(change, bool):
                self.logger.debug(f"Ignoring non-change entry {change!r}")
                continue

            changelist = await p4.get_changelist(change)
            if not should_exclude(changelist, self.config.filters):
                decision.changes.append(changelist.id)
                self.logger.info(f"... found change: {changelist.id}")

        if decision.changes:
            decision.request_build(PollReason.NEW_CHANGES)

            # build one change at a time, starting from the oldest
            if find_gate(self.config.filters) is not None:
                lowest = decision.changes[-1]
                decision.next_change = lowest
                await self.store.save_next_change(job_name, lowest)

        if await p4.is_workspace_stale():
            self.logger.info(f"P4: Workspace {decision.client} is out of date")
            decision.request_build(PollReason.WORKSPACE_STALE)
