"""
Synchronizes a build workspace and records the revision it was built from.
"""
import logging
from pathlib import Path
from typing import List, Mapping, Optional

from ..client.base import RemoteClientFactory
from ..config.config_loader import ScmConfig
from ..core.exceptions import CheckoutError
from ..core.models import BuildRevisionRecord, ChangelogEntry, CheckoutResult, RevisionMarker
from ..core.workspace import WorkspaceTemplate
from ..state.base import BaseBuildStore
from .changelog import ChangelogComputer, ChangelogWriter
from .resolver import RevisionResolver

LABEL_VARIABLE = "label"


class CheckoutOrchestrator:
    """
    Main orchestrator for build checkouts.

    Expands the workspace for the build, syncs it, records the synced
    revision and writes the changelog since the previous recorded build.
    Any failure is fatal: nothing is recorded and no changelog is written.
    """

    def __init__(
        self,
        config: ScmConfig,
        store: BaseBuildStore,
        client_factory: RemoteClientFactory,
        changelog_dir: str = "./data/changelogs"
    ):
        """
        Initialize checkout orchestrator.

        Args:
            config: Job SCM configuration
            store: Build store for revision records and the per-change boundary
            client_factory: Creates one remote connection per checkout
            changelog_dir: Directory changelog files are written under
        """
        self.config = config
        self.store = store
        self.client_factory = client_factory
        self.changelog_dir = Path(changelog_dir)
        self.logger = logging.getLogger(__name__)

    def changelog_path(self, job_name: str, build_id: int) -> Path:
        return self.changelog_dir / job_name / f"{build_id}.json"

    def prepare_workspace(
        self,
        build_env: Mapping[str, str],
        next_change: Optional[int] = None
    ) -> WorkspaceTemplate:
        """
        Expand the workspace template for one build.

        Args:
            build_env: Environment of the build being checked out
            next_change: Boundary stored by a per-change poll; overrides the pin

        Returns:
            Workspace with the build's variables and target label loaded
        """
        workspace = self.config.workspace.clone()
        workspace.clear()
        workspace.load(build_env)

        pin = self.config.pin
        if pin:
            workspace.set(LABEL_VARIABLE, workspace.expand(pin))

        if next_change is not None and self.config.has_gate:
            workspace.set(LABEL_VARIABLE, str(next_change))

        return workspace

    async def checkout(
        self,
        build_id: int,
        build_env: Mapping[str, str],
        root: Optional[str] = None,
        job_name: Optional[str] = None
    ) -> CheckoutResult:
        """
        Check out a build.

        Args:
            build_id: Id of the build being checked out
            build_env: Environment of the build
            root: Workspace root directory on the build node
            job_name: Job name (defaults to the configured name)

        Returns:
            CheckoutResult with the record and changelog

        Raises:
            CheckoutError: If the build already has a record, or the workspace
                could not be synchronized or the build could not be recorded
        """
        job_name = job_name or self.config.name

        if await self.store.load_record(job_name, build_id) is not None:
            raise CheckoutError(f"P4: Build {job_name}#{build_id} already has a revision record")

        next_change = None
        if self.config.has_gate:
            next_change = await self.store.load_next_change(job_name)

        workspace = self.prepare_workspace(build_env, next_change)
        if root:
            workspace.root = root
        client_name = workspace.full_name

        self.logger.info(f"P4: Checkout of {job_name}#{build_id} with client: {client_name}")

        try:
            async with self.client_factory(self.config.credential, client_name) as p4:
                if workspace.has_spec:
                    await p4.save_workspace(workspace)

                resolver = RevisionResolver(p4)
                target = await resolver.resolve(workspace.get(LABEL_VARIABLE), workspace.variables)

                # record a concrete change rather than 'now'
                if target.is_head:
                    latest = await p4.get_latest_change()
                    if latest is not None:
                        target = RevisionMarker.at_change(latest)

                self.logger.info(f"P4: Syncing {client_name} to {target}")
                if not await p4.sync(target, self.config.populate):
                    raise CheckoutError(f"P4: Build failed: sync of {client_name} to {target} did not complete")

                record = BuildRevisionRecord(
                    job_name=job_name,
                    build_id=build_id,
                    client=client_name,
                    credential=self.config.credential,
                    revision=target
                )

                previous = await self.store.load_last_record(job_name, before=build_id)
                computer = ChangelogComputer(p4, resolver)
                changelog = await computer.delta(
                    previous.revision if previous else None,
                    target
                )

            path = await self._persist(record, changelog)
        except CheckoutError as e:
            self.logger.error(str(e))
            raise
        except Exception as e:
            self.logger.error(f"P4: Build failed: {job_name}#{build_id}: {e}", exc_info=True)
            raise CheckoutError(f"P4: Build failed: {e}") from e

        if next_change is not None:
            await self.store.clear_next_change(job_name)

        self.logger.info(
            f"P4: Checkout of {job_name}#{build_id} complete at {target}, "
            f"{len(changelog)} changelog entries"
        )
        return CheckoutResult(record=record, changelog=changelog, changelog_path=str(path))

    async def _persist(self, record: BuildRevisionRecord, changelog: List[ChangelogEntry]) -> Path:
        """Write the changelog, then the record; a failed record save removes the changelog"""
        path = ChangelogWriter.store(self.changelog_path(record.job_name, record.build_id), changelog)
        try:
            await self.store.save_record(record)
        except Exception:
            path.unlink(missing_ok=True)
            raise
        return path
