#!/usr/bin/env python3
"""
p4scm CLI

Commands a build host calls around a build: poll for changes, check out a
workspace, export the build's revision variables and clean up workspaces.
"""

import asyncio
import click
import json
import logging
import os
import sys
from typing import Dict, Optional, Tuple

from ..client import InMemoryDepot
from ..config.config_loader import ScmConfig, ScmConfigLoader
from ..config.factory import create_build_store, create_client_factory
from ..config.global_config_loader import load_global_config
from ..core.exceptions import CheckoutError, ConfigError
from ..core.models import RevisionMarker
from ..scm import (
    ChangelogComputer,
    CheckoutOrchestrator,
    PollingEngine,
    WorkspaceCleaner,
    build_env_vars
)
from ..state.base import BaseBuildStore


def _parse_env(pairs: Tuple[str, ...]) -> Dict[str, str]:
    """Build environment: process environment overlaid with KEY=VALUE pairs"""
    env = dict(os.environ)
    for pair in pairs:
        if '=' not in pair:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{pair}'", param_hint='--env')
        key, value = pair.split('=', 1)
        env[key] = value
    return env


class ScmCLI:
    """Command-line interface for SCM operations"""

    def __init__(
        self,
        global_config,
        depot: Optional[InMemoryDepot] = None,
        store: Optional[BaseBuildStore] = None
    ):
        self.logger = logging.getLogger(__name__)
        self.global_config = global_config
        self.client_factory = create_client_factory(global_config, depot)
        self.store = store or create_build_store(global_config)

    def load_job(self, job_path: str) -> ScmConfig:
        config = ScmConfigLoader.load_from_yaml(job_path)
        issues = ScmConfigLoader.validate_config(config)
        for issue in issues:
            self.logger.warning(f"{job_path}: {issue}")
        return config

    async def poll(self, config: ScmConfig, env: Dict[str, str], as_json: bool) -> int:
        async with self.store:
            engine = PollingEngine(config, self.store, self.client_factory)
            decision = await engine.poll(config.name, env)

        if as_json:
            click.echo(json.dumps(decision.to_dict(), indent=2))
        else:
            click.echo(f"Job: {config.name}")
            click.echo(f"Result: {decision.result.value}")
            if decision.reasons:
                click.echo(f"Reasons: {', '.join(r.value for r in decision.reasons)}")
            if decision.changes:
                click.echo(f"Changes: {', '.join(str(c) for c in decision.changes)}")
            if decision.next_change is not None:
                click.echo(f"Next change: {decision.next_change}")
            if decision.error:
                click.echo(f"Error: {decision.error}", err=True)
        return 0

    async def checkout(
        self,
        config: ScmConfig,
        build_id: int,
        env: Dict[str, str],
        root: Optional[str]
    ) -> int:
        async with self.store:
            orchestrator = CheckoutOrchestrator(
                config,
                self.store,
                self.client_factory,
                changelog_dir=self.global_config.storage.changelog_dir
            )
            try:
                result = await orchestrator.checkout(build_id, env, root=root)
            except CheckoutError as e:
                click.echo(str(e), err=True)
                return 1

        click.echo(f"Checked out {config.name}#{build_id} at {result.record.revision}")
        click.echo(f"Client: {result.record.client}")
        click.echo(f"Changelog: {result.changelog_path} ({len(result.changelog)} entries)")
        for entry in result.changelog:
            click.echo(f"  {entry.id}  {entry.author or '-'}")
        return 0

    async def changes(self, config: ScmConfig, client: str, from_rev: Optional[str], to_rev: Optional[str]) -> int:
        from_marker = RevisionMarker.parse(from_rev) if from_rev else None
        to_marker = RevisionMarker.parse(to_rev)

        async with self.client_factory(config.credential, client) as p4:
            entries = await ChangelogComputer(p4).delta(from_marker, to_marker)

        for entry in entries:
            line = f"{entry.id}  {entry.author or '-'}"
            link = config.browser.change_url(entry.changelist.id) if config.browser and entry.changelist else None
            if link:
                line += f"  {link}"
            click.echo(line)
            for f in entry.files:
                file_line = f"    {f.action.value:<8} {f.depot_path}"
                file_link = config.browser.file_url(f.depot_path) if config.browser else None
                if file_link:
                    file_line += f"  {file_link}"
                click.echo(file_line)
        return 0

    async def env(self, config: ScmConfig, build_id: int) -> int:
        async with self.store:
            record = await self.store.load_record(config.name, build_id)

        if record is None:
            click.echo(f"No revision recorded for {config.name}#{build_id}", err=True)
            return 1

        for key, value in (await build_env_vars(record, self.client_factory)).items():
            click.echo(f"{key}={value}")
        return 0

    async def cleanup(self, config: ScmConfig) -> int:
        async with self.store:
            cleaner = WorkspaceCleaner(config.credential, self.store, self.client_factory)
            await cleaner.before_deletion(config.name)
        click.echo(f"Cleanup of {config.name} complete")
        return 0

    async def history(self, config: ScmConfig) -> int:
        async with self.store:
            records = await self.store.list_records(config.name)

        if not records:
            click.echo(f"No builds recorded for {config.name}")
            return 0

        for record in records:
            click.echo(f"#{record.build_id}  {record.revision}  {record.client}  {record.created_at}")
        return 0


def _run(ctx, job_path: str, method: str, *args) -> None:
    cli_instance: ScmCLI = ctx.obj['cli']
    try:
        config = cli_instance.load_job(job_path)
    except (ConfigError, OSError) as e:
        click.echo(f"Error loading job configuration: {e}", err=True)
        sys.exit(2)

    exit_code = asyncio.run(getattr(cli_instance, method)(config, *args))
    sys.exit(exit_code)


@click.group()
@click.option('--global-config', default=None, help='Path to global config YAML')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
              help='Set the logging level (overrides config)')
@click.pass_context
def cli(ctx, global_config, log_level):
    """p4scm - poll, check out and track Perforce build workspaces"""
    global_cfg = load_global_config(global_config)

    logging.basicConfig(
        level=getattr(logging, (log_level or global_cfg.logging.level).upper()),
        format=global_cfg.logging.format,
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    ctx.ensure_object(dict)
    ctx.obj['global_config'] = global_cfg
    ctx.obj['cli'] = ScmCLI(global_cfg, ctx.obj.get('depot'), ctx.obj.get('store'))


@cli.command()
@click.option('--job', 'job_path', required=True, help='Path to the job SCM config YAML')
@click.option('--env', 'env_pairs', multiple=True, help='Extra environment variable KEY=VALUE')
@click.option('--json', 'as_json', is_flag=True, help='Print the decision as JSON')
@click.pass_context
def poll(ctx, job_path, env_pairs, as_json):
    """Check whether the job needs a new build"""
    _run(ctx, job_path, 'poll', _parse_env(env_pairs), as_json)


@cli.command()
@click.option('--job', 'job_path', required=True, help='Path to the job SCM config YAML')
@click.option('--build-id', required=True, type=int, help='Id of the build being checked out')
@click.option('--root', default=None, help='Workspace root directory')
@click.option('--env', 'env_pairs', multiple=True, help='Extra environment variable KEY=VALUE')
@click.pass_context
def checkout(ctx, job_path, build_id, root, env_pairs):
    """Sync the build workspace and write its changelog"""
    _run(ctx, job_path, 'checkout', build_id, _parse_env(env_pairs), root)


@cli.command()
@click.option('--job', 'job_path', required=True, help='Path to the job SCM config YAML')
@click.option('--client', required=True, help='Client workspace to query through')
@click.option('--from', 'from_rev', default=None, help='Previous revision (change or label)')
@click.option('--to', 'to_rev', default=None, help='Current revision (change or label, default head)')
@click.pass_context
def changes(ctx, job_path, client, from_rev, to_rev):
    """List the changes between two revisions"""
    _run(ctx, job_path, 'changes', client, from_rev, to_rev)


@cli.command()
@click.option('--job', 'job_path', required=True, help='Path to the job SCM config YAML')
@click.option('--build-id', required=True, type=int, help='Build to describe')
@click.pass_context
def env(ctx, job_path, build_id):
    """Print P4_CHANGELIST and P4_CLIENT for a build"""
    _run(ctx, job_path, 'env', build_id)


@cli.command()
@click.option('--job', 'job_path', required=True, help='Path to the job SCM config YAML')
@click.pass_context
def cleanup(ctx, job_path):
    """Unsync the job's workspace before it is deleted"""
    _run(ctx, job_path, 'cleanup')


@cli.command()
@click.option('--job', 'job_path', required=True, help='Path to the job SCM config YAML')
@click.pass_context
def history(ctx, job_path):
    """List recorded build revisions"""
    _run(ctx, job_path, 'history')


if __name__ == "__main__":
    cli()
