"""
Remote client that drives the ``p4`` command line.

Every command runs with ``-G`` so the server answers with a stream of
marshalled Python dictionaries instead of text.
"""
import asyncio
import io
import marshal
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

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

# Message severities reported in 'error' records; below E_FAILED is informational
E_WARN = 2
E_FAILED = 3


def decode_records(payload: bytes) -> List[Dict[str, Any]]:
    """Decode the marshalled dictionaries written by ``p4 -G``"""
    records = []
    stream = io.BytesIO(payload)
    while True:
        try:
            raw = marshal.load(stream)
        except EOFError:
            break
        except (ValueError, TypeError) as e:
            raise RemoteError(f"Malformed -G output: {e}")

        record = {}
        for key, value in raw.items():
            if isinstance(key, bytes):
                key = key.decode('utf-8', errors='replace')
            if isinstance(value, bytes):
                value = value.decode('utf-8', errors='replace')
            record[key] = value
        records.append(record)
    return records


def encode_form(form: Dict[str, str]) -> bytes:
    """Marshal a spec form for "p4 -G ... -i" (version 0, byte strings)"""
    return marshal.dumps(
        {str(k).encode('utf-8'): str(v).encode('utf-8') for k, v in form.items()},
        0
    )


def build_client_form(current: Dict[str, Any], workspace: WorkspaceTemplate) -> Dict[str, str]:
    """
    Merge an expanded workspace into the form printed by "client -o".

    Fields the template leaves unset (owner, host, options) keep the
    server's values. A stream client takes its view from the stream.
    """
    form = {
        k: str(v) for k, v in current.items()
        if k != 'code' and not (k.startswith('View') and k[4:].isdigit())
    }
    form['Client'] = workspace.full_name
    if workspace.root:
        form['Root'] = workspace.expand(workspace.root)
    if workspace.stream:
        form['Stream'] = workspace.expand(workspace.stream)
        return form

    view = workspace.expanded_view()
    if not view:
        indexes = sorted(int(k[4:]) for k in current if k.startswith('View') and k[4:].isdigit())
        view = [current[f"View{i}"] for i in indexes]
    for index, line in enumerate(view):
        form[f"View{index}"] = str(line)
    return form


def parse_changelist(record: Dict[str, Any]) -> Changelist:
    """Build a Changelist from a ``describe -s`` record"""
    files = []
    index = 0
    while f"depotFile{index}" in record:
        rev = record.get(f"rev{index}")
        files.append(ChangelistFile(
            depot_path=record[f"depotFile{index}"],
            action=FileAction.from_string(record.get(f"action{index}", "edit")),
            revision=int(rev) if rev and str(rev).isdigit() else None
        ))
        index += 1

    submitted_at = None
    if record.get('time'):
        submitted_at = datetime.fromtimestamp(int(record['time']), tz=timezone.utc).isoformat()

    return Changelist(
        id=int(record['change']),
        author=record.get('user', ''),
        description=(record.get('desc') or '').strip(),
        client=record.get('client'),
        submitted_at=submitted_at,
        files=files
    )


def parse_label(record: Dict[str, Any]) -> Optional[LabelInfo]:
    """
    Build LabelInfo from a ``label -o`` record.

    ``label -o`` prints a default form for labels that do not exist; such a
    form has no Update/Access timestamps.
    """
    if 'Update' not in record and 'Access' not in record:
        return None
    return LabelInfo(
        name=record.get('Label', ''),
        revision_spec=(record.get('Revision') or '').strip() or None,
        description=(record.get('Description') or '').strip()
    )


class P4CommandClient(BaseRemoteClient):
    """
    BaseRemoteClient over the ``p4`` executable.

    The credential is either a bare user name or ``user@port``; a port given
    in the credential wins over the configured one.
    """

    def __init__(
        self,
        credential: str,
        workspace: str,
        port: Optional[str] = None,
        user: Optional[str] = None,
        p4_bin: str = "p4",
        timeout: float = 60.0,
        charset: Optional[str] = None,
        check_login: bool = True
    ):
        super().__init__(credential, workspace)
        if credential and '@' in credential:
            user, port = credential.split('@', 1)
        elif credential:
            user = credential
        self.port = port
        self.user = user
        self.p4_bin = p4_bin
        self.timeout = timeout
        self.charset = charset
        self.check_login = check_login
        self.connected = False

    def _base_args(self) -> List[str]:
        args = [self.p4_bin, '-G']
        if self.port:
            args += ['-p', self.port]
        if self.user:
            args += ['-u', self.user]
        if self.workspace:
            args += ['-c', self.workspace]
        if self.charset:
            args += ['-C', self.charset]
        return args

    def _view(self, revision: str = "") -> str:
        return f"//{self.workspace}/...{revision}"

    async def _run(self, *args: str, form: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """
        Run one p4 command and return its records.

        Args:
            args: Command and its arguments
            form: Spec form written to stdin for "-i" commands

        Raises:
            RemoteError: On timeout, a failed command or an error record
        """
        command = ' '.join(args[:1])
        self.logger.debug(f"p4 {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *self._base_args(), *args,
                stdin=asyncio.subprocess.PIPE if form is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise RemoteError(f"Unable to run {self.p4_bin}: {e}", command=command)

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(encode_form(form) if form is not None else None),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise RemoteError(f"Timed out after {self.timeout}s", command=command)

        records = decode_records(stdout)
        results = []
        for record in records:
            if record.get('code') == 'error':
                severity = int(record.get('severity', E_FAILED))
                message = str(record.get('data', '')).strip()
                if severity >= E_FAILED:
                    raise RemoteError(message, command=command)
                self.logger.debug(f"p4 {command}: {message}")
                continue
            results.append(record)

        if process.returncode != 0 and not records:
            message = stderr.decode('utf-8', errors='replace').strip()
            raise RemoteError(message or f"exit status {process.returncode}", command=command)

        return results

    async def connect(self):
        if self.check_login:
            await self._run('login', '-s')
        self.connected = True
        self.logger.debug(f"Connected to {self.port} as {self.user} ({self.workspace})")

    async def disconnect(self):
        self.connected = False

    async def list_synced_revisions(self) -> List[int]:
        records = await self._run('changes', '-m1', '-s', 'submitted', self._view('#have'))
        return sorted(int(r['change']) for r in records if 'change' in r)

    async def list_changes(
        self,
        from_revision: int,
        to: Optional[str] = None
    ) -> List[Union[int, str]]:
        upper = f"@{str(to).lstrip('@')}" if to else "#head"
        records = await self._run(
            'changes', '-s', 'submitted',
            self._view(f"@{from_revision + 1},{upper}")
        )
        changes: List[Union[int, str]] = []
        for r in records:
            value = r.get('change')
            if value is None:
                continue
            changes.append(int(value) if str(value).isdigit() else value)
        return changes

    async def get_changelist(self, change: int) -> Changelist:
        records = await self._run('describe', '-s', str(change))
        if not records:
            raise RemoteError(f"Change {change} unknown.", command="describe")
        return parse_changelist(records[0])

    async def is_workspace_stale(self) -> bool:
        # "file(s) up-to-date" is a warning and never reaches the records
        records = await self._run('sync', '-n', self._view())
        return any(r.get('code') == 'stat' for r in records)

    async def save_workspace(self, workspace: WorkspaceTemplate):
        records = await self._run('client', '-o', workspace.full_name)
        form = build_client_form(records[0] if records else {}, workspace)
        await self._run('client', '-i', form=form)
        self.logger.info(f"Saved client {form['Client']} (root {form.get('Root')})")

    async def sync(self, target: RevisionMarker, populate: PopulateOptions) -> bool:
        if populate.clean:
            await self._run('clean', self._view())

        args = ['sync']
        if populate.force:
            args.append('-f')
        if not populate.have_list:
            args.append('-p')
        if populate.quiet:
            args.append('-q')
        if populate.parallel:
            args.append(f"--parallel=threads={populate.parallel}")
        args.append(self._view(target.to_spec() or '#head'))

        records = await self._run(*args)
        self.logger.info(f"Synced {self.workspace} to {target} ({len(records)} files)")
        return True

    async def get_label(self, name: str) -> Optional[LabelInfo]:
        records = await self._run('label', '-o', name)
        if not records:
            return None
        return parse_label(records[0])

    async def get_latest_change(self, spec: Optional[str] = None) -> Optional[int]:
        records = await self._run('changes', '-m1', '-s', 'submitted', self._view(spec or '#head'))
        for r in records:
            if str(r.get('change', '')).isdigit():
                return int(r['change'])
        return None
