"""
Domain models shared by polling, checkout and changelog computation.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from .enums import MarkerKind, PollResult, PollReason, FileAction


@dataclass(frozen=True)
class RevisionMarker:
    """
    A point in server history: the head revision, a changelist number or a label.

    Label names carry no ordering; only two CHANGE markers can be compared.
    """
    kind: MarkerKind
    change: Optional[int] = None
    label: Optional[str] = None

    @classmethod
    def head(cls) -> 'RevisionMarker':
        return cls(kind=MarkerKind.HEAD)

    @classmethod
    def at_change(cls, change: int) -> 'RevisionMarker':
        return cls(kind=MarkerKind.CHANGE, change=int(change))

    @classmethod
    def at_label(cls, name: str) -> 'RevisionMarker':
        return cls(kind=MarkerKind.LABEL, label=name)

    @classmethod
    def parse(cls, value: Union[int, str, None]) -> 'RevisionMarker':
        """
        Interpret a raw pin value without asking the server.

        Integers and digit strings become CHANGE markers, empty values HEAD,
        anything else a LABEL marker holding the raw text. Only a numeric
        "@N" loses its "@"; "@foo" stays the label "@foo".
        """
        if value is None:
            return cls.head()
        if isinstance(value, int) and not isinstance(value, bool):
            return cls.at_change(value)

        text = str(value).strip()
        if not text:
            return cls.head()
        number = text[1:] if text.startswith('@') else text
        if number.isdigit():
            return cls.at_change(int(number))
        return cls.at_label(text)

    @property
    def is_head(self) -> bool:
        return self.kind == MarkerKind.HEAD

    @property
    def is_change(self) -> bool:
        return self.kind == MarkerKind.CHANGE

    @property
    def is_label(self) -> bool:
        return self.kind == MarkerKind.LABEL

    @property
    def value(self) -> str:
        """String form used for exported variables (change number or label name)"""
        if self.is_change:
            return str(self.change)
        if self.is_label:
            return self.label
        return ""

    def to_spec(self) -> str:
        """Server revision specifier, e.g. '@1234' or '@my-label' ('' for head)"""
        if self.is_head:
            return ""
        if self.value.startswith('@'):
            return self.value
        return f"@{self.value}"

    def __str__(self) -> str:
        return self.value or "now"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'change': self.change,
            'label': self.label
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RevisionMarker':
        return cls(
            kind=MarkerKind(data['kind']),
            change=data.get('change'),
            label=data.get('label')
        )


@dataclass(frozen=True)
class ChangelistFile:
    """A file revision affected by a changelist"""
    depot_path: str
    action: FileAction = FileAction.EDIT
    revision: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'depot_path': self.depot_path,
            'action': self.action.value,
            'revision': self.revision
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangelistFile':
        return cls(
            depot_path=data['depot_path'],
            action=FileAction.from_string(data.get('action', 'edit')),
            revision=data.get('revision')
        )


@dataclass(frozen=True)
class Changelist:
    """A submitted changelist as reported by the server"""
    id: int
    author: str
    description: str = ""
    client: Optional[str] = None
    submitted_at: Optional[str] = None  # ISO UTC
    files: List[ChangelistFile] = field(default_factory=list)

    @property
    def depot_paths(self) -> List[str]:
        return [f.depot_path for f in self.files]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'author': self.author,
            'description': self.description,
            'client': self.client,
            'submitted_at': self.submitted_at,
            'files': [f.to_dict() for f in self.files]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Changelist':
        return cls(
            id=int(data['id']),
            author=data.get('author', ''),
            description=data.get('description', ''),
            client=data.get('client'),
            submitted_at=data.get('submitted_at'),
            files=[ChangelistFile.from_dict(f) for f in data.get('files', [])]
        )


@dataclass(frozen=True)
class LabelInfo:
    """Label specification as returned by the server"""
    name: str
    revision_spec: Optional[str] = None
    description: str = ""


@dataclass
class PopulateOptions:
    """Sync policy handed through to the remote client untouched"""
    pin: Optional[str] = None
    force: bool = False          # -f: rewrite every file
    clean: bool = False          # revert/remove files not in the have list first
    have_list: bool = True       # False maps to -p (do not update the have list)
    quiet: bool = True
    parallel: int = 0

    @classmethod
    def force_clean(cls) -> 'PopulateOptions':
        return cls(force=True, clean=True)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PopulateOptions':
        data = dict(data or {})
        pin = data.get('pin')
        if pin is not None:
            data['pin'] = str(pin)
        return cls(**data)


@dataclass(frozen=True)
class BuildRevisionRecord:
    """Revision a build was synced to; written once per checkout"""
    job_name: str
    build_id: int
    client: str
    credential: str
    revision: RevisionMarker
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'job_name': self.job_name,
            'build_id': self.build_id,
            'client': self.client,
            'credential': self.credential,
            'revision': self.revision.to_dict(),
            'created_at': self.created_at
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BuildRevisionRecord':
        return cls(
            job_name=data['job_name'],
            build_id=int(data['build_id']),
            client=data['client'],
            credential=data['credential'],
            revision=RevisionMarker.from_dict(data['revision']),
            created_at=data.get('created_at') or datetime.now(timezone.utc).isoformat()
        )


@dataclass
class PollDecision:
    """Outcome of one poll cycle"""
    result: PollResult = PollResult.NO_CHANGES
    reasons: List[PollReason] = field(default_factory=list)
    changes: List[int] = field(default_factory=list)  # surviving changes, server order
    baseline: int = 0
    next_change: Optional[int] = None
    client: Optional[str] = None
    error: Optional[str] = None

    @property
    def build_now(self) -> bool:
        return self.result == PollResult.BUILD_NOW

    @property
    def failed(self) -> bool:
        return self.error is not None

    def request_build(self, reason: PollReason):
        self.result = PollResult.BUILD_NOW
        if reason not in self.reasons:
            self.reasons.append(reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'result': self.result.value,
            'reasons': [r.value for r in self.reasons],
            'changes': list(self.changes),
            'baseline': self.baseline,
            'next_change': self.next_change,
            'client': self.client,
            'error': self.error
        }


@dataclass(frozen=True)
class ChangelogEntry:
    """One revision in a build's changelog"""
    revision: RevisionMarker
    changelist: Optional[Changelist] = None

    @property
    def id(self) -> str:
        if self.changelist is not None:
            return str(self.changelist.id)
        return self.revision.value

    @property
    def author(self) -> Optional[str]:
        return self.changelist.author if self.changelist else None

    @property
    def files(self) -> List[ChangelistFile]:
        return list(self.changelist.files) if self.changelist else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            'revision': self.revision.to_dict(),
            'changelist': self.changelist.to_dict() if self.changelist else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangelogEntry':
        changelist = data.get('changelist')
        return cls(
            revision=RevisionMarker.from_dict(data['revision']),
            changelist=Changelist.from_dict(changelist) if changelist else None
        )


@dataclass
class CheckoutResult:
    """What a successful checkout produced"""
    record: BuildRevisionRecord
    changelog: List[ChangelogEntry] = field(default_factory=list)
    changelog_path: Optional[str] = None
