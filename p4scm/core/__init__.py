from .enums import MarkerKind, PollResult, PollReason, FilterType, FileAction
from .exceptions import (
    P4ScmError,
    RemoteError,
    CheckoutError,
    MissingEnvironmentError,
    ConfigError
)
from .models import (
    RevisionMarker,
    ChangelistFile,
    Changelist,
    LabelInfo,
    PopulateOptions,
    BuildRevisionRecord,
    PollDecision,
    ChangelogEntry,
    CheckoutResult
)
from .filters import (
    UserFilter,
    PathFilter,
    PerChangeGate,
    Filter,
    should_exclude,
    find_gate
)
from .workspace import WorkspaceTemplate, expand_variables

__all__ = [
    'MarkerKind',
    'PollResult',
    'PollReason',
    'FilterType',
    'FileAction',
    'P4ScmError',
    'RemoteError',
    'CheckoutError',
    'MissingEnvironmentError',
    'ConfigError',
    'RevisionMarker',
    'ChangelistFile',
    'Changelist',
    'LabelInfo',
    'PopulateOptions',
    'BuildRevisionRecord',
    'PollDecision',
    'ChangelogEntry',
    'CheckoutResult',
    'UserFilter',
    'PathFilter',
    'PerChangeGate',
    'Filter',
    'should_exclude',
    'find_gate',
    'WorkspaceTemplate',
    'expand_variables',
]
