from enum import Enum


class MarkerKind(str, Enum):
    HEAD = "head"
    CHANGE = "change"
    LABEL = "label"


class PollResult(str, Enum):
    NO_CHANGES = "no_changes"
    BUILD_NOW = "build_now"


class PollReason(str, Enum):
    """Why a poll asked for a build"""
    NEW_CHANGES = "new_changes"
    WORKSPACE_STALE = "workspace_stale"


class FilterType(str, Enum):
    USER = "user"
    PATH = "path"
    PER_CHANGE = "per_change"


class FileAction(str, Enum):
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    BRANCH = "branch"
    INTEGRATE = "integrate"
    MOVE_ADD = "move/add"
    MOVE_DELETE = "move/delete"
    PURGE = "purge"
    ARCHIVE = "archive"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str) -> 'FileAction':
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN
