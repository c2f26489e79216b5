"""
Polling filters.

A job carries an ordered chain of filters. User and path filters exclude
changelists from triggering a build; the per-change gate does not exclude
anything, it asks the poller to build one changelist at a time.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from .enums import FilterType
from .exceptions import ConfigError
from .models import Changelist, ChangelistFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserFilter:
    """Exclude changelists submitted by a user (case-insensitive)"""
    user: str
    type: FilterType = FilterType.USER


@dataclass(frozen=True)
class PathFilter:
    """Exclude files under a depot path prefix"""
    path: str
    type: FilterType = FilterType.PATH


@dataclass(frozen=True)
class PerChangeGate:
    """Build each surviving changelist in turn instead of jumping to head"""
    enabled: bool = True
    type: FilterType = FilterType.PER_CHANGE


Filter = Union[UserFilter, PathFilter, PerChangeGate]


def evaluate_filter(
    filter_: Filter,
    changelist: Changelist,
    files: List[ChangelistFile]
) -> Optional[List[ChangelistFile]]:
    """
    Apply one filter to a changelist.

    Args:
        filter_: Filter to apply
        changelist: Candidate changelist
        files: Files still in play after the preceding filters

    Returns:
        The narrowed file list, or None if the changelist is excluded
    """
    if filter_.type == FilterType.USER:
        if filter_.user.lower() == (changelist.author or "").lower():
            return None
        return files

    if filter_.type == FilterType.PATH:
        remainder = [f for f in files if not f.depot_path.startswith(filter_.path)]
        if not remainder:
            return None
        return remainder

    if filter_.type == FilterType.PER_CHANGE:
        return files

    raise ValueError(f"Unsupported filter type: {filter_.type}")


def should_exclude(changelist: Changelist, filters: Optional[Sequence[Filter]]) -> bool:
    """Return True if the filter chain removes this changelist from polling"""
    if not filters:
        return False

    files = list(changelist.files)
    for f in filters:
        files = evaluate_filter(f, changelist, files)
        if files is None:
            logger.debug(f"Change {changelist.id} excluded by {f}")
            return True

    return False


def find_gate(filters: Optional[Sequence[Filter]]) -> Optional[PerChangeGate]:
    """Last enabled per-change gate in the chain, if any"""
    gate = None
    for f in filters or []:
        if f.type == FilterType.PER_CHANGE and f.enabled:
            gate = f
    return gate


def filter_from_dict(data: Dict[str, Any]) -> Filter:
    """
    Build a filter from its YAML form.

    Accepted forms::

        {type: user, user: bob}
        {type: path, path: //depot/docs/}
        {type: per_change}            # enabled defaults to true
    """
    try:
        filter_type = FilterType(data.get('type'))
    except ValueError:
        raise ConfigError(f"Unknown filter type: {data.get('type')!r}")

    if filter_type == FilterType.USER:
        user = data.get('user')
        if not user:
            raise ConfigError("User filter requires a non-empty 'user'")
        return UserFilter(user=str(user))

    if filter_type == FilterType.PATH:
        path = data.get('path')
        if not path:
            raise ConfigError("Path filter requires a non-empty 'path'")
        return PathFilter(path=str(path))

    return PerChangeGate(enabled=bool(data.get('enabled', True)))


def filter_to_dict(filter_: Filter) -> Dict[str, Any]:
    if filter_.type == FilterType.USER:
        return {'type': filter_.type.value, 'user': filter_.user}
    if filter_.type == FilterType.PATH:
        return {'type': filter_.type.value, 'path': filter_.path}
    return {'type': filter_.type.value, 'enabled': filter_.enabled}
