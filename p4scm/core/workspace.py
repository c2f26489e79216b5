"""
Client workspace template and environment expansion.

The template is configured once per job (e.g. ``jenkins-${NODE_NAME}-${JOB_NAME}``)
and expanded freshly for every build from that build's environment.
"""
import copy
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

_VARIABLE = re.compile(r'\$\{(\w+)\}|\$(\w+)')


def expand_variables(text: Optional[str], env: Mapping[str, str]) -> Optional[str]:
    """
    Substitute ``${VAR}`` and ``$VAR`` placeholders from env.

    Unknown variables are left untouched.
    """
    if not text:
        return text

    def _replace(match: 're.Match') -> str:
        name = match.group(1) or match.group(2)
        value = env.get(name)
        return match.group(0) if value is None else str(value)

    return _VARIABLE.sub(_replace, text)


@dataclass
class WorkspaceTemplate:
    """Client workspace definition with per-build variables"""
    name: str
    root: Optional[str] = None
    view: List[str] = field(default_factory=list)
    stream: Optional[str] = None
    _vars: Dict[str, str] = field(default_factory=dict, repr=False, compare=False)

    def clone(self) -> 'WorkspaceTemplate':
        return copy.deepcopy(self)

    def clear(self):
        """Drop every loaded variable"""
        self._vars.clear()

    def load(self, env: Mapping[str, str]):
        """Load variables from a build environment"""
        for key, value in env.items():
            if value is not None:
                self._vars[key] = str(value)

    def set(self, key: str, value: str):
        self._vars[key] = value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._vars.get(key, default)

    @property
    def variables(self) -> Dict[str, str]:
        return dict(self._vars)

    def expand(self, text: Optional[str]) -> Optional[str]:
        return expand_variables(text, self._vars)

    @property
    def full_name(self) -> str:
        """Client name with all known variables substituted"""
        return self.expand(self.name)

    def expanded_view(self) -> List[str]:
        return [self.expand(line) for line in self.view]

    @property
    def has_spec(self) -> bool:
        """True if the template defines the client rather than naming an existing one"""
        return bool(self.root or self.view or self.stream)

    def to_dict(self) -> Dict[str, object]:
        return {
            'name': self.name,
            'root': self.root,
            'view': list(self.view),
            'stream': self.stream
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> 'WorkspaceTemplate':
        return cls(
            name=str(data['name']),
            root=data.get('root'),
            view=list(data.get('view') or []),
            stream=data.get('stream')
        )
