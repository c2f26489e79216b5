import yaml
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from ..core.enums import FilterType
from ..core.exceptions import ConfigError
from ..core.filters import Filter, filter_from_dict, filter_to_dict, find_gate
from ..core.models import PopulateOptions
from ..core.workspace import WorkspaceTemplate


@dataclass
class BrowserConfig:
    """Repository browser link descriptor (e.g. Swarm)"""
    type: str = "swarm"
    url: str = ""

    def change_url(self, change: Any) -> Optional[str]:
        if not self.url:
            return None
        return f"{self.url.rstrip('/')}/changes/{change}"

    def file_url(self, depot_path: str) -> Optional[str]:
        if not self.url:
            return None
        return f"{self.url.rstrip('/')}/files/{depot_path.lstrip('/')}"


@dataclass
class ScmConfig:
    """SCM configuration of one job"""
    name: str
    credential: str
    workspace: WorkspaceTemplate
    filters: List[Filter] = field(default_factory=list)
    populate: PopulateOptions = field(default_factory=PopulateOptions)
    browser: Optional[BrowserConfig] = None

    @property
    def pin(self) -> Optional[str]:
        return self.populate.pin

    @property
    def has_gate(self) -> bool:
        return find_gate(self.filters) is not None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'credential': self.credential,
            'workspace': self.workspace.to_dict(),
            'filters': [filter_to_dict(f) for f in self.filters],
            'populate': self.populate.to_dict()
        }
        if self.browser:
            data['browser'] = {'type': self.browser.type, 'url': self.browser.url}
        return data


class ScmConfigLoader:
    """Load and validate job SCM configurations"""

    @staticmethod
    def load_from_yaml(file_path: str) -> ScmConfig:
        """Load configuration from YAML file"""
        with open(file_path, 'r') as file:
            config_dict = yaml.safe_load(file)

        if config_dict is None:
            raise ConfigError(f"Empty or invalid YAML file: {file_path}")

        return ScmConfigLoader.load_from_dict(config_dict)

    @staticmethod
    def load_from_dict(config_dict: Dict[str, Any]) -> ScmConfig:
        """Load configuration from dictionary"""
        if 'workspace' not in config_dict:
            raise ConfigError("Job configuration requires a 'workspace' section")

        workspace = config_dict['workspace']
        if isinstance(workspace, str):
            workspace = {'name': workspace}
        if not workspace.get('name'):
            raise ConfigError("Workspace name is required")

        browser = None
        if config_dict.get('browser'):
            browser = BrowserConfig(**config_dict['browser'])

        return ScmConfig(
            name=str(config_dict.get('name', '')),
            credential=str(config_dict.get('credential', '')),
            workspace=WorkspaceTemplate.from_dict(workspace),
            filters=[filter_from_dict(f) for f in config_dict.get('filters') or []],
            populate=PopulateOptions.from_dict(config_dict.get('populate')),
            browser=browser
        )

    @staticmethod
    def validate_config(config: ScmConfig) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []

        if not config.name:
            issues.append("Job name is required")

        if not config.credential:
            issues.append("Credential is required")

        if not config.workspace.name:
            issues.append("Workspace name is required")

        gates = [f for f in config.filters if f.type == FilterType.PER_CHANGE]
        if len(gates) > 1:
            issues.append("More than one per_change filter; only the last one is used")

        if config.populate.parallel < 0:
            issues.append("populate.parallel must not be negative")

        return issues
