import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, asdict


@dataclass
class ServerConfig:
    """Versioning server connection settings"""
    port: Optional[str] = None           # e.g. 'ssl:perforce:1666'
    user: Optional[str] = None
    client_type: str = "p4"              # 'p4' | 'memory'
    p4_bin: str = "p4"
    charset: Optional[str] = None
    timeout: float = 60.0                # seconds per remote command
    check_login: bool = True
    depot_file: Optional[str] = None     # seeds the 'memory' client type

    def client_options(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StorageConfig:
    """Build state storage configuration"""
    type: str = "file"                   # 'file' | 'memory' | 'redis'
    state_dir: str = "./data/build_states"
    changelog_dir: str = "./data/changelogs"
    redis_url: str = "redis://localhost:6379"
    key_prefix: str = "p4scm:"
    max_history: int = 100

    def store_options(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class GlobalConfig:
    """Global configuration shared by every job"""
    server: ServerConfig
    storage: StorageConfig
    logging: LoggingConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GlobalConfig':
        """Unknown keys in a section raise TypeError"""
        return cls(
            server=ServerConfig(**(data.get('server') or {})),
            storage=StorageConfig(**(data.get('storage') or {})),
            logging=LoggingConfig(**(data.get('logging') or {}))
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'GlobalConfig':
        """Load from YAML; a missing file gives the defaults"""
        path = Path(yaml_path)
        if not path.exists():
            return cls.default()

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def default(cls) -> 'GlobalConfig':
        return cls(
            server=ServerConfig(),
            storage=StorageConfig(),
            logging=LoggingConfig()
        )


CONFIG_ENV_VARIABLE = "P4SCM_CONFIG"
SEARCH_PATHS = [
    "./p4scm.yaml",
    "./config/p4scm.yaml",
    "/etc/p4scm/p4scm.yaml",
]

_global_config: Optional[GlobalConfig] = None


def _candidate_paths(config_path: Optional[str]) -> List[Path]:
    if config_path:
        return [Path(config_path)]
    paths = []
    if os.environ.get(CONFIG_ENV_VARIABLE):
        paths.append(Path(os.environ[CONFIG_ENV_VARIABLE]))
    paths.extend(Path(p) for p in SEARCH_PATHS)
    return paths


def load_global_config(config_path: Optional[str] = None) -> GlobalConfig:
    """
    Load the global configuration and cache it for get_global_config().

    An explicit path wins; otherwise $P4SCM_CONFIG and then SEARCH_PATHS are
    tried in order. Defaults apply when none of them exists.
    """
    global _global_config

    _global_config = GlobalConfig.default()
    for path in _candidate_paths(config_path):
        if path.exists():
            _global_config = GlobalConfig.from_yaml(str(path))
            break
    return _global_config


def get_global_config() -> GlobalConfig:
    global _global_config
    if _global_config is None:
        load_global_config()
    return _global_config
