from .config_loader import BrowserConfig, ScmConfig, ScmConfigLoader
from .factory import create_client_factory, create_build_store
from .global_config_loader import (
    GlobalConfig,
    ServerConfig,
    StorageConfig,
    LoggingConfig,
    load_global_config,
    get_global_config
)

__all__ = [
    'BrowserConfig',
    'ScmConfig',
    'ScmConfigLoader',
    'GlobalConfig',
    'ServerConfig',
    'StorageConfig',
    'LoggingConfig',
    'load_global_config',
    'get_global_config',
    'create_client_factory',
    'create_build_store'
]
