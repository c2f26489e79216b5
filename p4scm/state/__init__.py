from .base import BaseBuildStore
from .file_store import FileBuildStore
from .memory_store import InMemoryBuildStore
from .redis_store import RedisBuildStore

def get_build_store(store_type: str, config: dict) -> BaseBuildStore:
    """
    Factory function to create build store instances.

    Args:
        store_type: Type of store ('file', 'memory', 'redis')
        config: Configuration dict with store-specific settings

    Example config:
        {
            'state_dir': './data/build_states',
            'max_history': 100
        }
    """
    store_type = store_type.lower()

    if store_type == 'file':
        return FileBuildStore(
            state_dir=config.get('state_dir', './data/build_states'),
            max_history=config.get('max_history', 100)
        )
    elif store_type == 'memory':
        return InMemoryBuildStore()
    elif store_type == 'redis':
        return RedisBuildStore(
            url=config.get('redis_url', 'redis://localhost:6379'),
            key_prefix=config.get('key_prefix', 'p4scm:')
        )
    else:
        raise ValueError(f"Unsupported store type: {store_type}. Supported: 'file', 'memory', 'redis'")

__all__ = ['BaseBuildStore', 'FileBuildStore', 'InMemoryBuildStore', 'RedisBuildStore', 'get_build_store']
