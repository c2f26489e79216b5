"""
SCM operations: polling, checkout, changelog computation and workspace cleanup.
"""

from .resolver import RevisionResolver
from .changelog import ChangelogComputer, ChangelogWriter
from .polling import PollingEngine
from .checkout import CheckoutOrchestrator
from .cleanup import WorkspaceCleaner
from .environment import build_env_vars

__all__ = [
    'RevisionResolver',
    'ChangelogComputer',
    'ChangelogWriter',
    'PollingEngine',
    'CheckoutOrchestrator',
    'WorkspaceCleaner',
    'build_env_vars',
]
