"""
p4scm - Perforce change polling and build workspace checkout

Main modules:
- core: Revision markers, changelists, filters and workspace templates
- client: Remote clients for the versioning server (p4 command line, in-memory)
- state: Per-build revision record stores (file, memory, redis)
- scm: Polling, checkout, changelog computation and workspace cleanup
- config: Global and per-job configuration loading
"""

from .core.models import RevisionMarker, Changelist, BuildRevisionRecord, PollDecision
from .core.filters import UserFilter, PathFilter, PerChangeGate, should_exclude
from .config.config_loader import ScmConfig, ScmConfigLoader
from .scm import (
    RevisionResolver,
    ChangelogComputer,
    PollingEngine,
    CheckoutOrchestrator,
    WorkspaceCleaner
)

__version__ = "1.0.0"
__all__ = [
    'RevisionMarker',
    'Changelist',
    'BuildRevisionRecord',
    'PollDecision',
    'UserFilter',
    'PathFilter',
    'PerChangeGate',
    'should_exclude',
    'ScmConfig',
    'ScmConfigLoader',
    'RevisionResolver',
    'ChangelogComputer',
    'PollingEngine',
    'CheckoutOrchestrator',
    'WorkspaceCleaner'
]
