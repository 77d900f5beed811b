"""
Site workflows and the orchestrator that manages them.

Each supported betting site has a ``SiteWorkflow`` subclass; the
``WorkflowManager`` keeps one live workflow per site and is the entry point
callers use.
"""

from betsync.workflows.base import (
    HistoryMode,
    MissingCredentialsPolicy,
    SiteWorkflow,
    WorkflowLimits,
)
from betsync.workflows.betonline import BetOnlineWorkflow
from betsync.workflows.manager import WorkflowManager
from betsync.workflows.pinnacle import PinnacleWorkflow
from betsync.workflows.registry import WorkflowRegistry, default_registry
from betsync.workflows.sports411 import Sports411Workflow

__all__ = [
    'BetOnlineWorkflow',
    'HistoryMode',
    'MissingCredentialsPolicy',
    'PinnacleWorkflow',
    'SiteWorkflow',
    'Sports411Workflow',
    'WorkflowLimits',
    'WorkflowManager',
    'WorkflowRegistry',
    'default_registry',
]
