"""
betsync - session orchestration for betting-site automation.

A ``WorkflowManager`` keeps one browser-backed workflow per configured site,
logs in (waiting for a human when a CAPTCHA appears), persists the session
so later runs start authenticated, and extracts normalized bet history.
"""

from betsync.config import BetSyncSettings, setup_logging
from betsync.schemas import (
    BetHistoryItem,
    BetStatus,
    ErrorCode,
    ProxyConfig,
    SiteConfig,
    WorkflowResult,
    WorkflowState,
)
from betsync.workflows import SiteWorkflow, WorkflowManager

__version__ = '0.1.0'

__all__ = [
    'BetHistoryItem',
    'BetStatus',
    'BetSyncSettings',
    'ErrorCode',
    'ProxyConfig',
    'SiteConfig',
    'SiteWorkflow',
    'WorkflowManager',
    'WorkflowResult',
    'WorkflowState',
    'setup_logging',
]
