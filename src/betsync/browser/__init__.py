"""
Browser capability layer for site workflows.

This package wraps Playwright behind a small page protocol and provides
session persistence, human-like pacing, fallback locators and the history
extraction drivers shared by all site adapters.
"""

from betsync.browser.browser_manager import BrowserManager
from betsync.browser.extraction import (
    ExtractionOutcome,
    collect_infinite_scroll,
    collect_paginated,
)
from betsync.browser.locators import LocatorChain
from betsync.browser.pacing import Pacer, random_delay
from betsync.browser.page import BrowserPage, PlaywrightPage
from betsync.browser.session_store import FileSessionStore, SessionStore

__all__ = [
    'BrowserManager',
    'BrowserPage',
    'ExtractionOutcome',
    'FileSessionStore',
    'LocatorChain',
    'Pacer',
    'PlaywrightPage',
    'SessionStore',
    'collect_infinite_scroll',
    'collect_paginated',
    'random_delay',
]
