"""Pytest configuration and shared fixtures."""

import random

import pytest
from loguru import logger

from betsync.browser.pacing import Pacer
from betsync.browser.session_store import FileSessionStore
from betsync.config_store import SiteConfigStore
from betsync.events import EventBus
from betsync.schemas import SiteConfig
from betsync.workflows.base import WorkflowLimits

from fakes import SleepRecorder


@pytest.fixture
def sleeps():
    """Recorder standing in for asyncio.sleep."""
    return SleepRecorder()


@pytest.fixture
def pacer(sleeps):
    """Seeded pacer that never actually sleeps."""
    return Pacer(rng=random.Random(0), sleep=sleeps)


@pytest.fixture
def recorded_events():
    return []


@pytest.fixture
def events(recorded_events):
    """Event bus that collects every event into ``recorded_events``."""
    return EventBus([recorded_events.append])


@pytest.fixture
def limits():
    """Short bounds: 3 challenge polls, 2 manual-login polls."""
    return WorkflowLimits(
        challenge_timeout_s=6,
        challenge_poll_interval_s=2,
        manual_login_timeout_s=4,
        max_history_pages=10,
        max_scroll_attempts=3,
        scroll_settle_ms=100,
    )


@pytest.fixture
def site():
    return SiteConfig(
        id='stub',
        name='Stub Site',
        base_url='https://stub.example/login',
        username='alice',
        password='secret',
    )


@pytest.fixture
def config_store(tmp_path):
    """Config store backed by temp files."""
    store = SiteConfigStore(tmp_path / 'sites.json', tmp_path / 'proxies.json')
    store.load()
    return store


@pytest.fixture
def session_store(tmp_path):
    return FileSessionStore(tmp_path / 'sessions')


@pytest.fixture
def log_messages():
    """Capture loguru output for the duration of a test."""
    messages = []
    handler_id = logger.add(messages.append, level='DEBUG', format='{message}')
    yield messages
    logger.remove(handler_id)
