"""
Configuration for betsync.

All runtime settings live on a single ``BetSyncSettings`` object that is
passed explicitly into the ``WorkflowManager``. Values can come from keyword
arguments, ``BETSYNC_*`` environment variables, or a ``.env`` file.

Usage:
    from betsync.config import BetSyncSettings, setup_logging

    settings = BetSyncSettings(sites_file='config/sites.json')
    setup_logging(settings)
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOG_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | '
    '<cyan>{extra[site]}</cyan> | <level>{message}</level>'
)


class BetSyncSettings(BaseSettings):
    """Runtime settings for the session orchestrator and its workflows."""

    model_config = SettingsConfigDict(
        env_prefix='BETSYNC_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    # Stores
    sites_file: Path = Field(
        Path('./config/sites.json'), description='JSON file with site configs'
    )
    proxies_file: Path = Field(
        Path('./config/proxies.json'), description='JSON file with proxy configs'
    )
    session_dir: Path = Field(
        Path('./data/sessions'), description='Directory for saved browser sessions'
    )

    # Browser
    headless: bool = Field(
        False, description='Run headless (manual login/CAPTCHA needs a window)'
    )
    default_timeout_ms: int = Field(30000, description='Default Playwright timeout')
    max_concurrent_browsers: int = Field(5, description='Browser pool size')
    pool_timeout_s: float = Field(
        30.0, description='Max wait for a free browser slot'
    )
    viewport_width: int = Field(1920, description='Viewport width in pixels')
    viewport_height: int = Field(1080, description='Viewport height in pixels')
    user_agent: str | None = Field(None, description='Custom user agent string')

    # Workflow bounds
    challenge_timeout_s: float = Field(60.0, description='Max wait for a CAPTCHA')
    challenge_poll_interval_s: float = Field(
        2.0, description='Polling interval while waiting on a CAPTCHA'
    )
    manual_login_timeout_s: float = Field(
        300.0, description='Max wait for a user to finish a manual login'
    )
    max_history_pages: int = Field(50, description='Pagination safety bound')
    max_scroll_attempts: int = Field(5, description='Infinite-scroll attempts')
    scroll_settle_ms: int = Field(800, description='Pause after each scroll')

    # Logging
    log_level: str = Field('INFO', description='Console log level')
    log_file: Path | None = Field(None, description='Optional log file path')
    log_format: str = Field(DEFAULT_LOG_FORMAT, description='loguru format string')


def setup_logging(settings: BetSyncSettings) -> None:
    """Set up loguru handlers from the settings.

    Args:
        settings: Settings carrying ``log_level``, ``log_file`` and ``log_format``.

    Example:
        >>> setup_logging(BetSyncSettings(log_level='DEBUG'))
    """
    logger.remove()
    logger.configure(extra={'site': '-'})
    logger.add(
        sys.stderr,
        format=settings.log_format,
        level=settings.log_level,
        colorize=True,
    )

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            format=settings.log_format,
            level=settings.log_level,
            rotation='10 MB',
        )
