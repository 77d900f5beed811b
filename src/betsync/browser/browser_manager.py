"""
Browser Manager for site workflows.

This module manages the Playwright lifecycle and hands out one isolated
browser context (wrapped as a ``PlaywrightPage``) per managed site, with the
site's proxy and saved session applied at creation.
"""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger
from playwright.async_api import BrowserContext, async_playwright

from betsync.browser.page import PlaywrightPage
from betsync.config import BetSyncSettings
from betsync.errors import BrowserManagerError, BrowserPoolExhaustedError
from betsync.schemas import ProxyConfig

_LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--no-sandbox',
    '--disable-setuid-sandbox',
]


class BrowserManager:
    """
    Manages browser lifecycle and pooling for site workflows.

    This class provides:
    - Browser instance pooling (``max_concurrent_browsers`` at once)
    - Proxy and session-state injection per context
    - Proper cleanup to prevent leaked browser processes

    Example:
        >>> manager = BrowserManager()
        >>> await manager.initialize()
        >>> page = await manager.open_page(storage_state=saved)
        >>> # drive the page
        >>> await page.close()
        >>> await manager.shutdown()
    """

    def __init__(
        self,
        settings: BetSyncSettings | None = None,
        max_concurrent_browsers: int | None = None,
        default_timeout: int | None = None,
        pool_timeout_s: float | None = None,
    ):
        """
        Initialize the BrowserManager.

        Args:
            settings: Optional settings object (defaults are used otherwise)
            max_concurrent_browsers: Override for the pool size
            default_timeout: Override for the default timeout in milliseconds
            pool_timeout_s: Override for the wait on a free pool slot
        """
        self.settings = settings or BetSyncSettings()
        self.max_concurrent_browsers = (
            max_concurrent_browsers or self.settings.max_concurrent_browsers
        )
        self.default_timeout = default_timeout or self.settings.default_timeout_ms
        self.pool_timeout_s = pool_timeout_s or self.settings.pool_timeout_s

        self._playwright = None
        self._browser_type = None
        self._active_contexts: dict[str, BrowserContext] = {}
        self._semaphore = asyncio.Semaphore(self.max_concurrent_browsers)

        logger.info(
            f'BrowserManager initialized (max_browsers={self.max_concurrent_browsers}, '
            f'timeout={self.default_timeout}ms)'
        )

    @property
    def is_initialized(self) -> bool:
        return self._browser_type is not None

    async def initialize(self) -> None:
        """
        Start Playwright.

        Raises:
            BrowserManagerError: If Playwright cannot be started
        """
        if self.is_initialized:
            return
        try:
            self._playwright = await async_playwright().start()
            self._browser_type = self._playwright.chromium
            logger.info('Playwright initialized successfully')
        except Exception as e:
            raise BrowserManagerError(f'Failed to initialize Playwright: {e}') from e

    async def open_page(
        self,
        proxy: ProxyConfig | None = None,
        storage_state: dict[str, Any] | None = None,
    ) -> PlaywrightPage:
        """
        Launch an isolated browser context and open a page in it.

        Acquires a pool slot first, waiting at most ``pool_timeout_s``; the
        slot is returned when the page is closed.

        Args:
            proxy: Proxy to route the context through
            storage_state: Previously exported cookies/localStorage to restore

        Returns:
            PlaywrightPage: Page wrapper bound to the new context

        Raises:
            BrowserPoolExhaustedError: If no slot frees up in time
            BrowserManagerError: If the manager is not initialized or the
                browser cannot be launched
        """
        if not self.is_initialized:
            raise BrowserManagerError(
                'BrowserManager not initialized. Call initialize() first.'
            )

        try:
            await asyncio.wait_for(self._semaphore.acquire(), self.pool_timeout_s)
        except asyncio.TimeoutError as e:
            raise BrowserPoolExhaustedError(
                self.pool_timeout_s, self.max_concurrent_browsers
            ) from e

        browser = None
        context = None
        try:
            browser = await self._browser_type.launch(
                headless=self.settings.headless,
                args=_LAUNCH_ARGS,
                proxy=proxy.to_playwright() if proxy else None,
            )
            context = await browser.new_context(
                viewport={
                    'width': self.settings.viewport_width,
                    'height': self.settings.viewport_height,
                },
                user_agent=self.settings.user_agent,
                storage_state=storage_state,
                locale='en-US',
            )
            context.set_default_timeout(self.default_timeout)
            context.set_default_navigation_timeout(self.default_timeout)
            page = await context.new_page()
        except Exception as e:
            await self._discard(browser, context)
            self._semaphore.release()
            raise BrowserManagerError(f'Failed to create browser context: {e}') from e

        context_id = str(id(context))
        self._active_contexts[context_id] = context
        logger.debug(
            f'Created browser context {context_id} '
            f'(active={len(self._active_contexts)}/{self.max_concurrent_browsers}, '
            f'proxy={proxy.name if proxy else None}, '
            f'restored={storage_state is not None})'
        )
        return PlaywrightPage(page, context, on_close=self.cleanup)

    async def _discard(self, browser: Any, context: BrowserContext | None) -> None:
        """Close a half-built context and its browser after a failed open."""
        for resource in (context, browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.error(f'Error discarding browser resource: {e}')

    async def cleanup(self, context: BrowserContext) -> None:
        """
        Close a browser context and release its pool slot.

        Args:
            context: Browser context to clean up
        """
        context_id = str(id(context))
        if context_id not in self._active_contexts:
            return

        try:
            browser = context.browser
            await context.close()
            if browser:
                await browser.close()
        except Exception as e:
            logger.error(f'Error during browser cleanup: {e}')
        finally:
            del self._active_contexts[context_id]
            self._semaphore.release()
            logger.debug(
                f'Cleaned up browser context {context_id} '
                f'(active={len(self._active_contexts)}/{self.max_concurrent_browsers})'
            )

    async def shutdown(self) -> None:
        """
        Close all active contexts and stop Playwright.
        """
        logger.info('Shutting down BrowserManager...')

        for context in list(self._active_contexts.values()):
            await self.cleanup(context)

        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.error(f'Error stopping Playwright: {e}')
        self._playwright = None
        self._browser_type = None

        logger.info('BrowserManager shutdown complete')

    @property
    def active_browser_count(self) -> int:
        """Get the number of currently active browser contexts."""
        return len(self._active_contexts)

    @property
    def available_slots(self) -> int:
        """Get the number of available browser slots."""
        return self.max_concurrent_browsers - len(self._active_contexts)
