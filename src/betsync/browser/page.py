"""
Page-level browser capability.

Workflows drive a page only through the ``BrowserPage`` protocol, so any
object with these coroutines (a Playwright page wrapper in production, an
in-memory fake in tests) can stand behind a workflow.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from loguru import logger
from playwright.async_api import (
    BrowserContext,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

_SCROLL_TO_BOTTOM = """
(container) => {
    const el = container ? document.querySelector(container) : null;
    if (el) {
        el.scrollTop = el.scrollHeight;
    } else {
        window.scrollTo(0, document.body.scrollHeight);
    }
}
"""


@runtime_checkable
class BrowserPage(Protocol):
    """Browser primitives a site workflow may use."""

    @property
    def url(self) -> str: ...

    async def goto(self, url: str) -> None: ...

    async def exists(self, selector: str) -> bool: ...

    async def is_enabled(self, selector: str) -> bool: ...

    async def click(self, selector: str) -> None: ...

    async def type_text(self, selector: str, text: str) -> None: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def wait_for(self, selector: str, timeout_ms: int = 5000) -> bool: ...

    async def scroll_to_bottom(self, container: str | None = None) -> None: ...

    async def screenshot(self, path: str | None = None) -> bytes: ...

    async def export_state(self) -> dict[str, Any]: ...

    async def close(self) -> None: ...


class PlaywrightPage:
    """``BrowserPage`` implementation over a Playwright page and its context.

    Each instance owns an isolated context; closing the page hands the
    context back to the ``BrowserManager`` through ``on_close``.
    """

    def __init__(
        self,
        page: Page,
        context: BrowserContext,
        on_close: Callable[[BrowserContext], Awaitable[None]] | None = None,
        keystroke_delay_ms: int = 50,
    ):
        self.page = page
        self.context = context
        self._on_close = on_close
        self._closed = False
        self.keystroke_delay_ms = keystroke_delay_ms

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str) -> None:
        await self.page.goto(url, wait_until='domcontentloaded')

    async def exists(self, selector: str) -> bool:
        return await self.page.locator(selector).count() > 0

    async def is_enabled(self, selector: str) -> bool:
        matches = self.page.locator(selector)
        if await matches.count() == 0:
            return False
        return await matches.first.is_enabled()

    async def click(self, selector: str) -> None:
        await self.page.locator(selector).first.click()

    async def type_text(self, selector: str, text: str) -> None:
        field = self.page.locator(selector).first
        await field.fill('')
        await field.press_sequentially(text, delay=self.keystroke_delay_ms)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def wait_for(self, selector: str, timeout_ms: int = 5000) -> bool:
        try:
            await self.page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            logger.debug(f'Timed out waiting for selector: {selector}')
            return False

    async def scroll_to_bottom(self, container: str | None = None) -> None:
        await self.page.evaluate(_SCROLL_TO_BOTTOM, container)

    async def screenshot(self, path: str | None = None) -> bytes:
        return await self.page.screenshot(path=path, full_page=False)

    async def export_state(self) -> dict[str, Any]:
        """Cookies and localStorage of this page's context."""
        return await self.context.storage_state()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            await self._on_close(self.context)
        else:
            await self.context.close()
