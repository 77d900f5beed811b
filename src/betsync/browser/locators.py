"""
Ordered fallback locators.

Betting sites change their markup often, so each logical element (the
username field, the submit button, ...) is described by several candidate
selectors. Candidates are tried in order and the first one present wins.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from betsync.browser.page import BrowserPage
from betsync.errors import LocatorNotFoundError


@dataclass(frozen=True)
class LocatorChain:
    """
    Candidate selectors for one logical element.

    Example:
        >>> username = LocatorChain(
        ...     'username field',
        ...     ('input[placeholder="Account"]', 'input[name="account"]', '#account'),
        ... )
        >>> selector = await username.resolve(page)
    """

    name: str
    candidates: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError(f'Locator chain {self.name!r} has no candidates')

    @classmethod
    def of(cls, name: str, *candidates: str) -> LocatorChain:
        return cls(name, tuple(candidates))

    async def find(self, page: BrowserPage) -> str | None:
        """Return the first candidate present on the page, or None."""
        for selector in self.candidates:
            if await page.exists(selector):
                return selector
        return None

    async def resolve(self, page: BrowserPage) -> str:
        """
        Return the first candidate present on the page.

        Raises:
            LocatorNotFoundError: If no candidate matches
        """
        selector = await self.find(page)
        if selector is None:
            raise LocatorNotFoundError(self.name, list(self.candidates))
        logger.debug(f'Resolved {self.name} -> {selector}')
        return selector

    async def any_present(self, page: BrowserPage) -> bool:
        return await self.find(page) is not None

    async def click(self, page: BrowserPage) -> str:
        selector = await self.resolve(page)
        await page.click(selector)
        return selector

    async def type_text(self, page: BrowserPage, text: str) -> str:
        selector = await self.resolve(page)
        await page.type_text(selector, text)
        return selector
