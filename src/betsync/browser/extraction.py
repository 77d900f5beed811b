"""
History extraction drivers.

Two strategies cover the result surfaces seen on betting sites:

- **Paginated**: extract the current page, click the next-page control,
  repeat until no enabled control remains.
- **Infinite scroll**: scroll the results container a bounded number of
  times, then extract the accumulated DOM once.

Both work on raw rows (plain dicts read out of the DOM) so the stuck-page
comparison is not confused by parse-time values. Turning rows into
``BetHistoryItem``s is the job of ``betsync.browser.parsing``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger

from betsync.browser.locators import LocatorChain
from betsync.browser.page import BrowserPage
from betsync.browser.pacing import Pacer

Row = dict[str, Any]
RowExtractor = Callable[[], Awaitable[list[Row]]]
PageCallback = Callable[[int, int], None]


@dataclass
class ExtractionOutcome:
    """Rows collected by a driver plus how the driver stopped."""

    rows: list[Row] = field(default_factory=list)
    pages: int = 0
    scrolls: int = 0
    stop_reason: str = ''


async def collect_paginated(
    page: BrowserPage,
    extract_rows: RowExtractor,
    next_control: LocatorChain,
    pacer: Pacer,
    max_pages: int = 50,
    settle_ms: int = 1500,
    on_page: PageCallback | None = None,
) -> ExtractionOutcome:
    """
    Walk a paginated result list.

    Stops when no enabled next control exists, when a page yields exactly
    the rows of the page before it (a next control that does not advance),
    or after ``max_pages`` pages.

    Args:
        page: Page positioned on the first result page
        extract_rows: Reads the rows of the current page
        next_control: Candidate selectors for the next-page control
        pacer: Pacer used for the post-click settle wait
        max_pages: Hard bound on pages visited
        settle_ms: Wait after activating the next control
        on_page: Called with ``(page_number, rows_on_page)`` after each page

    Returns:
        ExtractionOutcome: Rows in source order
    """
    outcome = ExtractionOutcome()
    previous: list[Row] | None = None

    while outcome.pages < max_pages:
        rows = await extract_rows()

        if previous is not None and rows == previous:
            outcome.stop_reason = 'stuck'
            logger.warning(
                f'Page {outcome.pages + 1} repeated the previous page; stopping'
            )
            break

        outcome.pages += 1
        outcome.rows.extend(rows)
        previous = rows
        if on_page:
            on_page(outcome.pages, len(rows))

        next_selector = await _enabled_control(page, next_control)
        if next_selector is None:
            outcome.stop_reason = 'last_page'
            break

        await page.click(next_selector)
        await pacer.pause(settle_ms)
    else:
        outcome.stop_reason = 'max_pages'
        logger.warning(f'Stopped pagination at the {max_pages} page limit')

    return outcome


async def _enabled_control(page: BrowserPage, control: LocatorChain) -> str | None:
    for selector in control.candidates:
        if await page.is_enabled(selector):
            return selector
    return None


async def collect_infinite_scroll(
    page: BrowserPage,
    extract_rows: RowExtractor,
    pacer: Pacer,
    max_scrolls: int = 5,
    settle_ms: int = 800,
    container: str | None = None,
) -> ExtractionOutcome:
    """
    Load a lazily-appended result list by scrolling, then extract once.

    Exactly ``max_scrolls`` scrolls are performed, whether or not the site
    keeps appending content.

    Args:
        page: Page positioned on the result list
        extract_rows: Reads all rows currently in the DOM
        pacer: Pacer used for the settle wait after each scroll
        max_scrolls: Number of scroll attempts
        settle_ms: Wait after each scroll for new rows to render
        container: Scrollable container selector (window when None)

    Returns:
        ExtractionOutcome: All rows present after the last scroll
    """
    outcome = ExtractionOutcome()
    for _ in range(max_scrolls):
        await page.scroll_to_bottom(container)
        await pacer.pause(settle_ms)
        outcome.scrolls += 1

    outcome.rows = await extract_rows()
    outcome.pages = 1
    outcome.stop_reason = 'scroll_limit'
    logger.debug(
        f'Infinite scroll finished after {outcome.scrolls} scrolls '
        f'({len(outcome.rows)} rows)'
    )
    return outcome
