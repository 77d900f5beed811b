"""
Sports411 workflow for the sports411.ag betting site.

Site structure (as of Dec 2024):
- Login: #account (username), #password, input.btn.login (submit)
- Logged in: account number in the header, balance dropdown present
- History: Angular SPA reached through the "History" link, with a custom
  date range and numbered pages (#nextBtn)
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import ClassVar

from betsync.browser.extraction import Row
from betsync.browser.locators import LocatorChain
from betsync.browser.parsing import RowParser, parse_currency
from betsync.schemas import BetHistoryItem, BetStatus
from betsync.workflows.base import HistoryMode, SiteWorkflow

_SET_DATE_RANGE = """
([from, to]) => {
    const startInput = document.querySelector('#start');
    const endInput = document.querySelector('#end');
    if (startInput) startInput.value = from;
    if (endInput) endInput.value = to;
    startInput?.dispatchEvent(new Event('change', { bubbles: true }));
    endInput?.dispatchEvent(new Event('change', { bubbles: true }));
}
"""

_TICKET_ROWS = """
() => Array.from(document.querySelectorAll('app-history-ticket .ticket')).map((t) => {
    const header = t.querySelector('.date-data')?.textContent || '';
    const ticket = header.match(/Ticket # (\\d+)/);
    const placed = header.match(/(\\d+\\/\\d+)@(\\d+:\\d+ [AP]M)/);
    const amounts = t.querySelectorAll('.col-2 .amount');
    return {
        betId: ticket ? ticket[1] : null,
        betType: t.querySelector('.bet-type')?.textContent?.trim() || null,
        selection: t.querySelector('.game')?.textContent?.trim() || null,
        date: placed ? placed[1] : null,
        time: placed ? placed[2] : null,
        riskWin: amounts[0]?.textContent?.trim() || null,
        winLoss: amounts[1]?.textContent?.trim() || null,
    };
})
"""

_AMOUNTS = re.compile(r'-?\$?\s?[\d,]+(?:\.\d+)?')


class Sports411Workflow(SiteWorkflow):
    """
    Credential login plus paginated history for sports411.

    Ambiguous pages count as logged in: the header markup varies between
    sections, so only the presence of the login form proves a logged-out
    session. Missing credentials fail with ``no_credentials``.
    """

    DEFAULT_URL: ClassVar[str] = 'https://sports411.ag'

    USERNAME_FIELD = LocatorChain.of(
        'account field',
        'input[placeholder="Account"]',
        'input[name="account"]',
        '#account',
    )
    PASSWORD_FIELD = LocatorChain.of(
        'password field',
        'input[placeholder="Password"]',
        'input[name="password"]',
        '#password',
        'input[type="password"]',
    )
    SUBMIT_BUTTON = LocatorChain.of(
        'login button',
        'button:has-text("LOG IN")',
        'input[value="LOG IN"]',
        'input.btn.login',
        '.login-btn',
    )
    LOGGED_OUT_SIGNALS = LocatorChain.of(
        'login form',
        'input[placeholder="Account"], input[name="account"]',
        'button:has-text("LOG IN"), input[value="LOG IN"]',
    )

    HISTORY_MODE = HistoryMode.PAGINATED
    HISTORY_ROWS_SCRIPT = _TICKET_ROWS
    NEXT_PAGE = LocatorChain.of('next page', '#nextBtn a:not(.disabled)')
    SUPPORTS_DATE_FILTER = True
    PAGE_SETTLE_MS = 1500

    HISTORY_LINK = LocatorChain.of('history link', 'text=History', 'a[href*="history"]')
    CUSTOM_RANGE_BUTTON = LocatorChain.of(
        'custom range button', 'button:has-text("Custom Range")'
    )

    async def is_logged_in(self) -> bool:
        return not await self.LOGGED_OUT_SIGNALS.any_present(self.page)

    async def open_history(self) -> None:
        await self.HISTORY_LINK.click(self.page)
        await self.pacer.pause(2000)

    async def apply_date_filter(
        self, date_from: date | None, date_to: date | None
    ) -> None:
        start = date_from or date_to
        end = date_to or date.today()
        await self.page.evaluate(
            _SET_DATE_RANGE, [start.isoformat()[:10], end.isoformat()[:10]]
        )
        await self.CUSTOM_RANGE_BUTTON.click(self.page)
        await self.pacer.pause(2000)

    def parse_row(self, row: Row, parser: RowParser) -> BetHistoryItem:
        risk_win = row.get('riskWin') or ''
        amounts = _AMOUNTS.findall(risk_win)
        stake = parser.amount('stake', amounts[0] if amounts else risk_win)
        potential_win = None
        if len(amounts) > 1:
            potential_win = parser.amount('potential win', amounts[1])
        result = parser.amount('win/loss', row.get('winLoss'))

        placed_text = ' '.join(p for p in (row.get('date'), row.get('time')) if p)
        placed_at = parser.recent_timestamp(
            'placed at',
            placed_text,
            ['%m/%d %I:%M %p', '%m/%d'],
            anchor=self._year_anchor(),
        )

        return parser.build(
            bet_id=row.get('betId'),
            placed_at=placed_at,
            bet_type=row.get('betType'),
            selection=row.get('selection'),
            stake=stake,
            potential_win=potential_win,
            currency=parse_currency(risk_win),
            result=result,
            status=_status_from_result(result),
        )

    def _year_anchor(self) -> date:
        # tickets print MM/DD only; the range end (or today) fixes the year
        date_to = self.history_window[1]
        if isinstance(date_to, datetime):
            date_to = date_to.date()
        return date_to or date.today()


def _status_from_result(result: float | None) -> BetStatus:
    if result is None:
        return BetStatus.PENDING
    if result > 0:
        return BetStatus.WON
    if result < 0:
        return BetStatus.LOST
    return BetStatus.VOID
