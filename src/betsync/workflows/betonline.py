"""
BetOnline workflow for the betonline.ag betting site.

Site structure (as of Dec 2024):
- Login: LOGIN button opens a Keycloak form (#username, #password, #kc-login),
  sometimes guarded by reCAPTCHA
- Promotional popups after login ("GOT IT")
- Logged in: balance visible in the header, account dropdown available
- History: balance dropdown -> "Bet History" (Angular app with infinite scroll,
  no date filter in the UI)
"""

from __future__ import annotations

import re
from typing import ClassVar

from loguru import logger

from betsync.browser.extraction import Row
from betsync.browser.locators import LocatorChain
from betsync.browser.parsing import RowParser, parse_currency
from betsync.schemas import BetHistoryItem
from betsync.workflows.base import HistoryMode, SiteWorkflow

_BET_ROWS = """
() => Array.from(document.querySelectorAll('.bet-history__table__body__rows')).map((row) => {
    const cols = row.querySelectorAll('.bet-history__table__body__rows__columns > div');
    const text = (i) => cols[i]?.textContent?.trim() || null;
    return {
        ticket: text(0),
        date: text(1),
        description: text(2),
        betType: text(4),
        amount: text(5),
        toWin: text(6),
    };
})
"""

_MONEY = re.compile(r'\$[\d,]+\.\d+')
_DATE_FORMATS = [
    '%m/%d/%Y %I:%M %p',
    '%m/%d/%Y %H:%M',
    '%m/%d/%Y',
    '%b %d, %Y %I:%M %p',
    '%b %d, %Y',
]


class BetOnlineWorkflow(SiteWorkflow):
    """
    Credential login with reCAPTCHA wait, plus infinite-scroll history.

    Ambiguous pages count as logged out: the balance widget has to be
    visible before the session is trusted. Missing credentials fail with
    ``no_credentials``. Date ranges are applied to the scraped records since
    the history page cannot filter.
    """

    DEFAULT_URL: ClassVar[str] = 'https://www.betonline.ag'

    LOGIN_BUTTON = LocatorChain.of(
        'login button', 'button:has-text("LOGIN")', 'a:has-text("LOGIN")'
    )
    USERNAME_FIELD = LocatorChain.of('username field', '#username')
    PASSWORD_FIELD = LocatorChain.of('password field', '#password')
    SUBMIT_BUTTON = LocatorChain.of('login submit', '#kc-login')
    POPUP_DISMISS = LocatorChain.of('promo popup', 'button:has-text("GOT IT")')

    LOGGED_OUT_SIGNALS = LocatorChain.of(
        'login entry', 'button:has-text("LOGIN"), a:has-text("LOGIN")', '#kc-login'
    )
    BALANCE = LocatorChain.of(
        'balance', '[class*="balance"]', '[class*="account-info"]'
    )
    BET_HISTORY_LINK = LocatorChain.of('bet history link', 'text=Bet History')

    HISTORY_MODE = HistoryMode.INFINITE_SCROLL
    HISTORY_ROWS_SCRIPT = _BET_ROWS
    SUPPORTS_DATE_FILTER = False

    async def is_logged_in(self) -> bool:
        if await self.LOGGED_OUT_SIGNALS.any_present(self.page):
            return False
        return await self.BALANCE.any_present(self.page)

    async def open_login_form(self) -> None:
        if await self.LOGIN_BUTTON.any_present(self.page):
            await self.LOGIN_BUTTON.click(self.page)
            await self.pacer.delay(1500, 2500)
        await self.page.wait_for(self.USERNAME_FIELD.candidates[0], timeout_ms=5000)

    async def after_login_submitted(self) -> None:
        if await self.POPUP_DISMISS.any_present(self.page):
            logger.debug(f'Dismissing promotional popup on {self.name}')
            await self.POPUP_DISMISS.click(self.page)
            await self.pacer.delay(400, 800)

    async def open_history(self) -> None:
        await self.BALANCE.click(self.page)
        await self.pacer.pause(1000)
        await self.BET_HISTORY_LINK.click(self.page)
        await self.pacer.pause(2000)

    def parse_row(self, row: Row, parser: RowParser) -> BetHistoryItem:
        ticket = row.get('ticket') or ''
        bet_id = re.sub(r'[^\d-]', '', ticket) or None

        amount_text = row.get('amount') or ''
        stakes = _MONEY.findall(amount_text)
        stake = parser.amount('stake', stakes[0]) if stakes else None
        to_win = _MONEY.search(row.get('toWin') or '')
        potential_win = parser.amount('to win', to_win.group(0)) if to_win else None

        return parser.build(
            bet_id=bet_id,
            placed_at=parser.timestamp('placed at', row.get('date'), _DATE_FORMATS),
            event=row.get('description'),
            bet_type=row.get('betType'),
            stake=stake,
            potential_win=potential_win,
            currency=parse_currency(amount_text),
            status=parser.status('status', _status_text(amount_text)),
        )


def _status_text(amount_text: str) -> str:
    if 'Won' in amount_text:
        return 'won'
    if 'Lost' in amount_text:
        return 'lost'
    if 'Cancel' in amount_text:
        return 'void'
    if 'Cash' in amount_text:
        return 'cashout'
    return 'pending'
