"""
Pinnacle workflow for the probet42 mirror site.

Site structure (as of Dec 2024):
- Login: header fields (#loginId, #pass) plus a "SIGN IN" button
- Logged in: login fields replaced with account info / balance
- Bet history and balance: not mapped yet, reported as not supported
"""

from __future__ import annotations

from typing import ClassVar

from betsync.browser.locators import LocatorChain
from betsync.workflows.base import MissingCredentialsPolicy, SiteWorkflow


class PinnacleWorkflow(SiteWorkflow):
    """
    Login-only adapter for probet42.

    Without stored credentials (or when auto-login does not stick, e.g. a
    2FA prompt) the workflow waits for the user to log in by hand in the
    browser window. Ambiguous pages, where neither the login form nor
    account UI is visible, count as logged out.
    """

    DEFAULT_URL: ClassVar[str] = 'https://probet42.com'
    MISSING_CREDENTIALS = MissingCredentialsPolicy.MANUAL

    USERNAME_FIELD = LocatorChain.of(
        'username field', '#loginId', 'input[placeholder="Username"]'
    )
    PASSWORD_FIELD = LocatorChain.of(
        'password field', '#pass', 'input[type="password"]'
    )
    SUBMIT_BUTTON = LocatorChain.of('sign-in button', 'button:has-text("SIGN IN")')

    LOGGED_OUT_SIGNALS = LocatorChain.of(
        'login form',
        'button:has-text("SIGN IN")',
        'input[placeholder="Username"]',
        'input[type="password"]',
    )
    LOGGED_IN_SIGNALS = LocatorChain.of(
        'account UI',
        '.account-menu, .user-menu, .balance',
        '[data-action="logout"], .logout, a[href*="logout"]',
    )

    async def is_logged_in(self) -> bool:
        if await self.LOGGED_OUT_SIGNALS.any_present(self.page):
            return False
        return await self.LOGGED_IN_SIGNALS.any_present(self.page)

    async def enter_credentials(self, username: str, password: str) -> None:
        await self.page.wait_for(self.USERNAME_FIELD.candidates[0], timeout_ms=5000)
        await super().enter_credentials(username, password)
