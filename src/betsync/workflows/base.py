"""
Site workflow contract.

A ``SiteWorkflow`` drives one betting site through a login state machine
and extracts its bet history. Concrete adapters declare their locators and
row parsing; the login sequence, challenge wait, extraction drivers and
error conversion live here so every adapter behaves the same way.

State machine::

    UNKNOWN -> LOGGED_OUT -> AUTHENTICATING -> LOGGED_IN
                                  |    ^
                                  v    |
                          AWAITING_CHALLENGE

Every public operation returns a ``WorkflowResult``; failures inside the
workflow are converted to failed results and never raised to the caller.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar

from loguru import logger

from betsync.browser.extraction import (
    ExtractionOutcome,
    Row,
    collect_infinite_scroll,
    collect_paginated,
)
from betsync.browser.locators import LocatorChain
from betsync.browser.pacing import Pacer
from betsync.browser.page import BrowserPage
from betsync.browser.parsing import RowParser, dedupe_by_bet_id, filter_by_date
from betsync.config import BetSyncSettings
from betsync.errors import LocatorNotFoundError, WorkflowStateError
from betsync.events import EventBus, EventKind
from betsync.schemas import (
    NO_CREDENTIALS_MESSAGE,
    NOT_LOGGED_IN_MESSAGE,
    BetHistoryItem,
    ErrorCode,
    SiteConfig,
    WorkflowResult,
    WorkflowState,
)

SessionSaver = Callable[[], Awaitable[None]]

ALLOWED_TRANSITIONS: dict[WorkflowState, set[WorkflowState]] = {
    WorkflowState.UNKNOWN: {WorkflowState.LOGGED_OUT, WorkflowState.LOGGED_IN},
    WorkflowState.LOGGED_OUT: {
        WorkflowState.LOGGED_IN,
        WorkflowState.AUTHENTICATING,
        WorkflowState.UNKNOWN,
    },
    WorkflowState.AUTHENTICATING: {
        WorkflowState.AWAITING_CHALLENGE,
        WorkflowState.LOGGED_IN,
        WorkflowState.LOGGED_OUT,
    },
    WorkflowState.AWAITING_CHALLENGE: {
        WorkflowState.AUTHENTICATING,
        WorkflowState.LOGGED_IN,
        WorkflowState.LOGGED_OUT,
    },
    WorkflowState.LOGGED_IN: {WorkflowState.LOGGED_OUT, WorkflowState.UNKNOWN},
}

_CAPTCHA_SOLVED_SCRIPT = """
() => {
    const response = window.grecaptcha?.getResponse?.();
    return Boolean(response && response.length > 0);
}
"""


class MissingCredentialsPolicy(str, Enum):
    """What ``login()`` does when the site has no stored credentials."""

    FAIL = 'fail'
    MANUAL = 'manual'


class HistoryMode(str, Enum):
    """How a site presents its bet history."""

    PAGINATED = 'paginated'
    INFINITE_SCROLL = 'infinite_scroll'


@dataclass(frozen=True)
class WorkflowLimits:
    """Bounds on every wait and loop a workflow runs."""

    challenge_timeout_s: float = 60.0
    challenge_poll_interval_s: float = 2.0
    manual_login_timeout_s: float = 300.0
    max_history_pages: int = 50
    max_scroll_attempts: int = 5
    scroll_settle_ms: int = 800

    @classmethod
    def from_settings(cls, settings: BetSyncSettings) -> WorkflowLimits:
        return cls(
            challenge_timeout_s=settings.challenge_timeout_s,
            challenge_poll_interval_s=settings.challenge_poll_interval_s,
            manual_login_timeout_s=settings.manual_login_timeout_s,
            max_history_pages=settings.max_history_pages,
            max_scroll_attempts=settings.max_scroll_attempts,
            scroll_settle_ms=settings.scroll_settle_ms,
        )

    def poll_count(self, timeout_s: float) -> int:
        """Number of polls that fit in ``timeout_s`` at the poll interval."""
        return max(1, int(timeout_s / self.challenge_poll_interval_s))


class SiteWorkflow(ABC):
    """
    Base class for one betting site's login and history workflow.

    Subclasses must implement ``is_logged_in`` and declare the login
    locators. To support history they override ``open_history`` and
    ``parse_row`` (and ``apply_date_filter`` when the site can filter).

    ``is_logged_in`` must only inspect the page: no navigation, no clicks.
    """

    DEFAULT_URL: ClassVar[str] = ''
    MISSING_CREDENTIALS: ClassVar[MissingCredentialsPolicy] = (
        MissingCredentialsPolicy.FAIL
    )

    USERNAME_FIELD: ClassVar[LocatorChain | None] = None
    PASSWORD_FIELD: ClassVar[LocatorChain | None] = None
    SUBMIT_BUTTON: ClassVar[LocatorChain | None] = None
    CHALLENGE: ClassVar[LocatorChain] = LocatorChain.of(
        'captcha challenge',
        'iframe[src*="recaptcha"]',
        '.g-recaptcha',
        '#recaptcha',
    )

    HISTORY_MODE: ClassVar[HistoryMode] = HistoryMode.PAGINATED
    HISTORY_ROWS_SCRIPT: ClassVar[str] = ''
    NEXT_PAGE: ClassVar[LocatorChain | None] = None
    SCROLL_CONTAINER: ClassVar[str | None] = None
    SUPPORTS_DATE_FILTER: ClassVar[bool] = False
    PAGE_SETTLE_MS: ClassVar[int] = 1500

    def __init__(
        self,
        config: SiteConfig,
        page: BrowserPage,
        pacer: Pacer | None = None,
        events: EventBus | None = None,
        limits: WorkflowLimits | None = None,
        save_session: SessionSaver | None = None,
    ):
        """
        Bind a site config to a live page.

        Args:
            config: Site being driven; copied so later edits do not leak in
            page: Browser page owned by this workflow
            pacer: Delay source between simulated user actions
            events: Event bus for progress reporting
            limits: Bounds for challenge waits and extraction loops
            save_session: Coroutine persisting the page's session state
        """
        if not config.base_url and self.DEFAULT_URL:
            config = config.model_copy(update={'base_url': self.DEFAULT_URL})
        self.config = config.model_copy(deep=True)
        self.page = page
        self.pacer = pacer or Pacer()
        self.events = events or EventBus.with_logging()
        self.limits = limits or WorkflowLimits()
        self._save_session = save_session
        self.state = WorkflowState.UNKNOWN
        self.history_window: tuple[date | None, date | None] = (None, None)
        self.lock = asyncio.Lock()

    @property
    def site_id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    def _emit(self, kind: EventKind, message: str, **data: Any) -> None:
        self.events.emit(self.site_id, kind, message, **data)

    def _transition(self, target: WorkflowState) -> None:
        if target == self.state:
            return
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise WorkflowStateError(self.state.value, target.value)
        previous, self.state = self.state, target
        self._emit(
            EventKind.STATE_CHANGED,
            f'{self.name}: {previous.value} -> {target.value}',
            previous=previous.value,
            state=target.value,
        )

    def _abandon_login(self) -> None:
        """Return to LOGGED_OUT after a login attempt stopped midway."""
        if self.state in (
            WorkflowState.AUTHENTICATING,
            WorkflowState.AWAITING_CHALLENGE,
        ):
            self._transition(WorkflowState.LOGGED_OUT)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the site's entry page; login status becomes unknown."""
        await self.page.goto(self.config.base_url)
        if self.state != WorkflowState.UNKNOWN:
            self._transition(WorkflowState.UNKNOWN)

    # ------------------------------------------------------------------
    # Login detection
    # ------------------------------------------------------------------

    @abstractmethod
    async def is_logged_in(self) -> bool:
        """Probe the current page for login signals without touching it."""

    async def check_login(self) -> bool:
        """Run ``is_logged_in`` and record the outcome in the state machine."""
        logged_in = await self.is_logged_in()
        if self.state not in (
            WorkflowState.AUTHENTICATING,
            WorkflowState.AWAITING_CHALLENGE,
        ):
            self._transition(
                WorkflowState.LOGGED_IN if logged_in else WorkflowState.LOGGED_OUT
            )
        return logged_in

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self) -> WorkflowResult[None]:
        """
        Authenticate unless the page already shows a logged-in session.

        Returns:
            WorkflowResult: success once logged in, otherwise a failure with
            one of ``no_credentials``, ``login_failed``, ``challenge_timeout``,
            ``manual_login_timeout``, ``element_not_found`` or
            ``browser_error``
        """
        try:
            if await self.check_login():
                return WorkflowResult.ok()

            if not self.config.has_credentials:
                return await self._login_without_credentials()
            return await self._login_with_credentials()

        except LocatorNotFoundError as e:
            self._abandon_login()
            return self._login_failure(e.message, ErrorCode.ELEMENT_NOT_FOUND)
        except Exception as e:
            logger.exception(f'Login error for {self.name}')
            self._abandon_login()
            return self._login_failure(str(e), ErrorCode.BROWSER_ERROR)

    def _login_failure(self, message: str, code: ErrorCode) -> WorkflowResult[None]:
        self._emit(EventKind.LOGIN_FAILED, f'Login failed for {self.name}: {message}')
        return WorkflowResult.fail(message, code)

    async def _login_without_credentials(self) -> WorkflowResult[None]:
        if self.MISSING_CREDENTIALS is MissingCredentialsPolicy.MANUAL:
            self._transition(WorkflowState.AUTHENTICATING)
            return await self._wait_for_manual_login()
        return self._login_failure(NO_CREDENTIALS_MESSAGE, ErrorCode.NO_CREDENTIALS)

    async def _login_with_credentials(self) -> WorkflowResult[None]:
        self._transition(WorkflowState.AUTHENTICATING)
        self._emit(EventKind.LOGIN_STARTED, f'Attempting auto-login for {self.name}')

        await self.open_login_form()
        await self.enter_credentials(self.config.username, self.config.password)

        if await self.CHALLENGE.any_present(self.page):
            outcome = await self._await_challenge()
            if outcome is WorkflowState.LOGGED_IN:
                return await self._confirm_login()
            if outcome is None:
                self._transition(WorkflowState.LOGGED_OUT)
                return self._login_failure(
                    'Challenge not resolved within '
                    f'{self.limits.challenge_timeout_s:g}s',
                    ErrorCode.CHALLENGE_TIMEOUT,
                )

        await self.submit_login()
        await self.pacer.delay(2500, 4000)
        await self.after_login_submitted()

        if await self.is_logged_in():
            return await self._confirm_login()

        if self.MISSING_CREDENTIALS is MissingCredentialsPolicy.MANUAL:
            logger.warning(
                f'Auto-login for {self.name} did not complete; '
                'falling back to manual login'
            )
            return await self._wait_for_manual_login()

        self._transition(WorkflowState.LOGGED_OUT)
        return self._login_failure(
            'Login submitted but the site still reports a logged-out session',
            ErrorCode.LOGIN_FAILED,
        )

    async def _await_challenge(self) -> WorkflowState | None:
        """
        Wait for a human to solve the challenge.

        Returns:
            LOGGED_IN if the session became authenticated while waiting,
            AUTHENTICATING if the challenge was solved and submission should
            continue, or None on timeout
        """
        self._transition(WorkflowState.AWAITING_CHALLENGE)
        self._emit(
            EventKind.CHALLENGE_DETECTED,
            f'Challenge detected on {self.name}; waiting for manual solve',
            timeout_s=self.limits.challenge_timeout_s,
        )

        interval_ms = self.limits.challenge_poll_interval_s * 1000
        for attempt in range(self.limits.poll_count(self.limits.challenge_timeout_s)):
            if await self.is_logged_in():
                return WorkflowState.LOGGED_IN
            if await self.challenge_solved():
                self._transition(WorkflowState.AUTHENTICATING)
                self._emit(
                    EventKind.CHALLENGE_RESOLVED,
                    f'Challenge solved on {self.name}',
                    polls=attempt + 1,
                )
                return WorkflowState.AUTHENTICATING
            await self.pacer.pause(interval_ms)

        return None

    async def _wait_for_manual_login(self) -> WorkflowResult[None]:
        self._emit(
            EventKind.LOGIN_STARTED,
            f'Waiting for manual login on {self.name}',
            timeout_s=self.limits.manual_login_timeout_s,
        )
        interval_ms = self.limits.challenge_poll_interval_s * 1000
        for _ in range(self.limits.poll_count(self.limits.manual_login_timeout_s)):
            if await self.is_logged_in():
                return await self._confirm_login()
            await self.pacer.pause(interval_ms)

        self._transition(WorkflowState.LOGGED_OUT)
        return self._login_failure(
            f'Manual login not completed within '
            f'{self.limits.manual_login_timeout_s:g}s',
            ErrorCode.MANUAL_LOGIN_TIMEOUT,
        )

    async def _confirm_login(self) -> WorkflowResult[None]:
        self._transition(WorkflowState.LOGGED_IN)
        self._emit(EventKind.LOGIN_SUCCEEDED, f'Logged in to {self.name}')
        warnings = []
        if self._save_session is not None:
            try:
                await self._save_session()
            except Exception as e:
                logger.warning(f'Could not persist session for {self.name}: {e}')
                warnings.append(f'Session not saved: {e}')
        return WorkflowResult.ok(warnings=warnings)

    # Login hooks; adapters override where their site differs.

    async def open_login_form(self) -> None:
        """Reveal the login form (default: the form is already on the page)."""

    async def enter_credentials(self, username: str, password: str) -> None:
        if self.USERNAME_FIELD is None or self.PASSWORD_FIELD is None:
            raise NotImplementedError(f'{type(self).__name__} declares no login form')
        await self.USERNAME_FIELD.type_text(self.page, username)
        await self.pacer.delay(1200, 2500)
        await self.PASSWORD_FIELD.type_text(self.page, password)
        await self.pacer.delay(800, 1800)

    async def submit_login(self) -> None:
        if self.SUBMIT_BUTTON is None:
            raise NotImplementedError(
                f'{type(self).__name__} declares no submit button'
            )
        await self.SUBMIT_BUTTON.click(self.page)

    async def after_login_submitted(self) -> None:
        """Handle post-login interstitials such as promo popups."""

    async def challenge_solved(self) -> bool:
        """Whether the reCAPTCHA widget holds a response token."""
        try:
            return bool(await self.page.evaluate(_CAPTCHA_SOLVED_SCRIPT))
        except Exception as e:
            logger.debug(f'Challenge probe failed on {self.name}: {e}')
            return False

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def get_history(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> WorkflowResult[list[BetHistoryItem]]:
        """
        Extract bet history, optionally narrowed to a date range.

        Requires an authenticated page; otherwise returns a failure with no
        records. Unparsable fields are left as None and listed in
        ``warnings``.
        """
        try:
            if not await self.check_login():
                return WorkflowResult.fail(
                    NOT_LOGGED_IN_MESSAGE, ErrorCode.NOT_LOGGED_IN, data=[]
                )

            self.history_window = (date_from, date_to)
            await self.open_history()
            if self.SUPPORTS_DATE_FILTER and (date_from or date_to):
                await self.apply_date_filter(date_from, date_to)

            outcome = await self.collect_rows()
            items, warnings = self._parse_rows(outcome.rows)
            items = dedupe_by_bet_id(items)
            if not self.SUPPORTS_DATE_FILTER:
                items = filter_by_date(items, date_from, date_to)

            self._emit(
                EventKind.HISTORY_COMPLETED,
                f'Extracted {len(items)} bets from {self.name}',
                pages=outcome.pages,
                scrolls=outcome.scrolls,
                stop_reason=outcome.stop_reason,
                warnings=len(warnings),
            )
            return WorkflowResult.ok(items, warnings=warnings)

        except NotImplementedError as e:
            return self._history_failure(str(e), ErrorCode.NOT_SUPPORTED)
        except LocatorNotFoundError as e:
            return self._history_failure(e.message, ErrorCode.ELEMENT_NOT_FOUND)
        except Exception as e:
            logger.exception(f'History extraction error for {self.name}')
            return self._history_failure(str(e), ErrorCode.BROWSER_ERROR)

    def _history_failure(
        self, message: str, code: ErrorCode
    ) -> WorkflowResult[list[BetHistoryItem]]:
        self._emit(
            EventKind.OPERATION_FAILED,
            f'History extraction failed for {self.name}: {message}',
            operation='get_history',
        )
        return WorkflowResult.fail(message, code, data=[])

    async def collect_rows(self) -> ExtractionOutcome:
        """Run the site's extraction strategy over the history surface."""
        if self.HISTORY_MODE is HistoryMode.INFINITE_SCROLL:
            return await collect_infinite_scroll(
                self.page,
                self.extract_rows,
                self.pacer,
                max_scrolls=self.limits.max_scroll_attempts,
                settle_ms=self.limits.scroll_settle_ms,
                container=self.SCROLL_CONTAINER,
            )

        if self.NEXT_PAGE is None:
            raise NotImplementedError(f'{type(self).__name__} declares no next control')
        return await collect_paginated(
            self.page,
            self.extract_rows,
            self.NEXT_PAGE,
            self.pacer,
            max_pages=self.limits.max_history_pages,
            settle_ms=self.PAGE_SETTLE_MS,
            on_page=lambda number, count: self._emit(
                EventKind.HISTORY_PAGE,
                f'{self.name}: page {number} yielded {count} rows',
                page=number,
                rows=count,
            ),
        )

    async def extract_rows(self) -> list[Row]:
        """Read the raw history rows currently in the DOM."""
        if not self.HISTORY_ROWS_SCRIPT:
            raise NotImplementedError(f'{type(self).__name__} declares no row script')
        rows = await self.page.evaluate(self.HISTORY_ROWS_SCRIPT)
        return list(rows or [])

    def _parse_rows(self, rows: list[Row]) -> tuple[list[BetHistoryItem], list[str]]:
        items: list[BetHistoryItem] = []
        warnings: list[str] = []
        for index, row in enumerate(rows, start=1):
            parser = RowParser(self.site_id, row_label=f'row {index}')
            try:
                items.append(self.parse_row(row, parser))
            except (KeyError, TypeError, ValueError) as e:
                warnings.append(f'row {index}: skipped ({e})')
                continue
            warnings.extend(parser.warnings)
        return items, warnings

    async def open_history(self) -> None:
        """Navigate to the bet-history surface."""
        raise NotImplementedError(
            f'Bet history navigation is not implemented for {self.name}'
        )

    async def apply_date_filter(
        self, date_from: date | None, date_to: date | None
    ) -> None:
        """Narrow the history surface to a date range in the site UI."""
        raise NotImplementedError(f'{self.name} does not support date filtering')

    def parse_row(self, row: Row, parser: RowParser) -> BetHistoryItem:
        """Map one raw row onto a ``BetHistoryItem``."""
        raise NotImplementedError(f'Row parsing is not implemented for {self.name}')

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    async def get_balance(self) -> WorkflowResult[dict[str, Any]]:
        """Current account balance; adapters override where supported."""
        try:
            if not await self.check_login():
                return WorkflowResult.fail(
                    NOT_LOGGED_IN_MESSAGE, ErrorCode.NOT_LOGGED_IN
                )
            return WorkflowResult.ok(await self.read_balance())
        except NotImplementedError as e:
            return WorkflowResult.fail(str(e), ErrorCode.NOT_SUPPORTED)
        except Exception as e:
            logger.exception(f'Balance lookup error for {self.name}')
            return WorkflowResult.fail(str(e), ErrorCode.BROWSER_ERROR)

    async def read_balance(self) -> dict[str, Any]:
        raise NotImplementedError(f'Balance lookup is not implemented for {self.name}')

    async def screenshot(self, path: str | None = None) -> bytes:
        """Capture the current page, e.g. to work out selectors."""
        data = await self.page.screenshot(path=path)
        if path:
            logger.info(f'Screenshot saved: {path}')
        return data
