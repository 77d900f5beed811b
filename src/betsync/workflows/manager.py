"""
Workflow Manager: one live workflow per betting site.

The manager resolves a site id to its ``SiteWorkflow``, creating it on first
use with a page bound to the site's proxy and saved session, persists the
session after each confirmed login, and exposes the same call surface for
every site. It does not retry anything; callers decide on retries.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import date
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from betsync.browser.browser_manager import BrowserManager
from betsync.browser.pacing import Pacer
from betsync.browser.page import BrowserPage
from betsync.browser.session_store import FileSessionStore, SessionStore
from betsync.config import BetSyncSettings
from betsync.config_store import SiteConfigStore
from betsync.errors import (
    BetSyncError,
    BrowserManagerError,
    BrowserPoolExhaustedError,
    NoWorkflowError,
    UnknownSiteError,
)
from betsync.events import EventBus, EventKind
from betsync.schemas import BetHistoryItem, ErrorCode, WorkflowResult
from betsync.workflows.base import SiteWorkflow, WorkflowLimits
from betsync.workflows.registry import WorkflowRegistry, default_registry

R = TypeVar('R')


class WorkflowManager:
    """
    Routes operations to per-site workflows and owns their lifecycle.

    Workflows for different sites run concurrently; operations on the same
    site are serialized on that workflow's lock because each step mutates
    the page.

    Example:
        >>> settings = BetSyncSettings()
        >>> async with WorkflowManager.from_settings(settings) as manager:
        ...     result = await manager.login('sports411')
        ...     if result.success:
        ...         history = await manager.get_history('sports411')
    """

    def __init__(
        self,
        config_store: SiteConfigStore,
        session_store: SessionStore,
        browser_manager: BrowserManager,
        registry: WorkflowRegistry | None = None,
        events: EventBus | None = None,
        pacer: Pacer | None = None,
        limits: WorkflowLimits | None = None,
    ):
        """
        Initialize the manager.

        Args:
            config_store: Read-only source of site and proxy configs
            session_store: Saved-session persistence keyed by site id
            browser_manager: Source of browser pages
            registry: Site id to workflow class mapping
            events: Event bus shared with every workflow
            pacer: Delay source shared with every workflow
            limits: Bounds applied to every workflow
        """
        self.config_store = config_store
        self.session_store = session_store
        self.browser_manager = browser_manager
        self.registry = registry or default_registry()
        self.events = events or EventBus.with_logging()
        self.pacer = pacer or Pacer()
        self.limits = limits or WorkflowLimits()

        self._workflows: dict[str, SiteWorkflow] = {}
        self._site_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @classmethod
    def from_settings(cls, settings: BetSyncSettings, **kwargs: Any) -> WorkflowManager:
        """
        Build a manager whose stores and browser follow ``settings``.

        Raises:
            ConfigStoreError: If the site or proxy file is unreadable
        """
        config_store = SiteConfigStore(settings.sites_file, settings.proxies_file)
        config_store.load()
        return cls(
            config_store=config_store,
            session_store=FileSessionStore(settings.session_dir),
            browser_manager=BrowserManager(settings),
            limits=WorkflowLimits.from_settings(settings),
            **kwargs,
        )

    async def start(self) -> None:
        """
        Start the browser capability.

        Raises:
            BrowserManagerError: If the browser cannot be started
        """
        await self.browser_manager.initialize()

    async def shutdown(self) -> None:
        """Release every workflow and stop the browser."""
        for site_id in list(self._workflows):
            await self.release(site_id)
        await self.browser_manager.shutdown()

    async def __aenter__(self) -> WorkflowManager:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def active_sites(self) -> list[str]:
        return list(self._workflows)

    def get(self, site_id: str) -> SiteWorkflow | None:
        """Return the live workflow for a site without creating one."""
        return self._workflows.get(site_id)

    async def get_or_create(self, site_id: str) -> SiteWorkflow:
        """
        Return the site's workflow, creating it on first use.

        Creation opens a page with the site's proxy and saved session,
        builds the registered workflow and navigates to the site. Concurrent
        first calls for one site share a single creation.

        Raises:
            UnknownSiteError: If no config exists for the site
            NoWorkflowError: If no workflow class is registered for the site
            BrowserPoolExhaustedError: If every browser slot stays taken
            BrowserManagerError: If the browser cannot provide a page
        """
        async with self._site_locks[site_id]:
            existing = self._workflows.get(site_id)
            if existing is not None:
                return existing

            site = self.config_store.get_site(site_id)
            if site is None:
                raise UnknownSiteError(site_id)
            if site.workflow_key not in self.registry:
                raise NoWorkflowError(site_id)

            proxy = self.config_store.get_proxy_for_site(site_id)
            session = await self.session_store.load(site_id)
            page = await self.browser_manager.open_page(
                proxy=proxy,
                storage_state=session.storage if session else None,
            )

            workflow = self.registry.create(
                site.workflow_key,
                site,
                page,
                pacer=self.pacer,
                events=self.events,
                limits=self.limits,
                save_session=lambda: self._persist_session(site_id, page),
            )
            try:
                await workflow.start()
            except Exception:
                await page.close()
                raise

            self._workflows[site_id] = workflow
            self.events.emit(
                site_id,
                EventKind.WORKFLOW_CREATED,
                f'Created {type(workflow).__name__} for {site.name}',
                proxy=proxy.name if proxy else None,
            )
            if session is not None:
                self.events.emit(
                    site_id,
                    EventKind.SESSION_RESTORED,
                    f'Restored session for {site.name} saved at {session.saved_at}',
                )
            return workflow

    async def release(self, site_id: str) -> bool:
        """
        Close a site's page and forget its workflow.

        Waits for an in-flight operation on that site to finish first.

        Returns:
            True if a workflow was released
        """
        async with self._site_locks[site_id]:
            workflow = self._workflows.get(site_id)
            if workflow is None:
                return False
            async with workflow.lock:
                del self._workflows[site_id]
                try:
                    await workflow.page.close()
                except Exception as e:
                    logger.error(f'Error closing page for {site_id}: {e}')
        self.events.emit(site_id, EventKind.WORKFLOW_RELEASED, f'Released {site_id}')
        return True

    async def _persist_session(self, site_id: str, page: BrowserPage) -> None:
        storage = await page.export_state()
        state = await self.session_store.save(site_id, storage)
        self.events.emit(
            site_id,
            EventKind.SESSION_SAVED,
            f'Saved session for {site_id}',
            saved_at=state.saved_at.isoformat(),
        )

    # ------------------------------------------------------------------
    # Uniform call surface
    # ------------------------------------------------------------------

    async def login(self, site_id: str) -> WorkflowResult[None]:
        """Log in to a site (no-op success when already logged in)."""
        return await self._run(site_id, 'login', lambda wf: wf.login())

    async def is_logged_in(self, site_id: str) -> WorkflowResult[bool]:
        """Probe whether the site's page shows an authenticated session."""

        async def check(workflow: SiteWorkflow) -> WorkflowResult[bool]:
            return WorkflowResult.ok(await workflow.check_login())

        return await self._run(site_id, 'is_logged_in', check)

    async def get_history(
        self,
        site_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> WorkflowResult[list[BetHistoryItem]]:
        """Extract a site's bet history, optionally within a date range."""
        return await self._run(
            site_id,
            'get_history',
            lambda wf: wf.get_history(date_from, date_to),
            empty=[],
        )

    async def get_balance(self, site_id: str) -> WorkflowResult[dict[str, Any]]:
        """Read a site's account balance where the adapter supports it."""
        return await self._run(site_id, 'get_balance', lambda wf: wf.get_balance())

    async def login_many(self, site_ids: list[str]) -> dict[str, WorkflowResult[None]]:
        """Log in to several sites concurrently."""
        results = await asyncio.gather(*(self.login(site_id) for site_id in site_ids))
        return dict(zip(site_ids, results))

    async def _run(
        self,
        site_id: str,
        operation: str,
        call: Callable[[SiteWorkflow], Awaitable[WorkflowResult[R]]],
        empty: Any = None,
    ) -> WorkflowResult[R]:
        try:
            workflow = await self.get_or_create(site_id)
        except BrowserPoolExhaustedError as e:
            return self._failure(
                site_id, operation, e.message, ErrorCode.BROWSER_ERROR, empty
            )
        except BrowserManagerError:
            raise
        except BetSyncError as e:
            code = (
                ErrorCode(e.error_code)
                if e.error_code in ErrorCode._value2member_map_
                else ErrorCode.BROWSER_ERROR
            )
            return self._failure(site_id, operation, e.message, code, empty)
        except Exception as e:
            logger.exception(f'Could not prepare workflow for {site_id}')
            return self._failure(
                site_id, operation, str(e), ErrorCode.BROWSER_ERROR, empty
            )

        async with workflow.lock:
            try:
                return await call(workflow)
            except Exception as e:
                logger.exception(f'{operation} failed for {site_id}')
                return self._failure(
                    site_id, operation, str(e), ErrorCode.BROWSER_ERROR, empty
                )

    def _failure(
        self,
        site_id: str,
        operation: str,
        message: str,
        code: ErrorCode,
        empty: Any,
    ) -> WorkflowResult:
        self.events.emit(
            site_id,
            EventKind.OPERATION_FAILED,
            f'{operation} failed for {site_id}: {message}',
            operation=operation,
            error_code=code.value,
        )
        return WorkflowResult.fail(message, code, data=empty)
