"""
Unit tests for WorkflowManager.

The browser manager is mocked to hand out ``FakePage``s, so these tests
cover routing, workflow lifecycle and session persistence without a
browser.
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from betsync.errors import BrowserManagerError, BrowserPoolExhaustedError
from betsync.events import EventKind
from betsync.schemas import BetStatus, ErrorCode, ProxyConfig, SiteConfig
from betsync.workflows import WorkflowManager, WorkflowRegistry

from fakes import StubWorkflow, history_pages, logged_in_page, login_page

SESSION_COOKIE = {'name': 'sid', 'value': 'abc', 'domain': 'stub.example'}


def restoring_page(storage_state):
    """Page that is logged in exactly when the session cookie is restored."""
    cookies = (storage_state or {}).get('cookies', [])
    if SESSION_COOKIE in cookies:
        return logged_in_page()
    page = login_page()
    page.state = {'cookies': [SESSION_COOKIE], 'origins': []}
    return page


@pytest.fixture
def mock_browser_manager():
    """Browser manager mock whose pages come from ``restoring_page``."""
    manager = MagicMock()
    manager.initialize = AsyncMock()
    manager.shutdown = AsyncMock()
    manager.opened = []

    async def open_page(proxy=None, storage_state=None):
        page = restoring_page(storage_state)
        manager.opened.append((page, proxy, storage_state))
        return page

    manager.open_page = AsyncMock(side_effect=open_page)
    return manager


@pytest.fixture
def registry():
    registry = WorkflowRegistry()
    registry.register('stub', StubWorkflow)
    registry.register('other', StubWorkflow)
    return registry


@pytest.fixture
def workflow_manager(
    config_store, session_store, mock_browser_manager, registry, events, pacer, limits
):
    config_store.add_site(
        SiteConfig(id='stub', name='Stub', username='alice', password='secret')
    )
    config_store.add_site(SiteConfig(id='other', name='Other'))
    return WorkflowManager(
        config_store=config_store,
        session_store=session_store,
        browser_manager=mock_browser_manager,
        registry=registry,
        events=events,
        pacer=pacer,
        limits=limits,
    )


class TestWorkflowLifecycle:
    """Test workflow creation and release."""

    @pytest.mark.asyncio
    async def test_concurrent_creation_happens_once(
        self, workflow_manager, mock_browser_manager
    ):
        workflows = await asyncio.gather(
            *(workflow_manager.get_or_create('stub') for _ in range(5))
        )

        assert all(workflow is workflows[0] for workflow in workflows)
        assert mock_browser_manager.open_page.await_count == 1
        assert workflow_manager.active_sites == ['stub']

    @pytest.mark.asyncio
    async def test_creation_navigates_to_site(
        self, workflow_manager, recorded_events
    ):
        workflow = await workflow_manager.get_or_create('stub')

        assert workflow.page.visited == ['https://stub.example']
        assert EventKind.WORKFLOW_CREATED in [e.kind for e in recorded_events]

    @pytest.mark.asyncio
    async def test_proxy_is_applied(
        self, workflow_manager, config_store, mock_browser_manager
    ):
        config_store.add_proxy(ProxyConfig(name='us-east', server='http://10.0.0.1:8080'))
        config_store.update_site('stub', proxy_name='us-east')

        await workflow_manager.get_or_create('stub')

        _, proxy, _ = mock_browser_manager.opened[0]
        assert proxy.name == 'us-east'

    @pytest.mark.asyncio
    async def test_release(self, workflow_manager):
        workflow = await workflow_manager.get_or_create('stub')

        assert await workflow_manager.release('stub') is True
        assert workflow.page.closed
        assert workflow_manager.get('stub') is None
        assert await workflow_manager.release('stub') is False

        recreated = await workflow_manager.get_or_create('stub')
        assert recreated is not workflow

    @pytest.mark.asyncio
    async def test_failed_start_closes_page(
        self, workflow_manager, mock_browser_manager
    ):
        page = login_page()
        page.goto = AsyncMock(side_effect=RuntimeError('net::ERR_PROXY'))
        mock_browser_manager.open_page = AsyncMock(return_value=page)

        result = await workflow_manager.login('stub')

        assert result.error_code == ErrorCode.BROWSER_ERROR
        assert page.closed
        assert workflow_manager.active_sites == []

    @pytest.mark.asyncio
    async def test_shutdown_releases_everything(
        self, workflow_manager, mock_browser_manager
    ):
        async with workflow_manager:
            await workflow_manager.get_or_create('stub')
            await workflow_manager.get_or_create('other')

        assert workflow_manager.active_sites == []
        mock_browser_manager.initialize.assert_awaited_once()
        mock_browser_manager.shutdown.assert_awaited_once()
        assert all(page.closed for page, _, _ in mock_browser_manager.opened)


class TestRouting:
    """Test how site ids resolve to workflows, and failures before one runs."""

    @pytest.mark.asyncio
    async def test_unknown_site(
        self, workflow_manager, mock_browser_manager, recorded_events
    ):
        result = await workflow_manager.login('nowhere')

        assert not result.success
        assert result.error_code == ErrorCode.UNKNOWN_SITE
        mock_browser_manager.open_page.assert_not_awaited()
        assert recorded_events[-1].kind is EventKind.OPERATION_FAILED

    @pytest.mark.asyncio
    async def test_site_without_workflow(self, workflow_manager, config_store):
        config_store.add_site(SiteConfig(id='mystery', name='Mystery'))

        result = await workflow_manager.get_history('mystery')

        assert result.error_code == ErrorCode.NO_WORKFLOW
        assert result.data == []

    @pytest.mark.asyncio
    async def test_browser_unavailable_propagates(
        self, workflow_manager, mock_browser_manager
    ):
        mock_browser_manager.open_page = AsyncMock(
            side_effect=BrowserManagerError('BrowserManager not initialized.')
        )

        with pytest.raises(BrowserManagerError, match='not initialized'):
            await workflow_manager.login('stub')

    @pytest.mark.asyncio
    async def test_full_pool_returns_failure(
        self, workflow_manager, config_store, mock_browser_manager
    ):
        config_store.add_site(
            SiteConfig(
                id='mirror',
                name='Mirror',
                workflow='stub',
                username='bob',
                password='pw',
            )
        )
        pages = []

        async def open_single_slot(proxy=None, storage_state=None):
            if any(not page.closed for page in pages):
                raise BrowserPoolExhaustedError(0.1, 1)
            page = restoring_page(storage_state)
            pages.append(page)
            return page

        mock_browser_manager.open_page = AsyncMock(side_effect=open_single_slot)

        results = await asyncio.wait_for(
            workflow_manager.login_many(['stub', 'mirror']), timeout=2
        )

        starved = [
            site_id
            for site_id, result in results.items()
            if result.error_code == ErrorCode.BROWSER_ERROR
        ]
        assert len(starved) == 1
        assert 'No free browser slot' in results[starved[0]].error
        assert len(workflow_manager.active_sites) == 1

        await workflow_manager.release(workflow_manager.active_sites[0])
        retry = await workflow_manager.login(starved[0])
        assert retry.success

    @pytest.mark.asyncio
    async def test_site_selects_workflow_by_name(self, workflow_manager, config_store):
        config_store.add_site(
            SiteConfig(id='stub-backup', name='Backup', workflow='stub')
        )

        workflow = await workflow_manager.get_or_create('stub-backup')

        assert isinstance(workflow, StubWorkflow)
        assert workflow.site_id == 'stub-backup'


class TestOperations:
    """Test the uniform call surface."""

    @pytest.mark.asyncio
    async def test_session_round_trip(
        self,
        workflow_manager,
        config_store,
        session_store,
        mock_browser_manager,
        registry,
        events,
        pacer,
        limits,
    ):
        """A saved session lets a fresh manager start logged in."""
        login = await workflow_manager.login('stub')
        assert login.success
        await workflow_manager.shutdown()

        saved = await session_store.load('stub')
        assert saved.storage['cookies'] == [SESSION_COOKIE]

        fresh = WorkflowManager(
            config_store=config_store,
            session_store=session_store,
            browser_manager=mock_browser_manager,
            registry=registry,
            events=events,
            pacer=pacer,
            limits=limits,
        )
        status = await fresh.is_logged_in('stub')
        second_login = await fresh.login('stub')

        assert status.success and status.data is True
        assert second_login.success
        page, _, storage_state = mock_browser_manager.opened[-1]
        assert storage_state['cookies'] == [SESSION_COOKIE]
        assert page.typed == []

    @pytest.mark.asyncio
    async def test_session_saved_event(self, workflow_manager, recorded_events):
        await workflow_manager.login('stub')

        assert EventKind.SESSION_SAVED in [e.kind for e in recorded_events]

    @pytest.mark.asyncio
    async def test_history_before_login(self, workflow_manager):
        result = await workflow_manager.get_history('stub')

        assert not result.success
        assert result.error_code == ErrorCode.NOT_LOGGED_IN
        assert result.data == []

    @pytest.mark.asyncio
    async def test_login_then_history(self, workflow_manager):
        """Three pages of history come back in order with valid statuses."""
        workflow = await workflow_manager.get_or_create('stub')
        workflow.page.on_click['#submit'] = lambda p: (
            p.swap({'#user', '#pass', '#submit'}, {'#account', '#history'}),
            p.paginate(StubWorkflow.HISTORY_ROWS_SCRIPT, history_pages(3, 4), '#next'),
        )

        login = await workflow_manager.login('stub')
        history = await workflow_manager.get_history(
            'stub', date(2024, 3, 1), date(2024, 3, 31)
        )

        assert login.success
        assert history.success
        assert len(history.data) == 12
        assert history.data[0].bet_id == '1-0'
        assert history.data[-1].bet_id == '3-3'
        assert {item.status for item in history.data} <= {
            BetStatus.PENDING,
            BetStatus.WON,
            BetStatus.LOST,
            BetStatus.VOID,
            BetStatus.CASHOUT,
        }

    @pytest.mark.asyncio
    async def test_missing_credentials(self, workflow_manager):
        result = await workflow_manager.login('other')

        assert result.error_code == ErrorCode.NO_CREDENTIALS
        assert result.error == 'No credentials provided'

    @pytest.mark.asyncio
    async def test_login_many(self, workflow_manager):
        results = await workflow_manager.login_many(['stub', 'other', 'nowhere'])

        assert results['stub'].success
        assert results['other'].error_code == ErrorCode.NO_CREDENTIALS
        assert results['nowhere'].error_code == ErrorCode.UNKNOWN_SITE

    @pytest.mark.asyncio
    async def test_balance_not_supported(self, workflow_manager):
        workflow = await workflow_manager.get_or_create('stub')
        workflow.page.swap(set(), {'#account'})

        result = await workflow_manager.get_balance('stub')

        assert result.error_code == ErrorCode.NOT_SUPPORTED

    @pytest.mark.asyncio
    async def test_unexpected_workflow_error_becomes_result(self, workflow_manager):
        workflow = await workflow_manager.get_or_create('stub')
        workflow.check_login = AsyncMock(side_effect=RuntimeError('page crashed'))

        result = await workflow_manager.is_logged_in('stub')

        assert result.error_code == ErrorCode.BROWSER_ERROR
        assert result.error == 'page crashed'

    @pytest.mark.asyncio
    async def test_operations_on_one_site_are_serialized(self, workflow_manager):
        workflow = await workflow_manager.get_or_create('stub')
        running = 0
        peak = 0
        original = workflow.check_login

        async def tracked_check_login():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0)
            running -= 1
            return await original()

        workflow.check_login = tracked_check_login

        await asyncio.gather(*(workflow_manager.is_logged_in('stub') for _ in range(4)))

        assert peak == 1
