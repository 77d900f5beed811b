"""Structured error classes for betsync."""

from __future__ import annotations

from typing import Any


class BetSyncError(Exception):
    """Base exception for betsync errors."""

    def __init__(
        self,
        error_code: str,
        message: str,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize error details to a dictionary."""
        return {
            'error_code': self.error_code,
            'message': self.message,
            'recoverable': self.recoverable,
            'context': self.context,
        }


class BrowserManagerError(BetSyncError):
    """The browser capability could not be started or used."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__('browser_error', message, recoverable, context=context)


class BrowserPoolExhaustedError(BrowserManagerError):
    """No browser slot became free within the pool timeout."""

    def __init__(self, timeout_s: float, pool_size: int) -> None:
        super().__init__(
            f'No free browser slot within {timeout_s:g}s (pool size {pool_size})',
            context={'timeout_s': timeout_s, 'pool_size': pool_size},
            recoverable=True,
        )


class ConfigStoreError(BetSyncError):
    """Site or proxy configuration could not be read or written."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__('config_error', message, recoverable=False, context=context)


class SessionStoreError(BetSyncError):
    """A saved session could not be written."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__('session_error', message, recoverable=True, context=context)


class LocatorNotFoundError(BetSyncError):
    """None of the candidate locators matched an element on the page."""

    def __init__(self, field: str, candidates: list[str]) -> None:
        super().__init__(
            'element_not_found',
            f'Could not find {field} (tried: {", ".join(candidates)})',
            recoverable=True,
            context={'field': field, 'candidates': candidates},
        )
        self.field = field
        self.candidates = candidates


class WorkflowStateError(BetSyncError):
    """A workflow attempted an illegal state transition."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            'invalid_state',
            f'Illegal workflow transition {current} -> {target}',
            context={'current': current, 'target': target},
        )


class UnknownSiteError(BetSyncError):
    """No site config exists for the requested id."""

    def __init__(self, site_id: str) -> None:
        super().__init__(
            'unknown_site',
            f"Unknown site '{site_id}'",
            context={'site_id': site_id},
        )


class NoWorkflowError(BetSyncError):
    """The site is configured but no workflow class is registered for it."""

    def __init__(self, site_id: str) -> None:
        super().__init__(
            'no_workflow',
            f"No workflow registered for site '{site_id}'",
            context={'site_id': site_id},
        )
