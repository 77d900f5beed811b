"""Pydantic schemas shared by the orchestrator, workflows and stores.

Site and proxy configs are stored on disk with camelCase keys, so those
models use a camelCase alias generator while still accepting snake_case
field names from Python callers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar('T')


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class ProxyConfig(BaseModel):
    """Named proxy endpoint with optional credentials."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(..., description='Unique proxy name referenced by sites')
    server: str = Field(..., description='Proxy URL (e.g., "http://10.0.0.1:8080")')
    username: str | None = Field(default=None)
    password: str | None = Field(default=None, repr=False)

    def to_playwright(self) -> dict[str, str]:
        """Return the proxy settings dict accepted by Playwright."""
        proxy = {'server': self.server}
        if self.username:
            proxy['username'] = self.username
        if self.password:
            proxy['password'] = self.password
        return proxy


class SiteConfig(BaseModel):
    """One external betting site.

    Example:
        >>> site = SiteConfig(
        ...     id='sports411',
        ...     name='Sports411',
        ...     base_url='https://sports411.ag',
        ...     username='12345',
        ...     password='secret',
        ... )
        >>> site.has_credentials
        True
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description='Unique site identifier')
    name: str = Field(..., description='Display name')
    base_url: str = Field(
        default='', description='Entry URL; adapters supply a default'
    )
    username: str | None = Field(default=None)
    password: str | None = Field(default=None, repr=False)
    proxy_name: str | None = Field(
        default=None, description='Name of a ProxyConfig (weak reference)'
    )
    workflow: str | None = Field(
        default=None, description='Registered workflow name; defaults to the id'
    )
    workflow_implemented: bool | None = Field(default=None)
    created_at: datetime | None = Field(default=None)

    @property
    def has_credentials(self) -> bool:
        """Whether both username and password are configured."""
        return bool(self.username and self.password)

    @property
    def workflow_key(self) -> str:
        """Registry key of the workflow driving this site."""
        return self.workflow or self.id


class SessionState(BaseModel):
    """Serialized browser session (cookies + storage) for exactly one site."""

    site_id: str
    saved_at: datetime = Field(default_factory=utcnow)
    storage: dict[str, Any] = Field(
        default_factory=dict, description='Opaque Playwright storage_state payload'
    )


class BetStatus(str, Enum):
    """Normalized settlement status of a bet."""

    PENDING = 'pending'
    WON = 'won'
    LOST = 'lost'
    VOID = 'void'
    CASHOUT = 'cashout'


class BetHistoryItem(BaseModel):
    """Normalized record of one wagering transaction.

    Every field except ``status`` may be None when the source page did not
    expose it or it could not be parsed.
    """

    bet_id: str | None = None
    placed_at: datetime | None = None
    settled_at: datetime | None = None
    sport: str | None = None
    league: str | None = None
    event: str | None = None
    bet_type: str | None = None
    selection: str | None = None
    odds: float | None = None
    stake: float | None = None
    currency: str | None = None
    potential_win: float | None = None
    result: float | None = None
    status: BetStatus = BetStatus.PENDING
    site_id: str | None = None


class ErrorCode(str, Enum):
    """Stable failure codes carried by unsuccessful WorkflowResults."""

    NOT_LOGGED_IN = 'not_logged_in'
    NO_CREDENTIALS = 'no_credentials'
    CHALLENGE_TIMEOUT = 'challenge_timeout'
    LOGIN_FAILED = 'login_failed'
    MANUAL_LOGIN_TIMEOUT = 'manual_login_timeout'
    ELEMENT_NOT_FOUND = 'element_not_found'
    BROWSER_ERROR = 'browser_error'
    UNKNOWN_SITE = 'unknown_site'
    NO_WORKFLOW = 'no_workflow'
    NOT_SUPPORTED = 'not_supported'


NO_CREDENTIALS_MESSAGE = 'No credentials provided'
NOT_LOGGED_IN_MESSAGE = 'Not logged in. Call login() first.'


class WorkflowResult(BaseModel, Generic[T]):
    """Tagged outcome returned by every public workflow operation.

    Failures are values, never exceptions: check ``success`` (and
    ``error_code`` for the reason) instead of catching.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    warnings: list[str] = Field(
        default_factory=list, description='Notes on partially parsed payloads'
    )
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def ok(cls, data: Any = None, warnings: list[str] | None = None) -> WorkflowResult:
        """Build a successful result."""
        return cls(success=True, data=data, warnings=warnings or [])

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: ErrorCode,
        data: Any = None,
    ) -> WorkflowResult:
        """Build a failed result."""
        return cls(success=False, data=data, error=error, error_code=error_code)


class WorkflowState(str, Enum):
    """Login state machine of a site workflow."""

    UNKNOWN = 'unknown'
    LOGGED_OUT = 'logged_out'
    AUTHENTICATING = 'authenticating'
    AWAITING_CHALLENGE = 'awaiting_challenge'
    LOGGED_IN = 'logged_in'
