"""
Structured workflow events.

Workflows and the orchestrator report what they do through an ``EventBus``
instead of writing to a log directly. The default bus forwards every event
to loguru; tests and other drivers can subscribe their own observers.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Callable

from loguru import logger
from pydantic import BaseModel, Field

from betsync.schemas import utcnow


class EventKind(str, Enum):
    """Kinds of workflow events."""

    WORKFLOW_CREATED = 'workflow_created'
    WORKFLOW_RELEASED = 'workflow_released'
    SESSION_RESTORED = 'session_restored'
    SESSION_SAVED = 'session_saved'
    STATE_CHANGED = 'state_changed'
    LOGIN_STARTED = 'login_started'
    LOGIN_SUCCEEDED = 'login_succeeded'
    LOGIN_FAILED = 'login_failed'
    CHALLENGE_DETECTED = 'challenge_detected'
    CHALLENGE_RESOLVED = 'challenge_resolved'
    HISTORY_PAGE = 'history_page'
    HISTORY_COMPLETED = 'history_completed'
    OPERATION_FAILED = 'operation_failed'


_FAILURE_KINDS = {EventKind.LOGIN_FAILED, EventKind.OPERATION_FAILED}
_DEBUG_KINDS = {EventKind.STATE_CHANGED, EventKind.HISTORY_PAGE}


class WorkflowEvent(BaseModel):
    """One observable step of a workflow."""

    site_id: str
    kind: EventKind
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


EventObserver = Callable[[WorkflowEvent], None]


def loguru_observer(event: WorkflowEvent) -> None:
    """Forward an event to loguru, bound to its site id."""
    if event.kind in _FAILURE_KINDS:
        level = 'WARNING'
    elif event.kind in _DEBUG_KINDS:
        level = 'DEBUG'
    else:
        level = 'INFO'
    logger.bind(site=event.site_id, **event.data).log(level, event.message)


class EventBus:
    """Fan-out of workflow events to registered observers."""

    def __init__(self, observers: list[EventObserver] | None = None) -> None:
        self._observers: list[EventObserver] = list(observers or [])

    @classmethod
    def with_logging(cls) -> EventBus:
        """Bus that logs every event through loguru."""
        return cls([loguru_observer])

    def subscribe(self, observer: EventObserver) -> Callable[[], None]:
        """
        Register an observer.

        Returns:
            Callable that unsubscribes the observer again
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def emit(
        self,
        site_id: str,
        kind: EventKind,
        message: str,
        **data: Any,
    ) -> WorkflowEvent:
        """Publish an event to every observer.

        A failing observer is logged and skipped so it cannot break the
        workflow that emitted the event.
        """
        event = WorkflowEvent(site_id=site_id, kind=kind, message=message, data=data)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.opt(exception=e).error(
                    f'Event observer {observer!r} failed on {kind.value}'
                )
        return event
