from __future__ import annotations

from typing import Any

from loguru import logger

from betsync.workflows.base import SiteWorkflow


class WorkflowRegistry:
    """
    Maps workflow names to the workflow class that drives them.

    A site is matched through ``SiteConfig.workflow_key``: its ``workflow``
    field when set, otherwise its id. A second account on a supported site
    (``id='sports411-alt'``) therefore sets ``workflow='sports411'``.
    """

    def __init__(self) -> None:
        self._workflows: dict[str, type[SiteWorkflow]] = {}

    def register(self, name: str, workflow_cls: type[SiteWorkflow]) -> None:
        """Register a workflow class under a name."""
        self._workflows[name] = workflow_cls
        logger.debug(f'Registered workflow: {name}')

    def create(self, name: str, *args: Any, **kwargs: Any) -> SiteWorkflow:
        """Instantiate the workflow registered under ``name``."""
        if name not in self._workflows:
            raise ValueError(f"No workflow registered for site '{name}'")
        return self._workflows[name](*args, **kwargs)

    def list_sites(self) -> list[str]:
        """List registered workflow names."""
        return list(self._workflows.keys())

    def get(self, name: str) -> type[SiteWorkflow] | None:
        """Retrieve a registered workflow class by name."""
        return self._workflows.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._workflows


def default_registry() -> WorkflowRegistry:
    """Registry with the bundled site adapters."""
    from betsync.workflows.betonline import BetOnlineWorkflow
    from betsync.workflows.pinnacle import PinnacleWorkflow
    from betsync.workflows.sports411 import Sports411Workflow

    registry = WorkflowRegistry()
    registry.register('pinnacle', PinnacleWorkflow)
    registry.register('probet42', PinnacleWorkflow)
    registry.register('sports411', Sports411Workflow)
    registry.register('betonline', BetOnlineWorkflow)
    return registry
