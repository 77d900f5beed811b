"""
Persistence of browser session state per site.

A saved session lets a workflow start already authenticated. Sessions are
keyed by site id and are never handed to a different site.
"""

from __future__ import annotations

import asyncio
import os
import time
from collections import defaultdict
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from betsync.errors import SessionStoreError
from betsync.schemas import SessionState


class SessionStore(Protocol):
    """Load/save contract used by the orchestrator."""

    async def load(self, site_id: str) -> SessionState | None: ...

    async def save(self, site_id: str, storage: dict[str, Any]) -> SessionState: ...


class FileSessionStore:
    """
    Stores one JSON file per site under ``directory``.

    Writes for the same site id are serialized and atomic, so concurrent
    savers resolve to last-writer-wins without torn files.

    Example:
        >>> store = FileSessionStore('data/sessions')
        >>> await store.save('sports411', await page.export_state())
        >>> state = await store.load('sports411')
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def path_for(self, site_id: str) -> Path:
        safe = ''.join(c if c.isalnum() or c in '-_.' else '_' for c in site_id)
        return self.directory / f'{safe}.json'

    async def load(self, site_id: str) -> SessionState | None:
        """
        Load the saved session for a site.

        Returns:
            The session, or None when there is no usable session (missing,
            corrupt, or captured under a different site id)
        """
        path = self.path_for(site_id)
        if not path.exists():
            return None

        try:
            state = SessionState.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning(f'Ignoring unreadable session file {path}: {e}')
            return None

        if state.site_id != site_id:
            logger.warning(
                f'Session file {path} belongs to {state.site_id}, not {site_id}'
            )
            return None

        logger.debug(f'Loaded browser session for {site_id} from {path}')
        return state

    async def save(self, site_id: str, storage: dict[str, Any]) -> SessionState:
        """
        Persist a site's exported browser storage.

        Raises:
            SessionStoreError: If the file cannot be written
        """
        state = SessionState(site_id=site_id, storage=storage)
        path = self.path_for(site_id)

        async with self._locks[site_id]:
            tmp_path = path.with_suffix('.json.tmp')
            try:
                tmp_path.write_text(state.model_dump_json(indent=2), encoding='utf-8')
                os.replace(tmp_path, path)
            except OSError as e:
                raise SessionStoreError(
                    f'Failed to save session for {site_id}: {e}',
                    context={'site_id': site_id, 'path': str(path)},
                ) from e

        logger.info(f'Saved browser session for {site_id} to {path}')
        return state

    async def delete(self, site_id: str) -> bool:
        async with self._locks[site_id]:
            path = self.path_for(site_id)
            if not path.exists():
                return False
            path.unlink()
            return True

    async def cleanup_expired(self, max_age_days: int = 7) -> int:
        """
        Remove session files older than ``max_age_days``.

        Returns:
            Number of session files deleted
        """
        deleted = 0
        max_age_seconds = max_age_days * 24 * 60 * 60
        current_time = time.time()

        for session_file in self.directory.glob('*.json'):
            if current_time - session_file.stat().st_mtime <= max_age_seconds:
                continue
            try:
                session_file.unlink()
                deleted += 1
                logger.debug(f'Deleted expired session: {session_file.name}')
            except OSError as e:
                logger.error(f'Failed to delete session {session_file.name}: {e}')

        if deleted > 0:
            logger.info(f'Cleaned up {deleted} expired browser sessions')

        return deleted
