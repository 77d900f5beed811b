"""
JSON-file store for site and proxy configuration.

Sites and proxies are kept as two JSON arrays on disk. The orchestrator only
reads from this store (``get_site`` / ``get_proxy_for_site``); the mutating
methods exist for whatever front end manages the config files.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from betsync.errors import ConfigStoreError
from betsync.schemas import ProxyConfig, SiteConfig, utcnow

_SITES_ADAPTER = TypeAdapter(list[SiteConfig])
_PROXIES_ADAPTER = TypeAdapter(list[ProxyConfig])


class SiteConfigStore:
    """
    Keeps site and proxy configs in memory, backed by two JSON files.

    Example:
        >>> store = SiteConfigStore('config/sites.json', 'config/proxies.json')
        >>> store.load()
        >>> store.get_site('sports411')
    """

    def __init__(self, sites_file: str | Path, proxies_file: str | Path):
        self.sites_file = Path(sites_file)
        self.proxies_file = Path(proxies_file)
        self._sites: dict[str, SiteConfig] = {}
        self._proxies: dict[str, ProxyConfig] = {}

    def load(self) -> None:
        """
        Load all configs from disk.

        Missing files mean an empty store.

        Raises:
            ConfigStoreError: If a file exists but is not a valid config array
        """
        sites = self._read(self.sites_file, _SITES_ADAPTER)
        self._sites = {site.id: site for site in sites}
        proxies = self._read(self.proxies_file, _PROXIES_ADAPTER)
        self._proxies = {proxy.name: proxy for proxy in proxies}
        logger.info(
            f'Loaded {len(self._sites)} site configs and {len(self._proxies)} proxies'
        )

    def _read(self, path: Path, adapter: TypeAdapter) -> list[Any]:
        if not path.exists():
            return []
        try:
            return adapter.validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            raise ConfigStoreError(
                f'Failed to load {path}: {e}', context={'path': str(path)}
            ) from e

    def _write(self, path: Path, items: list[Any], adapter: TypeAdapter) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = adapter.dump_python(
            items, mode='json', by_alias=True, exclude_none=True
        )
        path.write_text(json.dumps(payload, indent=2), encoding='utf-8')

    def save_sites(self) -> None:
        self._write(self.sites_file, list(self._sites.values()), _SITES_ADAPTER)

    def save_proxies(self) -> None:
        self._write(self.proxies_file, list(self._proxies.values()), _PROXIES_ADAPTER)

    # Sites

    def add_site(self, site: SiteConfig) -> SiteConfig:
        """Add or replace a site, stamping ``created_at`` when absent."""
        if site.created_at is None:
            site = site.model_copy(update={'created_at': utcnow()})
        self._sites[site.id] = site
        self.save_sites()
        return site

    def get_site(self, site_id: str) -> SiteConfig | None:
        return self._sites.get(site_id)

    def list_sites(self) -> list[SiteConfig]:
        return list(self._sites.values())

    def update_site(self, site_id: str, **changes: Any) -> SiteConfig | None:
        """
        Apply field changes to an existing site.

        Changes take effect for workflows created after the update; a running
        workflow keeps the config it was built with.

        Returns:
            The updated config, or None if the site does not exist
        """
        existing = self._sites.get(site_id)
        if existing is None:
            return None
        updated = SiteConfig.model_validate(
            {**existing.model_dump(), **changes, 'id': site_id}
        )
        self._sites[site_id] = updated
        self.save_sites()
        return updated

    def delete_site(self, site_id: str) -> bool:
        if self._sites.pop(site_id, None) is None:
            return False
        self.save_sites()
        return True

    # Proxies

    def add_proxy(self, proxy: ProxyConfig) -> None:
        self._proxies[proxy.name] = proxy
        self.save_proxies()

    def get_proxy(self, name: str) -> ProxyConfig | None:
        return self._proxies.get(name)

    def list_proxies(self) -> list[ProxyConfig]:
        return list(self._proxies.values())

    def delete_proxy(self, name: str) -> bool:
        if self._proxies.pop(name, None) is None:
            return False
        self.save_proxies()
        return True

    def get_proxy_for_site(self, site_id: str) -> ProxyConfig | None:
        """Resolve a site's proxy reference; a dangling reference yields None."""
        site = self._sites.get(site_id)
        if site is None or not site.proxy_name:
            return None
        proxy = self._proxies.get(site.proxy_name)
        if proxy is None:
            logger.warning(
                f'Site {site_id} references unknown proxy {site.proxy_name}'
            )
        return proxy
