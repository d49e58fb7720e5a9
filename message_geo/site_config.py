"""
Site (tenant) configuration client with TTL caching.

The settings service exposes site definitions over GraphQL. We only need
three properties from it: the supported languages, the connection string of
the localities reference store, and the optional target bounding box.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from message_geo.cache import TTLCache
from message_geo.config import SiteServiceConfig, get_settings
from message_geo.errors import ConfigurationError, StoreError
from message_geo.models import SiteConfig

logger = logging.getLogger(__name__)

SITE_DEFINITION_QUERY = """
fragment SiteDefinitionView on SiteCollection {
    sites {
        properties {
            featuresConnectionString
            supportedLanguages
            targetBbox
        }
    }
}

query Sites($siteId: String) {
    siteDefinition: sites(siteId: $siteId) {
        ...SiteDefinitionView
    }
}
"""


class SiteConfigProvider(Protocol):
    async def fetch_site_config(self, tenant_id: str) -> SiteConfig:
        """Return the tenant config; raise ConfigurationError or StoreError."""
        ...


class SettingsServiceClient:
    """Fetch site definitions from the settings service (no caching)."""

    def __init__(
        self,
        config: Optional[SiteServiceConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or get_settings().site_service
        self._client = client

    async def fetch_site_config(self, tenant_id: str) -> SiteConfig:
        logger.info("Loading site settings from settings service for site [%s]", tenant_id)
        body = await self._post(
            {"query": SITE_DEFINITION_QUERY, "variables": {"siteId": tenant_id}}
        )
        return parse_site_definition(tenant_id, body)

    async def _post(self, payload: dict) -> dict:
        try:
            if self._client is not None:
                resp = await self._client.post(
                    self.config.settings_url, json=payload, timeout=self.config.request_timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(
                        self.config.settings_url, json=payload, timeout=self.config.request_timeout
                    )
            resp.raise_for_status()
            return resp.json()

        except httpx.HTTPStatusError as e:
            logger.error("Settings service HTTP error: %s", e)
            raise StoreError(
                f"settings service returned {e.response.status_code}"
            ) from e

        except httpx.RequestError as e:
            logger.error("Settings service request error: %s", e)
            raise StoreError(f"settings service unreachable: {e}") from e

        except ValueError as e:
            # resp.json() on a non-JSON body
            logger.error("Settings service returned a non-JSON body: %s", e)
            raise StoreError("settings service returned a malformed response") from e


def parse_site_definition(tenant_id: str, body: dict) -> SiteConfig:
    """
    Pull the site properties out of a GraphQL response.
    Shape: {"data": {"siteDefinition": {"sites": [{"properties": {...}}]}}}
    """
    if not isinstance(body, dict):
        raise StoreError("settings service returned a malformed response")

    data = _member(body, "data", dict)
    sites = _member(_member(data, "siteDefinition", dict), "sites", list)
    properties = sites[0].get("properties") if sites and isinstance(sites[0], dict) else None
    if not properties:
        errors = body.get("errors")
        if errors:
            logger.warning("Settings service errors for site [%s]: %s", tenant_id, errors)
        raise ConfigurationError(f"site [{tenant_id}] does not exist.")
    if not isinstance(properties, dict):
        raise StoreError("settings service returned a malformed response")

    try:
        return SiteConfig(
            site_id=tenant_id,
            supported_languages=properties.get("supportedLanguages"),
            reference_store_handle=properties.get("featuresConnectionString") or None,
            bounding_box=properties.get("targetBbox") or None,
        )
    except ValidationError as e:
        logger.error("Malformed site properties for site [%s]: %s", tenant_id, e)
        raise StoreError("settings service returned a malformed response") from e


def _member(obj: dict, key: str, kind: type):
    """obj[key] when it has the expected JSON type; absent or null reads as empty."""
    value = obj.get(key)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        logger.error("Settings service returned %s for [%s], expected %s",
                     type(value).__name__, key, kind.__name__)
        raise StoreError("settings service returned a malformed response")
    return value


class CachedSiteConfigProvider:
    """
    Wrap a provider with a per-tenant TTL cache.

    Failures are never cached: the next call tries the provider again.
    """

    def __init__(self, provider: SiteConfigProvider, cache: TTLCache[SiteConfig]):
        self.provider = provider
        self.cache = cache

    async def fetch_site_config(self, tenant_id: str) -> SiteConfig:
        cached = self.cache.get(tenant_id)
        if cached is not None:
            logger.debug("Site config cache HIT: '%s'", tenant_id)
            return cached

        logger.debug("Site config cache MISS: '%s'", tenant_id)
        site = await self.provider.fetch_site_config(tenant_id)
        self.cache.set(tenant_id, site)
        return site
