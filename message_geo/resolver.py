"""
Location resolution orchestrator.

Resolves a LocationQuery to a FeatureCollection by trying, in order:
  1. the location the message's origin shared with it
  2. the stored geo-profile of its author, when confident enough
  3. place names mentioned in the message text

Each step is a strategy returning a StrategyResult. The first strategy to
resolve wins; later strategies never run (the gazetteer query is by far the
most expensive call, so it only happens when nothing cheaper answered).

An empty FeatureCollection is a valid answer. Everything else that goes
wrong is raised as a LocationResolutionError subclass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

from message_geo.cache import TTLCache
from message_geo.config import Settings, get_settings
from message_geo.db import PoolRegistry, PostgresAuthorProfileStore, ReferenceStores
from message_geo.errors import (
    ConfigurationError,
    LocationResolutionError,
    UnsupportedLanguageError,
)
from message_geo.gazetteer import GazetteerMatcher, ReferenceStore
from message_geo.languages import LanguageColumns
from message_geo.models import FeatureCollection, GeoFeature, LocationQuery, SiteConfig
from message_geo.normalize import normalize_shared_location
from message_geo.profiles import AuthorProfileResolver
from message_geo.site_config import (
    CachedSiteConfigProvider,
    SettingsServiceClient,
    SiteConfigProvider,
)

logger = logging.getLogger(__name__)

# Profiles below this confidence are never used. Fixed policy, not per tenant.
CONFIDENCE_THRESHOLD = 0.6


# ── Strategy results ──────────────────────────────────────────────────

class Outcome(str, Enum):
    RESOLVED = "resolved"
    CONTINUE = "continue"
    FAILED = "failed"


@dataclass(frozen=True)
class StrategyResult:
    outcome: Outcome
    collection: Optional[FeatureCollection] = None
    reason: str = ""
    error: Optional[LocationResolutionError] = None

    @classmethod
    def resolved(cls, collection: FeatureCollection) -> "StrategyResult":
        return cls(Outcome.RESOLVED, collection=collection)

    @classmethod
    def proceed(cls, reason: str) -> "StrategyResult":
        return cls(Outcome.CONTINUE, reason=reason)

    @classmethod
    def failed(cls, error: LocationResolutionError) -> "StrategyResult":
        return cls(Outcome.FAILED, error=error, reason=str(error))


@dataclass(frozen=True)
class ResolutionContext:
    query: LocationQuery
    site: SiteConfig


class LocationStrategy(Protocol):
    name: str

    async def attempt(self, ctx: ResolutionContext) -> StrategyResult:
        ...


# ── Strategies ────────────────────────────────────────────────────────

class SharedLocationStrategy:
    name = "shared_location"

    async def attempt(self, ctx: ResolutionContext) -> StrategyResult:
        if ctx.query.shared_location is None:
            return StrategyResult.proceed("no shared location")
        try:
            return StrategyResult.resolved(normalize_shared_location(ctx.query.shared_location))
        except LocationResolutionError as e:
            return StrategyResult.failed(e)


class AuthorProfileStrategy:
    name = "author_profile"

    def __init__(self, profiles: AuthorProfileResolver, author_ref_field: str = "authorRef"):
        self.profiles = profiles
        self.author_ref_field = author_ref_field

    async def attempt(self, ctx: ResolutionContext) -> StrategyResult:
        author_id = ctx.query.author_id
        if not author_id:
            return StrategyResult.proceed("no author id")

        try:
            profile = await self.profiles.lookup(author_id)
        except LocationResolutionError as e:
            return StrategyResult.failed(e)

        if profile is None:
            return StrategyResult.proceed(f"no profile for author [{author_id}]")
        if profile.confidence < CONFIDENCE_THRESHOLD:
            return StrategyResult.proceed(
                f"profile confidence {profile.confidence} below threshold [{CONFIDENCE_THRESHOLD}]"
            )

        feature = GeoFeature.from_lon_lat(
            profile.longitude,
            profile.latitude,
            {"confidence": profile.confidence, self.author_ref_field: author_id},
        )
        return StrategyResult.resolved(FeatureCollection(features=[feature]))


class GazetteerStrategy:
    name = "gazetteer"

    def __init__(
        self,
        matcher: GazetteerMatcher,
        reference_stores: Callable[[str], ReferenceStore],
    ):
        self.matcher = matcher
        self.reference_stores = reference_stores

    async def attempt(self, ctx: ResolutionContext) -> StrategyResult:
        store = self.reference_stores(ctx.site.reference_store_handle)
        try:
            collection = await self.matcher.match(
                ctx.query.sentence, ctx.site.supported_languages, store
            )
        except LocationResolutionError as e:
            return StrategyResult.failed(e)
        return StrategyResult.resolved(collection)


# ── Orchestrator ──────────────────────────────────────────────────────

class LocationResolver:
    """
    Public entry point. Owns its site-config cache, so two resolvers never
    share state and each can be built fresh for a test.
    """

    def __init__(
        self,
        site_configs: SiteConfigProvider,
        strategies: Sequence[LocationStrategy],
        language_columns: Optional[LanguageColumns] = None,
        default_tenant: Optional[str] = None,
    ):
        self.site_configs = site_configs
        self.strategies = list(strategies)
        self.language_columns = language_columns if language_columns is not None else LanguageColumns()
        self.default_tenant = default_tenant
        self._pools: Optional[PoolRegistry] = None

    @classmethod
    def build(
        cls,
        site_provider: SiteConfigProvider,
        profiles: AuthorProfileResolver,
        reference_stores: Callable[[str], ReferenceStore],
        language_columns: Optional[LanguageColumns] = None,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache[SiteConfig]] = None,
        default_tenant: Optional[str] = None,
    ) -> "LocationResolver":
        """Standard chain: shared location -> author profile -> gazetteer."""
        settings = settings or get_settings()
        if cache is None:
            cache = TTLCache(settings.site_service.cache_ttl_seconds)
        strategies = [
            SharedLocationStrategy(),
            AuthorProfileStrategy(profiles, settings.resolution.author_ref_field),
            GazetteerStrategy(
                GazetteerMatcher(settings.resolution.min_name_length), reference_stores
            ),
        ]
        return cls(
            CachedSiteConfigProvider(site_provider, cache),
            strategies,
            language_columns=language_columns,
            default_tenant=default_tenant or settings.site_service.site_name or None,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LocationResolver":
        """
        Production resolver: settings service over httpx, Postgres stores
        over asyncpg. Call close() on shutdown to release the pools.
        """
        settings = settings or get_settings()
        missing = [
            name
            for name, value in (
                ("SITE_NAME", settings.site_service.site_name),
                ("SITE_SERVICE_HOST", settings.site_service.host),
                ("PROFILE_STORE_DSN", settings.profile_store.dsn),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"required settings undefined: {', '.join(missing)}")

        language_columns = LanguageColumns.from_setting(settings.reference_store.language_columns)
        pools = PoolRegistry(
            min_size=settings.reference_store.min_pool_size,
            max_size=settings.reference_store.max_pool_size,
        )
        reference_stores = ReferenceStores(pools, language_columns, settings.reference_store)
        profiles = AuthorProfileResolver(PostgresAuthorProfileStore(pools, settings.profile_store))

        resolver = cls.build(
            SettingsServiceClient(settings.site_service),
            profiles,
            reference_stores.for_handle,
            language_columns=language_columns,
            settings=settings,
        )
        resolver._pools = pools
        return resolver

    async def close(self) -> None:
        if self._pools is not None:
            await self._pools.close()

    async def resolve(self, query: LocationQuery, tenant_id: Optional[str] = None) -> FeatureCollection:
        tenant = tenant_id or self.default_tenant
        if not tenant:
            raise ConfigurationError("site name is undefined")

        site = await self.site_configs.fetch_site_config(tenant)
        self._validate(site, query)

        ctx = ResolutionContext(query=query, site=site)
        for strategy in self.strategies:
            result = await strategy.attempt(ctx)
            log_fields = {"site": tenant, "strategy": strategy.name}
            if result.outcome is Outcome.RESOLVED:
                logger.info("Resolved %d location(s) via %s", len(result.collection), strategy.name,
                            extra=log_fields)
                return result.collection
            if result.outcome is Outcome.FAILED:
                logger.error("Location strategy %s failed: %s", strategy.name, result.reason,
                             extra=log_fields)
                raise result.error
            logger.debug("Strategy %s passed: %s", strategy.name, result.reason, extra=log_fields)

        return FeatureCollection.empty()

    def _validate(self, site: SiteConfig, query: LocationQuery) -> None:
        if not site.supported_languages or not site.reference_store_handle:
            raise ConfigurationError(
                "either supportedLanguages or the reference store connection is undefined."
            )
        unmapped = self.language_columns.unmapped(site.supported_languages)
        if unmapped:
            raise ConfigurationError(
                f"no reference-store name column for language(s) {', '.join(unmapped)}"
            )
        if query.language_tag and query.language_tag.lower() not in site.supported_languages:
            logger.warning("Rejecting message in unsupported language [%s]", query.language_tag)
            raise UnsupportedLanguageError(query.language_tag)

