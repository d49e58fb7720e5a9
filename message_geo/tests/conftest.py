"""
Shared fixtures wiring the in-memory fakes into a resolver.
"""

from __future__ import annotations

import pytest

from message_geo.cache import TTLCache
from message_geo.config import Settings
from message_geo.models import SiteConfig
from message_geo.profiles import AuthorProfileResolver
from message_geo.resolver import LocationResolver
from message_geo.tests.fakes import (
    LOCALITIES,
    PROFILES,
    TENANT,
    FakeProfileStore,
    FakeReferenceStore,
    FakeSiteProvider,
)


@pytest.fixture
def site():
    return SiteConfig(
        site_id=TENANT,
        supported_languages=["en", "ar"],
        reference_store_handle="postgresql://localities",
    )


@pytest.fixture
def site_provider(site):
    return FakeSiteProvider({TENANT: site})


@pytest.fixture
def profile_store():
    return FakeProfileStore(dict(PROFILES))


@pytest.fixture
def reference_store():
    return FakeReferenceStore(LOCALITIES)


@pytest.fixture
def resolver(site_provider, profile_store, reference_store):
    return LocationResolver.build(
        site_provider,
        AuthorProfileResolver(profile_store),
        lambda handle: reference_store,
        settings=Settings(),
        cache=TTLCache(3600),
        default_tenant=TENANT,
    )
