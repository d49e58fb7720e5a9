"""
Author geo-profile lookup.

Returns whatever location has been recorded for an author. Whether that
location is trustworthy enough to use is the resolver's call, not ours.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from message_geo.errors import StoreError
from message_geo.models import AuthorGeoProfile

logger = logging.getLogger(__name__)


class AuthorProfileStore(Protocol):
    async def get_author_profile(self, author_id: str) -> Optional[dict]:
        """Stored location mapping for the author, None if unknown; StoreError on failure."""
        ...


class AuthorProfileResolver:
    def __init__(self, store: AuthorProfileStore):
        self.store = store

    async def lookup(self, author_id: str) -> Optional[AuthorGeoProfile]:
        raw = await self.store.get_author_profile(author_id)
        if raw is None:
            logger.debug("No profile stored for author [%s]", author_id)
            return None

        try:
            return AuthorGeoProfile.model_validate({**raw, "author_id": author_id})
        except ValidationError as e:
            logger.warning("Malformed profile for author [%s]: %s", author_id, e)
            raise StoreError(f"malformed location for profile [{author_id}]") from e
