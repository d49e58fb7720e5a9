"""
Message adapter.
Ties an inbound feed message to the resolver and hands located messages
to whatever consumes them downstream (event hub writer, indexer, ...).
Transport and persistence are the consumer's business, not ours.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

from pydantic import BaseModel, Field

from message_geo.errors import InvalidMessageError
from message_geo.models import GeoFeature, LocationQuery
from message_geo.resolver import LocationResolver

logger = logging.getLogger(__name__)


class LocationEnrichedMessage(BaseModel):
    """A feed message with the locations resolved for it."""
    message_id: str
    sentence: str
    language: Optional[str] = None
    title: str = ""
    link: str = ""
    source: Optional[str] = None
    created: Optional[str] = None
    original_sources: list[str] = Field(default_factory=list)
    retweeted_message_id: str = ""
    retweet_count: int = 0
    locations: list[GeoFeature] = Field(default_factory=list)


class LocationConsumer(Protocol):
    async def publish(self, message: LocationEnrichedMessage) -> None:
        ...


def query_from_message(message: Mapping[str, Any]) -> LocationQuery:
    """
    Map a normalized feed message onto a LocationQuery.
    Keys: message (text), user_id, lang, geo (shared location).
    """
    sentence = message.get("message")
    if not sentence or not isinstance(sentence, str):
        raise InvalidMessageError(f"message [{message.get('id')}] has no text")

    return LocationQuery(
        author_id=message.get("user_id"),
        language_tag=message.get("lang"),
        sentence=sentence,
        shared_location=message.get("geo"),
    )


async def process_message(
    envelope: Mapping[str, Any],
    resolver: LocationResolver,
    consumer: LocationConsumer,
    tenant_id: Optional[str] = None,
) -> Optional[LocationEnrichedMessage]:
    """
    Resolve one inbound envelope ({"source": ..., "created_at": ...,
    "message": {...}}) and publish it when at least one location was found.

    Returns the published message, or None when nothing was located.
    Resolution errors propagate to the caller.
    """
    message = envelope.get("message") or {}
    query = query_from_message(message)
    locations = await resolver.resolve(query, tenant_id=tenant_id)

    if locations.is_empty():
        logger.info("Unable to find a targeted location for message [%s]", message.get("id"))
        return None

    source = envelope.get("source")
    enriched = LocationEnrichedMessage(
        message_id=str(message.get("id", "")),
        sentence=query.sentence,
        language=query.language_tag,
        title=message.get("title") or "",
        link=message.get("link") or "",
        source=source,
        created=envelope.get("created_at"),
        original_sources=message.get("originalSources") or ([source] if source else []),
        retweeted_message_id=str(message.get("retweet_id") or ""),
        retweet_count=message.get("retweet_count") or 0,
        locations=locations.features,
    )
    await consumer.publish(enriched)
    logger.info("Published message [%s] with %d location(s)",
                enriched.message_id, len(enriched.locations))
    return enriched
