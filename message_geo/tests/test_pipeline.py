"""
Tests for the message adapter: envelope -> query -> resolver -> consumer.
"""

from __future__ import annotations

import pytest

from message_geo.errors import InvalidMessageError, UnsupportedLanguageError
from message_geo.pipeline import LocationEnrichedMessage, process_message, query_from_message
from message_geo.tests.fakes import TRIPOLI


class RecordingConsumer:
    def __init__(self):
        self.published: list[LocationEnrichedMessage] = []

    async def publish(self, message: LocationEnrichedMessage) -> None:
        self.published.append(message)


def _envelope(**message) -> dict:
    message.setdefault("id", 1234)
    return {"source": "twitter", "created_at": "2017-03-01T10:00:00Z", "message": message}


class TestQueryFromMessage:
    def test_fields_mapped(self):
        query = query_from_message(
            {"message": "hello", "user_id": "42", "lang": "en", "geo": [1.0, 2.0]}
        )
        assert query.sentence == "hello"
        assert query.author_id == "42"
        assert query.language_tag == "en"
        assert query.shared_location == [1.0, 2.0]

    def test_missing_text(self):
        with pytest.raises(InvalidMessageError):
            query_from_message({"id": 1, "user_id": "42"})


class TestProcessMessage:
    @pytest.mark.asyncio
    async def test_located_message_published(self, resolver):
        consumer = RecordingConsumer()
        published = await process_message(
            _envelope(message="Clashes in Tripoli", title="Update", lang="en", retweet_count=3),
            resolver,
            consumer,
        )
        assert consumer.published == [published]
        assert published.message_id == "1234"
        assert published.language == "en"
        assert published.title == "Update"
        assert published.source == "twitter"
        assert published.original_sources == ["twitter"]
        assert published.retweet_count == 3
        assert [f.coordinates for f in published.locations] == [TRIPOLI]

    @pytest.mark.asyncio
    async def test_unlocated_message_not_published(self, resolver):
        consumer = RecordingConsumer()
        assert await process_message(_envelope(message="Nothing here"), resolver, consumer) is None
        assert consumer.published == []

    @pytest.mark.asyncio
    async def test_shared_location_published(self, resolver):
        consumer = RecordingConsumer()
        published = await process_message(
            _envelope(message="Nothing here", geo=[20.06859, 32.11486],
                      originalSources=["twitter", "facebook"]),
            resolver,
            consumer,
        )
        assert published.locations[0].properties == {"source": "sharedLocation"}
        assert published.original_sources == ["twitter", "facebook"]

    @pytest.mark.asyncio
    async def test_errors_propagate(self, resolver):
        consumer = RecordingConsumer()
        with pytest.raises(UnsupportedLanguageError):
            await process_message(_envelope(message="Tripoli", lang="zz"), resolver, consumer)
        assert consumer.published == []
