"""
Error kinds raised by location resolution.

"No location found" is not an error: it is an empty FeatureCollection.
Everything below is fatal to the resolution that raised it.
"""

from __future__ import annotations


class LocationResolutionError(Exception):
    """Base class for every error the resolver surfaces to its caller."""


class ConfigurationError(LocationResolutionError):
    """Tenant configuration or required settings are missing or invalid."""


class UnsupportedLanguageError(LocationResolutionError):
    """The message language tag is not supported by the tenant."""

    def __init__(self, language: str):
        self.language = language
        super().__init__(f"[{language}] is an unsupported language.")


class StoreError(LocationResolutionError):
    """A backing store was unreachable, timed out, or answered garbage."""


class SharedLocationError(LocationResolutionError):
    """A caller-supplied shared location has no recognizable shape."""


class InvalidMessageError(LocationResolutionError):
    """An inbound message cannot be turned into a location query."""
