"""
Pydantic models used across location resolution for validation and serialization.
These are pure data objects with no store coupling.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

SHARED_LOCATION_SOURCE = "sharedLocation"


# ── Inbound query ─────────────────────────────────────────────────────

class LocationQuery(BaseModel):
    """One message to locate. Discarded once resolved."""
    author_id: Optional[str] = Field(None, alias="authorId")
    language_tag: Optional[str] = Field(None, alias="languageTag")
    sentence: str
    # Coordinate pair, geometry or feature collection; shape is checked by the normalizer
    shared_location: Optional[Any] = Field(None, alias="sharedLocation")

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("author_id", "language_tag", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Feeds send "" (or numeric ids) where they mean absent (or a string id)."""
        if v is None:
            return None
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str) and not v.strip():
            return None
        return v


# ── GeoJSON output ────────────────────────────────────────────────────

class GeoFeature(BaseModel):
    """A point geometry with optional metadata. Coordinates are [lon, lat]."""
    type: Literal["Point"] = "Point"
    coordinates: list[float]
    properties: Optional[dict[str, Any]] = None

    @field_validator("coordinates")
    @classmethod
    def lon_lat_pair(cls, v: list[float]) -> list[float]:
        if len(v) != 2:
            raise ValueError(f"point coordinates must be [lon, lat], got {len(v)} values")
        return v

    @classmethod
    def from_lon_lat(
        cls, lon: float, lat: float, properties: Optional[dict[str, Any]] = None
    ) -> "GeoFeature":
        return cls(coordinates=[lon, lat], properties=properties)

    @classmethod
    def from_geojson(cls, geometry: str) -> "GeoFeature":
        """Parse a serialized point geometry (e.g. ST_AsGeoJSON output)."""
        return cls.model_validate(json.loads(geometry))

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    def canonical_geometry(self) -> str:
        """Compact serialized geometry, properties excluded. Used as the dedup key."""
        return canonical_point(self.longitude, self.latitude)

    def to_geojson(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class FeatureCollection(BaseModel):
    """Ordered features, unique by canonical geometry."""
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[GeoFeature] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_geometries(self) -> "FeatureCollection":
        seen: set[str] = set()
        for feature in self.features:
            key = feature.canonical_geometry()
            if key in seen:
                raise ValueError(f"duplicate geometry in feature collection: {key}")
            seen.add(key)
        return self

    @classmethod
    def empty(cls) -> "FeatureCollection":
        return cls()

    @classmethod
    def of(cls, features: Iterable[GeoFeature]) -> "FeatureCollection":
        """Build a collection, dropping later features whose geometry was already seen."""
        unique: dict[str, GeoFeature] = {}
        for feature in features:
            unique.setdefault(feature.canonical_geometry(), feature)
        return cls(features=list(unique.values()))

    def is_empty(self) -> bool:
        return not self.features

    def __len__(self) -> int:
        return len(self.features)

    def geometries(self) -> set[str]:
        return {f.canonical_geometry() for f in self.features}

    def to_geojson(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def canonical_point(lon: float, lat: float) -> str:
    return json.dumps(
        {"type": "Point", "coordinates": [float(lon), float(lat)]},
        separators=(",", ":"),
    )


# ── Collaborator data ─────────────────────────────────────────────────

class AuthorGeoProfile(BaseModel):
    """Location previously observed for an author, as stored."""
    author_id: str
    latitude: float = Field(..., validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(..., validation_alias=AliasChoices("longitude", "lon"))
    confidence: float = Field(0.0, ge=0.0, le=1.0)

    model_config = {"populate_by_name": True}

    @field_validator("confidence", mode="before")
    @classmethod
    def missing_confidence_is_zero(cls, v):
        return 0.0 if v is None else v


class SiteConfig(BaseModel):
    """Per-tenant settings. Completeness is checked by the resolver, not here."""
    site_id: str
    supported_languages: frozenset[str] = frozenset()
    reference_store_handle: Optional[str] = None
    bounding_box: Optional[list[float]] = None

    @field_validator("supported_languages", mode="before")
    @classmethod
    def parse_languages(cls, v):
        """Languages can arrive as a list or a comma-separated string."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, (list, tuple, set, frozenset)):
            raise ValueError(f"supported languages must be a list or a string, got {type(v).__name__}")
        if not all(isinstance(code, str) for code in v):
            raise ValueError(f"supported languages must be language codes, got {sorted(map(repr, v))}")
        return frozenset(code.strip().lower() for code in v if code.strip())
