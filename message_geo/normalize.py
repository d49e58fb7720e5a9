"""
Shared-location normalization.

A message's origin can attach its own location in one of three shapes:
  1. a FeatureCollection                 {"type": "FeatureCollection", "features": [...]}
  2. a geometry carrying coordinates     {"type": "Point", "coordinates": [lon, lat]}
  3. a bare coordinate pair              [lon, lat]

All three become a FeatureCollection of Point features tagged
{"source": "sharedLocation"}. Coordinates are copied as given: range checks
belong to whoever ingested the message.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from message_geo.errors import SharedLocationError
from message_geo.models import SHARED_LOCATION_SOURCE, FeatureCollection, GeoFeature

logger = logging.getLogger(__name__)


def normalize_shared_location(payload: Any) -> FeatureCollection:
    logger.debug("Shared user location %r", payload)

    if isinstance(payload, Mapping):
        if payload.get("type") == "FeatureCollection":
            return _from_feature_collection(payload)
        if "coordinates" in payload:
            return FeatureCollection(features=[_tagged_point(payload["coordinates"])])
    elif _is_pair(payload):
        return FeatureCollection(features=[_tagged_point(payload)])

    raise SharedLocationError(f"unrecognized shared location {payload!r}")


def _from_feature_collection(payload: Mapping) -> FeatureCollection:
    features = payload.get("features") or []
    if not isinstance(features, Sequence) or isinstance(features, (str, bytes)):
        raise SharedLocationError("shared feature collection has no feature list")

    points = []
    for feature in features:
        if not isinstance(feature, Mapping):
            raise SharedLocationError(f"unrecognized shared feature {feature!r}")
        # GeoJSON Feature objects keep their point under "geometry"
        geometry = feature.get("geometry") if feature.get("type") == "Feature" else feature
        if not isinstance(geometry, Mapping) or "coordinates" not in geometry:
            raise SharedLocationError(f"shared feature has no coordinates: {feature!r}")
        points.append(_tagged_point(geometry["coordinates"]))

    return FeatureCollection.of(points)


def _tagged_point(coordinates: Any) -> GeoFeature:
    if not _is_pair(coordinates):
        raise SharedLocationError(f"shared coordinates must be [lon, lat], got {coordinates!r}")
    lon, lat = coordinates
    return GeoFeature.from_lon_lat(lon, lat, {"source": SHARED_LOCATION_SOURCE})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_pair(value: Any) -> bool:
    return (
        isinstance(value, Sequence)
        and not isinstance(value, (str, bytes))
        and len(value) == 2
        and all(_is_number(v) for v in value)
    )
