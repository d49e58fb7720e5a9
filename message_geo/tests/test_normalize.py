"""
Tests for shared-location normalization.
"""

from __future__ import annotations

import pytest

from message_geo.errors import SharedLocationError
from message_geo.normalize import normalize_shared_location

TAG = {"source": "sharedLocation"}


class TestSharedShapes:
    def test_coordinate_pair(self):
        result = normalize_shared_location([20.06859, 32.11486])
        assert result.to_geojson() == {
            "type": "FeatureCollection",
            "features": [{"type": "Point", "coordinates": [20.06859, 32.11486], "properties": TAG}],
        }

    def test_tuple_pair(self):
        result = normalize_shared_location((20.06859, 32.11486))
        assert result.features[0].coordinates == [20.06859, 32.11486]

    def test_coordinates_object(self):
        result = normalize_shared_location({"coordinates": [20.06859, 32.11486]})
        assert result.features[0].coordinates == [20.06859, 32.11486]
        assert result.features[0].properties == TAG

    def test_point_geometry(self):
        result = normalize_shared_location({"type": "Point", "coordinates": [1, 2]})
        assert result.features[0].coordinates == [1.0, 2.0]

    def test_feature_collection_properties_replaced(self):
        shared = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Point", "coordinates": [33.329739, 22.27678445], "properties": {"x": 1}},
                {"type": "Point", "coordinates": [34.329739, 21.27678445]},
            ],
        }
        result = normalize_shared_location(shared)
        assert len(result) == 2
        assert [f.properties for f in result.features] == [TAG, TAG]
        assert result.features[1].coordinates == [34.329739, 21.27678445]

    def test_geojson_feature_lifted_to_geometry(self):
        shared = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "geometry": {"type": "Point", "coordinates": [5.0, 6.0]},
                 "properties": {"name": "home"}},
            ],
        }
        result = normalize_shared_location(shared)
        assert result.features[0].to_geojson() == {
            "type": "Point", "coordinates": [5.0, 6.0], "properties": TAG,
        }

    def test_duplicate_shared_points_collapse(self):
        shared = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Point", "coordinates": [5.0, 6.0]},
                {"type": "Point", "coordinates": [5.0, 6.0]},
            ],
        }
        assert len(normalize_shared_location(shared)) == 1

    def test_empty_feature_collection(self):
        result = normalize_shared_location({"type": "FeatureCollection", "features": []})
        assert result.is_empty()

    def test_out_of_range_passes_through(self):
        result = normalize_shared_location([500.0, -91.0])
        assert result.features[0].coordinates == [500.0, -91.0]


class TestRejectedShapes:
    @pytest.mark.parametrize("payload", [
        "20.06859,32.11486",
        [20.06859],
        [1.0, 2.0, 3.0],
        ["20.1", "32.1"],
        [True, False],
        {"lat": 1.0, "lon": 2.0},
        {"coordinates": [1.0]},
        {"type": "FeatureCollection", "features": [{"type": "Feature", "geometry": None}]},
        42,
    ])
    def test_unrecognized(self, payload):
        with pytest.raises(SharedLocationError):
            normalize_shared_location(payload)
