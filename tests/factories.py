"""Builders for raw OSM features used across the tests."""
from osmcharging.models import RawFeature


TIMESTAMP = "2024-05-01T12:00:00Z"


def square(x, y, size):
    return [
        [x, y],
        [x + size, y],
        [x + size, y + size],
        [x, y + size],
        [x, y],
    ]


def node(feature_id, lon, lat, **tags):
    return RawFeature(
        id=feature_id,
        kind="node",
        geometry={"type": "Point", "coordinates": [lon, lat]},
        tags=tags,
        timestamp=TIMESTAMP,
        version=3,
        user="mapper",
    )


def way(feature_id, coordinates, **tags):
    return RawFeature(
        id=feature_id,
        kind="way",
        geometry={"type": "LineString", "coordinates": coordinates},
        tags=tags,
        timestamp=TIMESTAMP,
        version=2,
        user="mapper",
    )


def area(feature_id, rings, **tags):
    return RawFeature(
        id=feature_id,
        kind="relation",
        geometry={"type": "Polygon", "coordinates": rings},
        tags=tags,
        timestamp=TIMESTAMP,
        version=1,
        user="mapper",
    )


def station_node(feature_id, lon, lat, **tags):
    return node(feature_id, lon, lat, amenity="charging_station", **tags)


def station_area(feature_id, rings, **tags):
    return area(feature_id, rings, amenity="charging_station", **tags)


def charge_point(feature_id, lon, lat, **tags):
    return node(feature_id, lon, lat, man_made="charge_point", **tags)
