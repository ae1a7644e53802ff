"""
Wire format of the charging station snapshot.

Keys are emitted in a fixed order so consecutive snapshots diff cleanly.
"""
from osmcharging.models import AggregatedResult, AggregatedStation, ChargePointRecord, LineGeometry, PointGeometry, PolygonGeometry

import json


def charge_point_to_wire(charge_point: ChargePointRecord) -> dict:
    return {
        "id": charge_point.id,
        "lat": charge_point.lat,
        "lon": charge_point.lon,
        "type": "node",
        "timestamp": charge_point.timestamp,
        "version": charge_point.version,
        "tags": dict(charge_point.tags),
    }


def station_to_wire(station: AggregatedStation) -> dict:
    match station.geometry:
        case PointGeometry(lat=lat, lon=lon):
            lat, lon, element_type = lat, lon, "node"
        case LineGeometry() | PolygonGeometry():
            lat, lon, element_type = None, None, "way"
        case _:
            raise TypeError(f"Unknown station geometry: {station.geometry!r}")

    charge_points = None

    if station.charge_points:
        charge_points = [charge_point_to_wire(charge_point) for charge_point in station.charge_points]

    return {
        "id": station.id,
        "lat": lat,
        "lon": lon,
        "type": element_type,
        "timestamp": station.timestamp,
        "version": station.version,
        "tags": dict(station.tags),
        "charge_points": charge_points,
    }


def to_wire(result: AggregatedResult) -> dict:
    elements = [station_to_wire(station) for station in result.elements]

    return {
        "timestamp": result.timestamp,
        "count": len(elements),
        "elements": elements,
    }


def dumps(result: AggregatedResult) -> str:
    return json.dumps(to_wire(result), ensure_ascii=False, separators=(",", ":"))


def loads(text: str) -> dict:
    return json.loads(text)
