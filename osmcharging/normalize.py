from osmcharging.errors import DuplicateIdError, MalformedFeatureError
from osmcharging.models import CHARGE_POINT_TAG_KEYS, STATION_TAG_KEYS, ChargePointCandidate, NormalizedFeatures, RawFeature, StationCandidate

from typing import Iterable, NamedTuple, Optional
import logging


logger = logging.getLogger(__name__)


LAYER_GEOMETRY_TYPES = {
    "points": ("Point",),
    "lines": ("LineString",),
    "areas": ("Polygon", "MultiPolygon"),
}


class Layers(NamedTuple):
    points: list[RawFeature]
    lines: list[RawFeature]
    areas: list[RawFeature]


def split_layers(rows: Iterable[RawFeature]) -> Layers:
    layers = Layers(points=[], lines=[], areas=[])

    for row in rows:
        geometry_type = row.geometry_type

        if geometry_type in LAYER_GEOMETRY_TYPES["lines"]:
            layers.lines.append(row)
        elif geometry_type in LAYER_GEOMETRY_TYPES["areas"]:
            layers.areas.append(row)
        else:
            # Rows without a usable geometry are reported by the normalizer
            layers.points.append(row)

    return layers


def is_station(row: RawFeature) -> bool:
    return row.tags.get("amenity") == "charging_station"


def is_charge_point(row: RawFeature) -> bool:
    return row.tags.get("man_made") == "charge_point"


def restrict_tags(tags: dict[str, str], keys: tuple[str, ...]) -> dict[str, Optional[str]]:
    return {key: tags.get(key) for key in keys}


def _is_position(value) -> bool:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return False

    return all(isinstance(ordinate, (int, float)) and not isinstance(ordinate, bool) for ordinate in value[:2])


def _is_ring_list(value) -> bool:
    if not isinstance(value, (list, tuple)) or not value:
        return False

    return all(
        isinstance(ring, (list, tuple)) and ring and all(_is_position(position) for position in ring)
        for ring in value
    )


def check_geometry(row: RawFeature, layer: str):
    geometry_type = row.geometry_type

    if geometry_type is None:
        raise MalformedFeatureError(row.id, "feature has no geometry")

    if geometry_type not in LAYER_GEOMETRY_TYPES[layer]:
        raise MalformedFeatureError(row.id, f"{geometry_type} geometry in the {layer} layer")

    coordinates = row.geometry.get("coordinates")

    if not coordinates:
        raise MalformedFeatureError(row.id, f"{geometry_type} geometry has no coordinates")

    match geometry_type:
        case "Point":
            valid = _is_position(coordinates)
        case "LineString":
            valid = len(coordinates) >= 2 and all(_is_position(position) for position in coordinates)
        case "Polygon":
            valid = _is_ring_list(coordinates)
        case "MultiPolygon":
            valid = all(_is_ring_list(polygon) for polygon in coordinates)
        case _:
            valid = False

    if not valid:
        raise MalformedFeatureError(row.id, f"{geometry_type} geometry has malformed coordinates")


def deduplicate(rows: Iterable[RawFeature], collection: str, diagnostics: list) -> list[RawFeature]:
    by_id: dict[int, RawFeature] = {}

    for row in rows:
        if row.id in by_id:
            existing = by_id.pop(row.id)

            if existing != row:
                error = DuplicateIdError(row.id, f"id seen twice in {collection}, keeping the later row")

                logger.warning("%s", error)
                diagnostics.append(error)

        by_id[row.id] = row

    return list(by_id.values())


def station_from_row(row: RawFeature) -> StationCandidate:
    return StationCandidate(
        id=row.id,
        source_geometry=row.geometry,
        tags=restrict_tags(row.tags, STATION_TAG_KEYS),
        timestamp=row.timestamp,
        version=row.version,
    )


def charge_point_from_row(row: RawFeature) -> ChargePointCandidate:
    return ChargePointCandidate(
        id=row.id,
        source_geometry=row.geometry,
        tags=restrict_tags(row.tags, CHARGE_POINT_TAG_KEYS),
        timestamp=row.timestamp,
        version=row.version,
    )


def normalize(points: Iterable[RawFeature], lines: Iterable[RawFeature], areas: Iterable[RawFeature], diagnostics: Optional[list] = None) -> NormalizedFeatures:
    if diagnostics is None:
        diagnostics = []

    points = list(points)

    station_rows: list[RawFeature] = []
    charge_point_rows: list[RawFeature] = []

    for layer, rows in (("points", points), ("lines", lines), ("areas", areas)):
        for row in deduplicate(rows, layer, diagnostics):
            if not is_station(row):
                continue

            try:
                check_geometry(row, layer)
            except MalformedFeatureError as e:
                logger.warning("Skipping charging station %s", e)
                diagnostics.append(e)

                continue

            station_rows.append(row)

    for row in deduplicate(points, "points", []):
        if not is_charge_point(row):
            continue

        try:
            check_geometry(row, "points")
        except MalformedFeatureError as e:
            logger.warning("Skipping charge point %s", e)
            diagnostics.append(e)

            continue

        charge_point_rows.append(row)

    # Node, way and relation ids are independent in OSM, stations need one id space
    station_rows = deduplicate(station_rows, "stations", diagnostics)

    return NormalizedFeatures(
        stations=[station_from_row(row) for row in station_rows],
        charge_points=[charge_point_from_row(row) for row in charge_point_rows],
    )
