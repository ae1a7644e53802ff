from osmcharging.errors import GeometryError, MalformedFeatureError, ProjectionError
from osmcharging.models import ChargePointCandidate, Coordinate, LineGeometry, PointGeometry, PolygonGeometry, Ring, StationCandidate

from typing import NamedTuple, Optional
import dataclasses
import logging
import math
import pyproj
import shapely


logger = logging.getLogger(__name__)


WGS84 = "EPSG:4326"


class ResolvedStation(NamedTuple):
    station: StationCandidate

    # None for stations that can not contain charge points
    shape: Optional[shapely.Polygon | shapely.MultiPolygon]
    area: float = 0.0

    @property
    def containing(self) -> bool:
        return self.shape is not None


def is_closed(coordinates) -> bool:
    return tuple(coordinates[0][:2]) == tuple(coordinates[-1][:2])


class GeometryResolver:
    def __init__(self, source_crs: str = WGS84):
        self.source_crs = source_crs
        self.transformer = pyproj.Transformer.from_crs(source_crs, WGS84, always_xy=True)
        self.geod = pyproj.Geod(ellps="WGS84")

    def transform(self, feature_id: int, coordinates) -> list[Coordinate]:
        xs = [float(position[0]) for position in coordinates]
        ys = [float(position[1]) for position in coordinates]

        try:
            lons, lats = self.transformer.transform(xs, ys, errcheck=True)
        except pyproj.exceptions.ProjError as e:
            raise ProjectionError(feature_id, f"can not transform from {self.source_crs}: {e}") from e

        transformed = list(zip(lons, lats))

        for lon, lat in transformed:
            if not (math.isfinite(lon) and math.isfinite(lat)):
                raise ProjectionError(feature_id, f"transform from {self.source_crs} gave non-finite coordinates")

            if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
                raise ProjectionError(feature_id, f"coordinates ({lon}, {lat}) are outside of WGS84")

        return transformed

    def transform_ring(self, feature_id: int, ring) -> Ring:
        return tuple(self.transform(feature_id, ring))

    def transform_polygons(self, feature_id: int, polygons) -> PolygonGeometry:
        transformed = []

        for rings in polygons:
            exterior = self.transform_ring(feature_id, rings[0])
            holes = tuple(self.transform_ring(feature_id, hole) for hole in rings[1:])

            transformed.append((exterior, holes))

        return PolygonGeometry(polygons=tuple(transformed))

    def build_shape(self, feature_id: int, geometry: PolygonGeometry) -> shapely.Polygon | shapely.MultiPolygon:
        polygons = []

        for exterior, holes in geometry.polygons:
            for ring in (exterior, *holes):
                if len(ring) < 4:
                    raise GeometryError(feature_id, f"ring with {len(ring)} positions, at least 4 are needed")

                if not is_closed(ring):
                    raise GeometryError(feature_id, "ring is not closed")

            polygons.append(shapely.Polygon(exterior, holes or None))

        if len(polygons) == 1:
            shape = polygons[0]
        else:
            shape = shapely.MultiPolygon(polygons)

        if shape.area == 0:
            raise GeometryError(feature_id, "polygon has zero area")

        if not shape.is_valid:
            raise GeometryError(feature_id, f"invalid polygon ({shapely.is_valid_reason(shape)})")

        return shape

    def geodesic_area(self, shape) -> float:
        area, _ = self.geod.geometry_area_perimeter(shape)

        return abs(area)

    def resolve_station(self, station: StationCandidate, diagnostics: list) -> ResolvedStation:
        source = station.source_geometry
        coordinates = source["coordinates"]

        match source["type"]:
            case "Point":
                [(lon, lat)] = self.transform(station.id, [coordinates])

                geometry = PointGeometry(lat=lat, lon=lon)
            case "LineString":
                if is_closed(coordinates):
                    geometry = self.transform_polygons(station.id, [[coordinates]])
                else:
                    geometry = LineGeometry(coordinates=tuple(self.transform(station.id, coordinates)))
            case "Polygon":
                geometry = self.transform_polygons(station.id, [coordinates])
            case "MultiPolygon":
                geometry = self.transform_polygons(station.id, coordinates)
            case other:
                raise MalformedFeatureError(station.id, f"unsupported station geometry {other}")

        station = dataclasses.replace(station, geometry=geometry)

        if not isinstance(geometry, PolygonGeometry):
            return ResolvedStation(station=station, shape=None)

        try:
            shape = self.build_shape(station.id, geometry)
        except GeometryError as e:
            logger.warning("Charging station %s will not contain charge points", e)
            diagnostics.append(e)

            return ResolvedStation(station=station, shape=None)

        return ResolvedStation(station=station, shape=shape, area=self.geodesic_area(shape))

    def resolve_charge_point(self, charge_point: ChargePointCandidate) -> ChargePointCandidate:
        [(lon, lat)] = self.transform(charge_point.id, [charge_point.source_geometry["coordinates"]])

        return dataclasses.replace(charge_point, lat=lat, lon=lon)


def resolve_stations(resolver: GeometryResolver, stations: list[StationCandidate], diagnostics: list) -> list[ResolvedStation]:
    resolved_stations = []

    for station in stations:
        try:
            resolved_stations.append(resolver.resolve_station(station, diagnostics))
        except (MalformedFeatureError, ProjectionError) as e:
            logger.warning("Dropping charging station %s", e)
            diagnostics.append(e)

    return resolved_stations


def resolve_charge_points(resolver: GeometryResolver, charge_points: list[ChargePointCandidate], diagnostics: list) -> list[ChargePointCandidate]:
    resolved_charge_points = []

    for charge_point in charge_points:
        try:
            resolved_charge_points.append(resolver.resolve_charge_point(charge_point))
        except ProjectionError as e:
            logger.warning("Dropping charge point %s", e)
            diagnostics.append(e)

    return resolved_charge_points
