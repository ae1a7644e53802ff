from dataclasses import dataclass
from typing import NamedTuple, Optional
import dataclasses


STATION_TAG_KEYS = ("amenity", "name", "operator", "brand", "capacity", "fee")
CHARGE_POINT_TAG_KEYS = ("man_made", "name", "operator", "brand", "capacity", "fee")


Coordinate = tuple[float, float]
Ring = tuple[Coordinate, ...]


@dataclass(frozen=True)
class RawFeature:
    id: int
    kind: str
    geometry: Optional[dict]
    tags: dict[str, str] = dataclasses.field(default_factory=dict)
    timestamp: str = ""
    version: int = 0
    user: Optional[str] = None

    @property
    def geometry_type(self) -> Optional[str]:
        if not self.geometry:
            return None

        return self.geometry.get("type")


@dataclass(frozen=True)
class PointGeometry:
    lat: float
    lon: float


@dataclass(frozen=True)
class LineGeometry:
    coordinates: tuple[Coordinate, ...]


@dataclass(frozen=True)
class PolygonGeometry:
    # (exterior, holes) per polygon, coordinates as (lon, lat)
    polygons: tuple[tuple[Ring, tuple[Ring, ...]], ...]


StationGeometry = PointGeometry | LineGeometry | PolygonGeometry


@dataclass(frozen=True)
class StationCandidate:
    id: int
    source_geometry: dict
    tags: dict[str, Optional[str]]
    timestamp: str
    version: int

    geometry: Optional[StationGeometry] = None


@dataclass(frozen=True)
class ChargePointCandidate:
    id: int
    source_geometry: dict
    tags: dict[str, Optional[str]]
    timestamp: str
    version: int

    lat: Optional[float] = None
    lon: Optional[float] = None


@dataclass
class ChargePointRecord:
    id: int
    lat: float
    lon: float
    timestamp: str
    version: int
    tags: dict[str, Optional[str]]


@dataclass
class AggregatedStation:
    id: int
    geometry: StationGeometry
    timestamp: str
    version: int
    tags: dict[str, Optional[str]]

    charge_points: Optional[list[ChargePointRecord]] = None


@dataclass
class RunReport:
    raw_rows: int = 0
    stations: int = 0
    stations_with_charge_points: int = 0
    charge_points: int = 0
    matched_charge_points: int = 0
    unmatched_charge_points: int = 0

    diagnostics: list[Exception] = dataclasses.field(default_factory=list)


@dataclass
class AggregatedResult:
    timestamp: int
    elements: list[AggregatedStation] = dataclasses.field(default_factory=list)
    report: RunReport = dataclasses.field(default_factory=RunReport)

    @property
    def count(self) -> int:
        return len(self.elements)


class NormalizedFeatures(NamedTuple):
    stations: list[StationCandidate]
    charge_points: list[ChargePointCandidate]
