from osmcharging.errors import EmptyInputError
from osmcharging.geometry import WGS84, GeometryResolver, ResolvedStation, resolve_charge_points, resolve_stations
from osmcharging.matching import SpatialMatcher
from osmcharging.models import AggregatedResult, AggregatedStation, ChargePointCandidate, ChargePointRecord, RunReport
from osmcharging.normalize import normalize, split_layers

from collections import defaultdict
from itertools import chain
from typing import Callable, Iterable, Optional
import logging
import time


logger = logging.getLogger(__name__)


def charge_point_record(charge_point: ChargePointCandidate) -> ChargePointRecord:
    return ChargePointRecord(
        id=charge_point.id,
        lat=charge_point.lat,
        lon=charge_point.lon,
        timestamp=charge_point.timestamp,
        version=charge_point.version,
        tags=dict(charge_point.tags),
    )


def group_charge_points(charge_points: list[ChargePointCandidate], owners: dict[int, int]) -> dict[int, list[ChargePointRecord]]:
    groups = defaultdict(list)

    # Walk the charge points in scan order, not in the order matches finished
    for charge_point in charge_points:
        if charge_point.id not in owners:
            continue

        groups[owners[charge_point.id]].append(charge_point_record(charge_point))

    return groups


def build_stations(resolved_stations: list[ResolvedStation], groups: dict[int, list[ChargePointRecord]]) -> list[AggregatedStation]:
    stations = []

    for resolved in resolved_stations:
        station = resolved.station

        stations.append(
            AggregatedStation(
                id=station.id,
                geometry=station.geometry,
                timestamp=station.timestamp,
                version=station.version,
                tags=dict(station.tags),
                charge_points=groups.get(station.id) or None,
            )
        )

    return stations


def aggregate(station_rows: Iterable, charge_point_rows: Iterable, *, source_crs: str = WGS84, workers: Optional[int] = None, now: Callable[[], float] = time.time) -> AggregatedResult:
    rows = list(chain(station_rows, charge_point_rows))

    if not rows:
        raise EmptyInputError()

    report = RunReport(raw_rows=len(rows))

    layers = split_layers(rows)
    normalized = normalize(layers.points, layers.lines, layers.areas, report.diagnostics)

    resolver = GeometryResolver(source_crs)
    resolved_stations = resolve_stations(resolver, normalized.stations, report.diagnostics)
    charge_points = resolve_charge_points(resolver, normalized.charge_points, report.diagnostics)

    owners = SpatialMatcher(resolved_stations).match(charge_points, workers=workers)
    groups = group_charge_points(charge_points, owners)

    elements = build_stations(resolved_stations, groups)

    report.stations = len(elements)
    report.stations_with_charge_points = sum(1 for element in elements if element.charge_points)
    report.charge_points = len(charge_points)
    report.matched_charge_points = len(owners)
    report.unmatched_charge_points = len(charge_points) - len(owners)

    if report.unmatched_charge_points:
        logger.info("%d charge points are outside of every charging station and were left out", report.unmatched_charge_points)

    return AggregatedResult(
        timestamp=int(now()),
        elements=elements,
        report=report,
    )
