from osmcharging.geometry import ResolvedStation
from osmcharging.models import ChargePointCandidate

from concurrent.futures import ThreadPoolExecutor
from typing import Optional
import logging
import os
import shapely


logger = logging.getLogger(__name__)


def pick_owner(containing: list[ResolvedStation]) -> Optional[int]:
    """
    Choose one owner for a charge point inside overlapping station areas.

    The smallest area wins so nested stations keep their own charge points,
    equal areas fall back to the lowest station id.
    """
    if not containing:
        return None

    owner = min(containing, key=lambda resolved: (resolved.area, resolved.station.id))

    return owner.station.id


def chunk(items: list, count: int) -> list[list]:
    size, remainder = divmod(len(items), count)

    chunks = []
    start = 0

    for index in range(count):
        end = start + size + (1 if index < remainder else 0)
        chunks.append(items[start:end])
        start = end

    return [items_chunk for items_chunk in chunks if items_chunk]


class SpatialMatcher:
    def __init__(self, resolved_stations: list[ResolvedStation]):
        self.stations = [resolved for resolved in resolved_stations if resolved.containing]
        self.tree = shapely.STRtree([resolved.shape for resolved in self.stations])

        for resolved in self.stations:
            shapely.prepare(resolved.shape)
            # GEOS builds the point locator lazily, do it once before worker threads share the shape
            shapely.covers(resolved.shape, resolved.shape.representative_point())

    def candidates_for(self, point: shapely.Point) -> list[ResolvedStation]:
        return [self.stations[index] for index in self.tree.query(point)]

    def owner_of(self, charge_point: ChargePointCandidate) -> Optional[int]:
        point = shapely.Point(charge_point.lon, charge_point.lat)

        containing = [
            resolved
            for resolved in self.candidates_for(point)
            if shapely.covers(resolved.shape, point)
        ]

        return pick_owner(containing)

    def match_slice(self, charge_points: list[ChargePointCandidate]) -> list[tuple[int, Optional[int]]]:
        return [(charge_point.id, self.owner_of(charge_point)) for charge_point in charge_points]

    def match(self, charge_points: list[ChargePointCandidate], workers: Optional[int] = None) -> dict[int, int]:
        if not charge_points or not self.stations:
            return {}

        if workers is None:
            workers = os.cpu_count() or 1

        slices = chunk(charge_points, max(1, min(workers, len(charge_points))))

        logger.debug("Matching %d charge points against %d station areas in %d slices", len(charge_points), len(self.stations), len(slices))

        with ThreadPoolExecutor(max_workers=len(slices)) as executor:
            # map() hands results back in submission order
            slice_results = list(executor.map(self.match_slice, slices))

        owners = {}

        for slice_result in slice_results:
            for charge_point_id, station_id in slice_result:
                if station_id is None:
                    logger.debug("Charge point %s is not inside any charging station", charge_point_id)

                    continue

                owners[charge_point_id] = station_id

        return owners
