from osmcharging.items import RawFeatureItem
from osmcharging.output import format_bytes, write_bytes_atomic

from scrapy.utils.project import get_project_settings
import geojson
import scrapy
import shapely
from shapely.ops import linemerge


COORDINATE_PRECISION = 7


def build_query(timeout_seconds: int) -> str:
    return (
        f"[out:json][timeout:{timeout_seconds}];\n"
        "(\n"
        "  node[amenity=charging_station];\n"
        "  way[amenity=charging_station];\n"
        "  relation[amenity=charging_station];\n"
        "  node[man_made=charge_point];\n"
        ");\n"
        "out meta geom qt;"
    )


def way_coordinates(geometry) -> list[tuple[float, float]]:
    return [(position["lon"], position["lat"]) for position in geometry or [] if position]


def assemble_rings(member_geometries) -> list[list[tuple[float, float]]]:
    lines = [shapely.LineString(coordinates) for coordinates in member_geometries if len(coordinates) >= 2]

    if not lines:
        return []

    merged = linemerge(lines)

    return [
        list(part.coords)
        for part in shapely.get_parts(merged)
        if part.is_closed and len(part.coords) >= 4
    ]


class OverpassSpider(scrapy.Spider):
    name = "overpass"

    ENDPOINTS = {
        "switzerland": "https://overpass.osm.ch/api/interpreter",
        "world": "https://overpass-api.de/api/interpreter",
    }

    def __init__(self, endpoint=None, timeout_seconds=None, keep_intermediate=None, *args, **kwargs):
        super().__init__(*args, **kwargs)

        settings = get_project_settings()

        self.overpass_url = self.endpoint_url(endpoint or settings.get("OVERPASS_ENDPOINT", "world"))
        self.timeout_seconds = int(timeout_seconds or settings.getint("OVERPASS_TIMEOUT_SECONDS", 900))

        if keep_intermediate is None:
            self.keep_intermediate = settings.getbool("KEEP_INTERMEDIATE")
        else:
            self.keep_intermediate = str(keep_intermediate).lower() in ("1", "true", "yes")

        self.raw_output = settings.get("RAW_OUTPUT", "overpass-result.json")

    def endpoint_url(self, endpoint: str) -> str:
        if endpoint in self.ENDPOINTS:
            return self.ENDPOINTS[endpoint]

        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint

        raise ValueError(f"Invalid endpoint {endpoint!r}. Expected 'switzerland', 'world', or a URL starting with http:// or https://")

    def start_requests(self):
        self.logger.info("Downloading data through Overpass API (this may take up to %d seconds...)", self.timeout_seconds)

        yield scrapy.FormRequest(
            url=self.overpass_url,
            formdata={
                "data": build_query(self.timeout_seconds),
            },
            meta={
                "download_timeout": self.timeout_seconds + 30,
            },
        )

    def parse(self, response):
        data = response.json()
        elements = data.get("elements", [])

        if not elements:
            self.logger.error("Query failed, found 0 elements.")

            if "remark" in data:
                self.logger.error("Details: %s", data["remark"])

            return

        if self.keep_intermediate:
            write_bytes_atomic(self.raw_output, response.body)

            self.logger.info("Saved intermediate file: %s (%s)", self.raw_output, format_bytes(len(response.body)))

        self.logger.info("Processing %d entries", len(elements))

        for element in elements:
            yield self.element_to_item(element)

    def element_to_item(self, element) -> RawFeatureItem:
        return RawFeatureItem(
            id=element["id"],
            kind=element["type"],
            geometry=self.element_geometry(element),
            tags=element.get("tags", {}),
            timestamp=element.get("timestamp", ""),
            version=element.get("version", 0),
            user=element.get("user"),
        )

    def element_geometry(self, element):
        match element["type"]:
            case "node":
                if "lat" not in element or "lon" not in element:
                    return None

                return geojson.Point((element["lon"], element["lat"]), precision=COORDINATE_PRECISION)
            case "way":
                coordinates = way_coordinates(element.get("geometry"))

                if not coordinates:
                    return None

                return geojson.LineString(coordinates, precision=COORDINATE_PRECISION)
            case "relation":
                return self.relation_geometry(element)

        return None

    def relation_geometry(self, element):
        if element.get("tags", {}).get("type") != "multipolygon":
            return None

        outer_geometries = []
        inner_geometries = []

        for member in element.get("members", []):
            if member["type"] != "way":
                continue

            coordinates = way_coordinates(member.get("geometry"))

            if member.get("role") == "inner":
                inner_geometries.append(coordinates)
            else:
                outer_geometries.append(coordinates)

        polygons = [[outer] for outer in assemble_rings(outer_geometries)]

        if not polygons:
            return None

        for inner in assemble_rings(inner_geometries):
            hole_point = shapely.Point(inner[0])

            for polygon in polygons:
                if shapely.Polygon(polygon[0]).covers(hole_point):
                    polygon.append(inner)

                    break
            else:
                self.logger.debug("Relation %s has an inner ring outside of every outer ring", element["id"])

        return geojson.MultiPolygon(polygons, precision=COORDINATE_PRECISION)
