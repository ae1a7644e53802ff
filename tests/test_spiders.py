"""
Source spiders

Overpass responses and ogr2ogr GeoJSON exports both turn into raw feature
items the snapshot pipeline understands.
"""
import json

import pytest
from scrapy.http import TextResponse

from osmcharging.aggregate import aggregate
from osmcharging.pipelines import raw_feature_from_item
from osmcharging.spiders.osm_export import OsmExportSpider, normalize_timestamp, parse_hstore
from osmcharging.spiders.overpass import OverpassSpider, assemble_rings, build_query


def json_response(url, data):
    return TextResponse(url=url, body=json.dumps(data).encode("utf-8"), encoding="utf-8")


def positions(coordinates):
    return [{"lat": lat, "lon": lon} for lon, lat in coordinates]


OVERPASS_RESPONSE = {
    "version": 0.6,
    "generator": "Overpass API",
    "elements": [
        {
            "type": "node",
            "id": 1,
            "lat": 47.3,
            "lon": 8.5,
            "timestamp": "2023-01-01T00:00:00Z",
            "version": 2,
            "user": "alice",
            "tags": {"amenity": "charging_station", "name": "Kiosk"},
        },
        {
            "type": "way",
            "id": 2,
            "timestamp": "2023-02-01T00:00:00Z",
            "version": 5,
            "user": "bob",
            "bounds": {"minlat": 47.0, "minlon": 8.0, "maxlat": 47.01, "maxlon": 8.01},
            "nodes": [11, 12, 13, 14, 11],
            "geometry": positions([(8.0, 47.0), (8.01, 47.0), (8.01, 47.01), (8.0, 47.01), (8.0, 47.0)]),
            "tags": {"amenity": "charging_station"},
        },
        {
            "type": "relation",
            "id": 3,
            "timestamp": "2023-03-01T00:00:00Z",
            "version": 1,
            "user": "carol",
            "members": [
                {"type": "way", "ref": 21, "role": "outer", "geometry": positions([(8.1, 47.0), (8.2, 47.0), (8.2, 47.1)])},
                {"type": "way", "ref": 22, "role": "outer", "geometry": positions([(8.2, 47.1), (8.1, 47.1), (8.1, 47.0)])},
                {"type": "way", "ref": 23, "role": "inner", "geometry": positions([(8.14, 47.04), (8.16, 47.04), (8.16, 47.06), (8.14, 47.06), (8.14, 47.04)])},
                {"type": "node", "ref": 24, "role": "", "lat": 47.05, "lon": 8.15},
            ],
            "tags": {"amenity": "charging_station", "type": "multipolygon"},
        },
        {
            "type": "node",
            "id": 30,
            "lat": 47.005,
            "lon": 8.005,
            "timestamp": "2023-04-01T00:00:00Z",
            "version": 1,
            "user": "dave",
            "tags": {"man_made": "charge_point"},
        },
        {
            "type": "node",
            "id": 31,
            "lat": 47.05,
            "lon": 8.15,
            "timestamp": "2023-04-01T00:00:00Z",
            "version": 1,
            "user": "dave",
            "tags": {"man_made": "charge_point"},
        },
        {
            "type": "node",
            "id": 32,
            "lat": 47.01,
            "lon": 8.11,
            "timestamp": "2023-04-01T00:00:00Z",
            "version": 1,
            "user": "dave",
            "tags": {"man_made": "charge_point"},
        },
    ],
}


class TestOverpassSpider:
    """Conversion of Overpass JSON elements."""

    def test_endpoints(self):
        assert OverpassSpider(endpoint="switzerland").overpass_url == "https://overpass.osm.ch/api/interpreter"
        assert OverpassSpider(endpoint="world").overpass_url == "https://overpass-api.de/api/interpreter"
        assert OverpassSpider(endpoint="http://localhost/api").overpass_url == "http://localhost/api"

        with pytest.raises(ValueError):
            OverpassSpider(endpoint="mars")

    def test_query(self):
        query = build_query(900)

        assert query.startswith("[out:json][timeout:900];")
        assert "node[man_made=charge_point];" in query
        assert "way[amenity=charging_station];" in query
        assert query.endswith("out meta geom qt;")

    def test_start_request(self):
        spider = OverpassSpider(endpoint="switzerland", timeout_seconds="60")

        [request] = list(spider.start_requests())

        assert request.method == "POST"
        assert request.url == "https://overpass.osm.ch/api/interpreter"
        assert b"timeout%3A60" in request.body
        assert request.meta["download_timeout"] == 90

    def test_parse_elements(self):
        spider = OverpassSpider(endpoint="switzerland")

        items = list(spider.parse(json_response(spider.overpass_url, OVERPASS_RESPONSE)))

        assert [(item["id"], item["kind"]) for item in items] == [
            (1, "node"), (2, "way"), (3, "relation"), (30, "node"), (31, "node"), (32, "node"),
        ]

        node, way, relation = items[:3]

        assert node["geometry"] == {"type": "Point", "coordinates": [8.5, 47.3]}
        assert node["user"] == "alice"
        assert way["geometry"]["type"] == "LineString"
        assert way["geometry"]["coordinates"][0] == way["geometry"]["coordinates"][-1]
        assert relation["geometry"]["type"] == "MultiPolygon"

        [polygon] = relation["geometry"]["coordinates"]

        assert len(polygon) == 2

    def test_empty_response(self, caplog):
        spider = OverpassSpider(endpoint="switzerland")
        data = {"elements": [], "remark": "runtime error: Query timed out"}

        items = list(spider.parse(json_response(spider.overpass_url, data)))

        assert items == []
        assert "Query failed, found 0 elements." in caplog.text
        assert "Query timed out" in caplog.text

    def test_keep_intermediate(self, tmp_path):
        spider = OverpassSpider(endpoint="switzerland", keep_intermediate="true")
        spider.raw_output = str(tmp_path / "overpass-result.json")

        list(spider.parse(json_response(spider.overpass_url, OVERPASS_RESPONSE)))

        assert json.loads((tmp_path / "overpass-result.json").read_text()) == OVERPASS_RESPONSE

    def test_site_relation_has_no_geometry(self):
        spider = OverpassSpider(endpoint="switzerland")

        element = {"type": "relation", "id": 9, "members": [], "tags": {"amenity": "charging_station", "type": "site"}}

        assert spider.element_geometry(element) is None

    def test_assemble_rings_drops_open_lines(self):
        rings = assemble_rings([
            [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0)],
            [(1.0, 1.0), (0.0, 0.0)],
            [(5.0, 5.0), (6.0, 6.0)],
        ])

        assert len(rings) == 1
        assert rings[0][0] == rings[0][-1]

    def test_overpass_items_aggregate(self):
        spider = OverpassSpider(endpoint="switzerland")

        rows = [raw_feature_from_item(item) for item in spider.parse(json_response(spider.overpass_url, OVERPASS_RESPONSE))]

        result = aggregate(rows, [], now=lambda: 0)

        by_id = {station.id: station for station in result.elements}

        assert sorted(by_id) == [1, 2, 3]
        assert [point.id for point in by_id[2].charge_points] == [30]
        # 31 sits in the courtyard hole of the relation
        assert [point.id for point in by_id[3].charge_points] == [32]
        assert by_id[1].charge_points is None


class TestOsmExportSpider:
    """Reading the GeoJSON layers written by ogr2ogr."""

    def test_parse_hstore(self):
        text = '"capacity"=>"4","socket:type2"=>"2","note"=>"say \\"hi\\""'

        assert parse_hstore(text) == {"capacity": "4", "socket:type2": "2", "note": 'say "hi"'}
        assert parse_hstore(None) == {}

    def test_normalize_timestamp(self):
        assert normalize_timestamp("2024/05/01 12:00:00+00") == "2024-05-01T12:00:00Z"
        assert normalize_timestamp("2024-05-01T12:00:00Z") == "2024-05-01T12:00:00Z"
        assert normalize_timestamp(None) == ""

    def test_start_requests_skip_missing_layers(self, tmp_path, caplog):
        (tmp_path / "points.geojson").write_text('{"type": "FeatureCollection", "features": []}')

        spider = OsmExportSpider(directory=str(tmp_path))

        requests = list(spider.start_requests())

        assert [request.cb_kwargs["layer"] for request in requests] == ["points"]
        assert requests[0].url.startswith("file://")
        assert "No lines layer" in caplog.text

    def test_parse_layers(self, tmp_path):
        spider = OsmExportSpider(directory=str(tmp_path))

        points = {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {
                        "osm_id": "100",
                        "osm_version": 3,
                        "osm_timestamp": "2024/05/01 12:00:00+00",
                        "osm_user": "erin",
                        "name": "Säule",
                        "man_made": "charge_point",
                        "amenity": None,
                        "other_tags": '"capacity"=>"2"',
                    },
                    "geometry": {"type": "Point", "coordinates": [8.005, 47.005]},
                },
                {
                    "type": "Feature",
                    "properties": {"name": "no id"},
                    "geometry": {"type": "Point", "coordinates": [8.0, 47.0]},
                },
            ],
        }
        multipolygons = {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {"osm_id": None, "osm_way_id": "200", "amenity": "charging_station", "osm_version": "1"},
                    "geometry": {
                        "type": "MultiPolygon",
                        "coordinates": [[[[8.0, 47.0], [8.01, 47.0], [8.01, 47.01], [8.0, 47.01], [8.0, 47.0]]]],
                    },
                },
            ],
        }

        point_items = list(spider.parse_layer(json_response((tmp_path / "points.geojson").as_uri(), points), layer="points"))
        area_items = list(spider.parse_layer(json_response((tmp_path / "multipolygons.geojson").as_uri(), multipolygons), layer="multipolygons"))

        [charge_point] = point_items
        [station] = area_items

        assert charge_point["id"] == 100
        assert charge_point["kind"] == "node"
        assert charge_point["tags"] == {"name": "Säule", "man_made": "charge_point", "capacity": "2"}
        assert charge_point["timestamp"] == "2024-05-01T12:00:00Z"
        assert charge_point["version"] == 3
        assert charge_point["user"] == "erin"

        assert (station["id"], station["kind"]) == (200, "way")

        rows = [raw_feature_from_item(item) for item in [*area_items, *point_items]]
        result = aggregate(rows, [], now=lambda: 0)

        assert [point.id for point in result.elements[0].charge_points] == [100]
