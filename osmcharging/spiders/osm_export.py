from osmcharging.items import RawFeatureItem

from scrapy.utils.project import get_project_settings
import geojson
import scrapy

import pathlib
import re


HSTORE_PAIR = re.compile(r'"((?:[^"\\]|\\.)*)"=>"((?:[^"\\]|\\.)*)"')

OGR_METADATA_FIELDS = {
    "osm_id",
    "osm_way_id",
    "osm_version",
    "osm_timestamp",
    "osm_uid",
    "osm_user",
    "osm_changeset",
    "other_tags",
}


def parse_hstore(text) -> dict[str, str]:
    if not text:
        return {}

    return {
        key.replace('\\"', '"'): value.replace('\\"', '"')
        for key, value in HSTORE_PAIR.findall(text)
    }


def normalize_timestamp(timestamp) -> str:
    if not timestamp:
        return ""

    # ogr2ogr writes "2024/05/01 12:00:00+00"
    timestamp = str(timestamp).replace("/", "-").replace(" ", "T")

    if timestamp.endswith("+00"):
        timestamp = timestamp[:-3] + "Z"

    return timestamp


class OsmExportSpider(scrapy.Spider):
    """
    Reads the points, lines and multipolygons layers that ogr2ogr writes for
    a filtered planet extract, exported as GeoJSON files into one directory.
    """
    name = "osm_export"

    LAYERS = ["points", "lines", "multipolygons"]

    def __init__(self, directory=None, *args, **kwargs):
        super().__init__(*args, **kwargs)

        settings = get_project_settings()

        self.directory = pathlib.Path(directory or settings.get("OSM_EXPORT_DIR", settings.get("DATA_ROOT", ".")))

    def start_requests(self):
        for layer in self.LAYERS:
            layer_path = (self.directory / f"{layer}.geojson").resolve()

            if not layer_path.is_file():
                self.logger.warning("No %s layer at %s", layer, layer_path)

                continue

            yield scrapy.Request(
                url=layer_path.as_uri(),
                callback=self.parse_layer,
                cb_kwargs={
                    "layer": layer,
                },
            )

    def parse_layer(self, response, layer):
        collection = geojson.loads(response.text)
        features = collection.get("features", [])

        self.logger.info("Read %d features from the %s layer", len(features), layer)

        for feature in features:
            item = self.feature_to_item(feature, layer)

            if item is not None:
                yield item

    def feature_to_item(self, feature, layer):
        properties = feature.get("properties") or {}

        if layer == "multipolygons" and properties.get("osm_way_id"):
            feature_id, kind = properties["osm_way_id"], "way"
        elif layer == "multipolygons":
            feature_id, kind = properties.get("osm_id"), "relation"
        elif layer == "lines":
            feature_id, kind = properties.get("osm_id"), "way"
        else:
            feature_id, kind = properties.get("osm_id"), "node"

        if feature_id is None:
            self.logger.warning("Skipping %s feature without an OSM id", layer)

            return None

        tags = parse_hstore(properties.get("other_tags"))

        for key, value in properties.items():
            if key in OGR_METADATA_FIELDS or value is None:
                continue

            tags[key] = str(value)

        return RawFeatureItem(
            id=int(feature_id),
            kind=kind,
            geometry=feature.get("geometry"),
            tags=tags,
            timestamp=normalize_timestamp(properties.get("osm_timestamp")),
            version=int(properties.get("osm_version") or 0),
            user=properties.get("osm_user"),
        )
