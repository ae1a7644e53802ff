from osmcharging.aggregate import aggregate
from osmcharging.geometry import WGS84
from osmcharging.items import RawFeatureItem
from osmcharging.models import RawFeature
from osmcharging.output import format_bytes, write_snapshot

from scrapy import signals
import logging


logger = logging.getLogger(__name__)


def raw_feature_from_item(item: RawFeatureItem) -> RawFeature:
    return RawFeature(
        id=int(item["id"]),
        kind=item.get("kind", "node"),
        geometry=item.get("geometry"),
        tags=dict(item.get("tags") or {}),
        timestamp=item.get("timestamp", ""),
        version=int(item.get("version") or 0),
        user=item.get("user"),
    )


class SnapshotPipeline:
    """
    Collects every raw feature of a crawl and writes one snapshot at the end.

    Nothing is written unless the crawl finished normally.
    """

    def __init__(self, output_path, source_crs=WGS84, workers=None):
        self.output_path = output_path
        self.source_crs = source_crs
        self.workers = workers

        self.rows: list[RawFeature] = []

    @classmethod
    def from_crawler(cls, crawler):
        settings = crawler.settings

        pipeline = cls(
            output_path=settings.get("SNAPSHOT_OUTPUT"),
            source_crs=settings.get("SNAPSHOT_SOURCE_CRS", WGS84),
            workers=settings.get("MATCH_WORKERS") or None,
        )

        crawler.signals.connect(pipeline.spider_closed, signal=signals.spider_closed)

        return pipeline

    def process_item(self, item, spider):
        self.rows.append(raw_feature_from_item(item))

        return item

    def spider_closed(self, spider, reason):
        if reason != "finished":
            logger.error("Crawl ended with %r, not writing a snapshot", reason)

            return

        stations = [row for row in self.rows if row.tags.get("man_made") != "charge_point" or row.tags.get("amenity") == "charging_station"]
        charge_points = [row for row in self.rows if row.tags.get("man_made") == "charge_point"]

        logger.info("Aggregating %d raw features", len(self.rows))

        result = aggregate(stations, charge_points, source_crs=self.source_crs, workers=self.workers)
        report = result.report

        logger.info("Total charging stations: %d", report.stations)
        logger.info("Stations with charge points: %d", report.stations_with_charge_points)
        logger.info("Total nested charge points: %d", report.matched_charge_points)
        logger.info("Skipped or repaired features: %d", len(report.diagnostics))

        path = write_snapshot(result, self.output_path)

        logger.info("Done: %s (%s)", path, format_bytes(path.stat().st_size))
