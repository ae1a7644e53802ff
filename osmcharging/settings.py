import os
import pathlib

# Scrapy settings for the charging station snapshot
#
# Values can be overridden through environment variables or a
# osmcharging/local_settings.py module. See also
#
#     https://docs.scrapy.org/en/latest/topics/settings.html

BOT_NAME = "osmcharging"

SPIDER_MODULES = ["osmcharging.spiders"]
NEWSPIDER_MODULE = "osmcharging.spiders"

# Identify ourselves towards the Overpass API operators
USER_AGENT = "osmcharging (+https://wiki.openstreetmap.org/wiki/Overpass_API)"

ROBOTSTXT_OBEY = False

# One large query per crawl, no need for parallel requests
CONCURRENT_REQUESTS = 1
CONCURRENT_REQUESTS_PER_DOMAIN = 1

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

ITEM_PIPELINES = {
    "osmcharging.pipelines.SnapshotPipeline": 300,
}

TWISTED_REACTOR = "twisted.internet.asyncioreactor.AsyncioSelectorReactor"

DATA_ROOT = os.getenv("SNAPSHOT_DATA_DIR", (pathlib.Path(__file__) / ".." / ".." / "data").resolve().as_posix())

# Directory with the points/lines/multipolygons GeoJSON layers exported by ogr2ogr
OSM_EXPORT_DIR = os.getenv("OSM_EXPORT_DIR", DATA_ROOT)

# Overpass API, either "switzerland", "world" or a full interpreter URL
OVERPASS_ENDPOINT = os.getenv("OVERPASS_ENDPOINT", "world")
OVERPASS_TIMEOUT_SECONDS = int(os.getenv("OVERPASS_TIMEOUT_SECONDS", "900"))

# The server side timeout plus some slack for the transfer itself
DOWNLOAD_TIMEOUT = OVERPASS_TIMEOUT_SECONDS + 30
DOWNLOAD_MAXSIZE = 0
DOWNLOAD_WARNSIZE = 0

KEEP_INTERMEDIATE = os.getenv("KEEP_INTERMEDIATE", "false").lower() in ("1", "true", "yes")
RAW_OUTPUT = os.getenv("RAW_OUTPUT", DATA_ROOT + "/overpass-result.json")

SNAPSHOT_OUTPUT = os.getenv("SNAPSHOT_OUTPUT", DATA_ROOT + "/charging-stations-osm.json.gz")

# CRS of the incoming coordinates, everything is transformed to EPSG:4326
SNAPSHOT_SOURCE_CRS = os.getenv("SNAPSHOT_SOURCE_CRS", "EPSG:4326")

# Threads used for the containment matching, empty means one per CPU
MATCH_WORKERS = int(os.getenv("MATCH_WORKERS")) if os.getenv("MATCH_WORKERS") else None

try:
    from osmcharging.local_settings import *
except ImportError:
    pass
