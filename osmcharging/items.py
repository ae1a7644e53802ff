import scrapy


class RawFeatureItem(scrapy.Item):
    id: int = scrapy.Field()
    kind: str = scrapy.Field()

    geometry: dict = scrapy.Field()
    tags: dict[str, str] = scrapy.Field()

    timestamp: str = scrapy.Field()
    version: int = scrapy.Field()
    user: str = scrapy.Field()
