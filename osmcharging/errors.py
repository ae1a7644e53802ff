class AggregationError(Exception):
    pass


class EmptyInputError(AggregationError):
    def __init__(self, message="Raw feature source yielded zero rows"):
        super().__init__(message)


class FeatureError(AggregationError):
    """A problem with a single feature; the run continues without it."""

    def __init__(self, feature_id, message):
        self.feature_id = feature_id

        super().__init__(f"{feature_id}: {message}")


class MalformedFeatureError(FeatureError):
    pass


class GeometryError(FeatureError):
    pass


class ProjectionError(FeatureError):
    pass


class DuplicateIdError(FeatureError):
    pass
