"""House sorting quiz engine: trait scoring, softmax aggregation and tie breaking."""

__version__ = "1.0.0"
