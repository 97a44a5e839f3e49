"""Copy databases, collections, indexes and documents between MongoDB deployments."""

__version__ = "1.0.0"
