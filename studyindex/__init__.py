"""Collection index and resolution engine for JSON study collections."""

__version__ = "0.1.0"

from studyindex.engine import CollectionEngine

__all__ = ["CollectionEngine", "__version__"]
