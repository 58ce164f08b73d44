"""Package universe: candidate specs visible to a resolution session."""

from .cache import SingleFlightCache
from .index import InMemoryUniverse, UniverseIndex, build_spec
from .provider import FetchingUniverse

__all__ = [
    "FetchingUniverse",
    "InMemoryUniverse",
    "SingleFlightCache",
    "UniverseIndex",
    "build_spec",
]
