"""Universe index populated lazily from per-source fetchers.

Each name is fetched at most once per session (and at most once in flight),
no matter how many resolver branches or prefetch workers ask for it.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from versioning.models import PackageSpec, Source

from .cache import SingleFlightCache
from .index import UniverseIndex

logger = logging.getLogger(__name__)

SpecFetcher = Callable[[str], List[PackageSpec]]


class FetchingUniverse(UniverseIndex):
    """Index backed by fetch callables, one per declared source."""

    def __init__(
        self,
        fetchers: Sequence[Tuple[Source, SpecFetcher]],
        platforms: Sequence[str] = (Constants.GENERIC_PLATFORM,),
        cache: Optional[SingleFlightCache[List[PackageSpec]]] = None,
    ) -> None:
        super().__init__([source for source, _ in fetchers], platforms)
        self._fetchers = list(fetchers)
        self._cache: SingleFlightCache[List[PackageSpec]] = cache or SingleFlightCache()

    @property
    def cache(self) -> SingleFlightCache[List[PackageSpec]]:
        return self._cache

    def _fetch_all_sources(self, name: str) -> List[PackageSpec]:
        specs: List[PackageSpec] = []
        with Timer() as t:
            for source, fetcher in self._fetchers:
                for spec in fetcher(name):
                    if spec.name != name:
                        continue
                    if spec.source != source.key:
                        logger.debug(
                            "Fetcher for %s returned spec from %s; ignoring", source.key, spec.source
                        )
                        continue
                    specs.append(spec)
        if is_debug_enabled(logger):
            logger.debug(
                "Fetched package metadata",
                extra=extra_context(
                    event="fetch",
                    component="universe",
                    target=name,
                    count=len(specs),
                    duration_ms=t.duration_ms(),
                ),
            )
        return specs

    def all_specs(self, name: str) -> List[PackageSpec]:
        return list(self._cache.get_or_fetch(name, lambda: self._fetch_all_sources(name)))

    def prefetch(self, names: Iterable[str], max_workers: Optional[int] = None) -> None:
        """Warm the cache for ``names`` concurrently.

        Fetch errors are logged and left for the resolver to surface.
        """
        unique = sorted(set(names))
        if not unique:
            return
        workers = max(1, min(max_workers or Constants.FETCH_MAX_CONCURRENCY, len(unique)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self.all_specs, name): name for name in unique}
            for future, name in futures.items():
                exc = future.exception()
                if exc is not None:
                    logger.warning("Prefetch of %s failed: %s", name, exc)

    def refresh(self, names: Optional[Iterable[str]] = None) -> None:
        """Drop cached metadata so the next query fetches again."""
        names_list = None if names is None else list(names)
        super().refresh(names_list)
        if names_list is None:
            self._cache.invalidate()
        else:
            for name in names_list:
                self._cache.invalidate(name)
