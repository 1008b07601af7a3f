"""Run-scoped cache of city names already known to the store."""
import logging
from typing import Iterable, Set

logger = logging.getLogger(__name__)


class KnownCityCache:
    """
    Remembers which cities have been upserted during one scan run.

    Owned by the orchestrator that creates it; nothing is shared between
    runs. invalidate() drops everything, e.g. after the cities table was
    changed out of band.
    """

    def __init__(self, names: Iterable[str] = ()):
        self._names: Set[str] = set()
        self.load(names)

    def __contains__(self, name: str) -> bool:
        return self._key(name) in self._names

    def __len__(self) -> int:
        return len(self._names)

    def load(self, names: Iterable[str]) -> None:
        for name in names:
            self.add(name)

    def add(self, name: str) -> None:
        if name and name.strip():
            self._names.add(self._key(name))

    def invalidate(self) -> None:
        logger.debug(f"Invalidating {len(self._names)} cached city names")
        self._names.clear()

    @staticmethod
    def _key(name: str) -> str:
        return name.strip().casefold()
