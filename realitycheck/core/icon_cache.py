"""Memoizing icon cache keyed by package id."""

import logging
import threading
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)


class IconCache:
    """Thread-safe cache of encoded app icons.

    Entries are never evicted. Failed loads are not cached, so a package
    installed later can still get its icon.
    """

    def __init__(self, loader: Callable[[str], str]) -> None:
        self.loader = loader
        self._icons: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, package_id: str) -> Optional[str]:
        with self._lock:
            cached = self._icons.get(package_id)
        if cached is not None:
            return cached

        try:
            icon = self.loader(package_id)
        except Exception:
            logger.debug("Could not load icon for %s", package_id, exc_info=True)
            return None
        if icon is None:
            return None

        with self._lock:
            return self._icons.setdefault(package_id, icon)

    def get_many(self, package_ids: Iterable[str]) -> dict[str, Optional[str]]:
        return {package_id: self.get(package_id) for package_id in package_ids}

    def clear(self) -> None:
        with self._lock:
            self._icons.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._icons)

    def __contains__(self, package_id: object) -> bool:
        with self._lock:
            return package_id in self._icons
