"""Process-wide store of first-observed file contents used as diff baselines."""

from __future__ import annotations

import logging
from collections import OrderedDict
from pathlib import Path
from typing import Iterator, Optional

__all__ = ["ContentStore"]

LOGGER = logging.getLogger(__name__)


class ContentStore:
    """Map of absolute path to the content observed the first time it was seen.

    Baselines follow first-write-wins: once a path has an entry, later
    ``set_if_absent`` calls are no-ops.  When ``max_entries`` is set the
    oldest baseline is evicted to make room for a new one.
    """

    def __init__(self, *, max_entries: Optional[int] = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be a positive integer")
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, str]" = OrderedDict()

    @staticmethod
    def _key(path: Path | str) -> str:
        return str(path)

    def get(self, path: Path | str) -> Optional[str]:
        return self._entries.get(self._key(path))

    def has(self, path: Path | str) -> bool:
        return self._key(path) in self._entries

    def set_if_absent(self, path: Path | str, content: str) -> bool:
        """Record ``content`` as the baseline for ``path`` unless one exists.

        Returns ``True`` when a new baseline was stored.
        """
        key = self._key(path)
        if key in self._entries:
            return False
        if self._max_entries is not None and len(self._entries) >= self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            LOGGER.debug("Evicted baseline for %s", evicted)
        self._entries[key] = content
        return True

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and self.has(path)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))
