"""
Field match table: external field name -> descriptor key.

One table is built per initializer run while descriptors are created and is consulted
for every later field assignment. Names are compared case-insensitively and the first
registration of a name wins.
"""

import logging
from typing import Dict, Iterator, Optional

from dhs_dictionary.exceptions import ResolutionError

logger = logging.getLogger(__name__)


class MatchTable:

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = {}
        for name, key in (entries or {}).items():
            self.register(name, key)

    def register(self, name: str, key: str) -> bool:
        """Map ``name`` to ``key`` unless the name is already registered.

        Returns True if the entry was stored.
        """
        normalized = name.lower()
        if normalized in self._entries:
            logger.debug(f"Match table already maps [{name}] to {self._entries[normalized]}, ignoring {key}")
            return False
        self._entries[normalized] = key
        return True

    def resolve(self, name: str) -> str:
        """Return the descriptor key for ``name`` or raise ResolutionError."""
        try:
            return self._entries[name.lower()]
        except KeyError:
            raise ResolutionError(name) from None

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._entries.get(name.lower(), default)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self):
        return self._entries.items()

    def __repr__(self):
        return f"<MatchTable(entries={len(self._entries)})>"
