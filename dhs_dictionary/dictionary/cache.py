"""In-memory descriptor cache refreshed by the initializer after enumeration changes."""

import logging
from typing import Any, Callable, Dict, List, Optional

from dhs_dictionary.api.collections import KEY

logger = logging.getLogger(__name__)


class DescriptorCache:
    """Keeps the latest version of each descriptor together with its enumerations.

    ``enumerations`` is a callable returning the enumeration global identifiers of a
    descriptor key; the data dictionary supplies it when the cache is attached.
    """

    def __init__(self, enumerations: Optional[Callable[[str], List[str]]] = None):
        self.enumerations = enumerations
        self._descriptors: Dict[str, Dict[str, Any]] = {}
        self._enumerations: Dict[str, List[str]] = {}

    def refresh(self, descriptor: Dict[str, Any]) -> None:
        key = descriptor[KEY]
        self._descriptors[key] = dict(descriptor)
        if self.enumerations is not None:
            self._enumerations[key] = self.enumerations(key)
        logger.debug(f"Refreshed descriptor {key} ({len(self._enumerations.get(key, []))} enumerations)")

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._descriptors.get(key)

    def get_enumerations(self, key: str) -> List[str]:
        return list(self._enumerations.get(key, []))

    def __contains__(self, key: str) -> bool:
        return key in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
