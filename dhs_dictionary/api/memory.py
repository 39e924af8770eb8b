"""In-process document server, used for dry runs and tests."""

import copy
import uuid
import logging
from typing import Any, Dict, List, Optional

from dhs_dictionary.api.collections import KEY, DocumentCollection, DocumentServer
from dhs_dictionary.exceptions import StorageError

logger = logging.getLogger(__name__)


class MemoryDocumentCollection(DocumentCollection):

    def __init__(self, name: str):
        super().__init__(name)
        self._documents: Dict[str, Dict[str, Any]] = {}

    def insert(self, document: Dict[str, Any]) -> str:
        key = document.get(KEY) or uuid.uuid4().hex
        if key in self._documents:
            raise StorageError(
                f"Duplicate key [{key}] in collection [{self.name}]",
                details={'collection': self.name, 'key': key},
            )
        stored = copy.deepcopy(document)
        stored[KEY] = key
        self._documents[key] = stored
        return key

    def update(self, key: str, document: Dict[str, Any]) -> None:
        if key not in self._documents:
            raise StorageError(
                f"Cannot update missing document [{key}] in collection [{self.name}]",
                details={'collection': self.name, 'key': key},
            )
        stored = copy.deepcopy(document)
        stored[KEY] = key
        self._documents[key] = stored

    def _get(self, key: str) -> Optional[Dict[str, Any]]:
        document = self._documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    def find_by_example(self, example: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(doc) for doc in self._documents.values()
            if all(doc.get(k) == v for k, v in example.items())
        ]

    def count(self) -> int:
        return len(self._documents)

    def truncate(self) -> None:
        self._documents.clear()


class MemoryDocumentServer(DocumentServer):

    def __init__(self):
        self._collections: Dict[str, MemoryDocumentCollection] = {}
        self._descriptor_counter = 0

    def collection(self, name: str) -> MemoryDocumentCollection:
        if name not in self._collections:
            self._collections[name] = MemoryDocumentCollection(name)
        return self._collections[name]

    def new_descriptor_key(self) -> str:
        self._descriptor_counter += 1
        return f"@{self._descriptor_counter:x}"

    def drop(self) -> None:
        logger.info("Dropping in-memory database")
        # Collections stay registered: callers may hold references to them.
        for collection in self._collections.values():
            collection.truncate()
        self._descriptor_counter = 0
