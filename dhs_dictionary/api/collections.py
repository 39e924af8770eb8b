"""
Storage capability interfaces for the data dictionary.

The dictionary only needs a small document API: insert a document under a key, read it
back by key or by example, and build a handle (collection name + key) that other
documents can reference. Concrete servers live in ``api/database.py`` (SQLAlchemy) and
``api/memory.py`` (in-process); ``get_server`` picks one from configuration.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union

from dhs_dictionary.exceptions import ConfigurationError

# Reserved document properties.
KEY = '_key'

# find_by_key() result formats.
FORMAT_RAW = 'raw'
FORMAT_HANDLE = 'handle'

# Default collection names.
TERMS = 'terms'
DESCRIPTORS = 'descriptors'
TYPES = 'types'
SURVEYS = 'surveys'
DATA = 'data'


class DocumentHandle(NamedTuple):
    """Reference to a stored document: collection name and document key."""
    collection: str
    key: str

    def __str__(self) -> str:
        return f"{self.collection}/{self.key}"


class DocumentCollection(ABC):
    """A named set of documents addressed by a string key."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def insert(self, document: Dict[str, Any]) -> str:
        """Store a new document and return its key.

        The key is taken from the ``_key`` property when present, otherwise the
        collection generates one. Inserting an existing key raises StorageError.
        """

    @abstractmethod
    def update(self, key: str, document: Dict[str, Any]) -> None:
        """Replace the document stored under ``key``."""

    @abstractmethod
    def _get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the document stored under ``key`` or None."""

    @abstractmethod
    def find_by_example(self, example: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Return all documents whose properties match every item of ``example``."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of documents in the collection."""

    @abstractmethod
    def truncate(self) -> None:
        """Delete all documents in the collection."""

    def save(self, document: Dict[str, Any]) -> str:
        """Insert ``document`` or replace the document stored under its ``_key``."""
        key = document.get(KEY)
        if key and self._get(key) is not None:
            self.update(key, document)
            return key
        return self.insert(document)

    def build_handle(self, key: str) -> DocumentHandle:
        return DocumentHandle(self.name, key)

    def find_by_key(
        self,
        key: Union[str, Iterable[str]],
        many: bool = False,
        format: str = FORMAT_RAW,
    ) -> Union[None, Dict[str, Any], DocumentHandle, List[Any]]:
        """Retrieve documents by key.

        With ``many`` the key is an iterable of keys and a list is returned, missing
        keys being skipped; otherwise a single result or None. ``format`` selects
        between the raw document and its handle.
        """
        if format not in (FORMAT_RAW, FORMAT_HANDLE):
            raise ValueError(f"Invalid result format: {format}")

        keys = list(key) if many else [key]
        results = []
        for item in keys:
            document = self._get(item)
            if document is None:
                continue
            results.append(self.build_handle(item) if format == FORMAT_HANDLE else document)

        if many:
            return results
        return results[0] if results else None

    def __repr__(self):
        return f"<{self.__class__.__name__}(name={self.name})>"


class DocumentServer(ABC):
    """A database holding named document collections."""

    @abstractmethod
    def collection(self, name: str) -> DocumentCollection:
        """Return (creating if needed) the collection called ``name``."""

    @abstractmethod
    def new_descriptor_key(self) -> str:
        """Return the next descriptor key: ``@`` followed by a hexadecimal counter."""

    @abstractmethod
    def drop(self) -> None:
        """Delete every collection and reset the descriptor key counter."""

    def close(self) -> None:
        pass


def get_server(engine: str, database_url: Optional[str] = None) -> DocumentServer:
    """Instantiate the storage server selected by ``engine``."""
    engine = (engine or '').lower()
    if engine == 'sql':
        from dhs_dictionary.api.database import SQLDocumentServer
        return SQLDocumentServer(database_url)
    if engine == 'memory':
        from dhs_dictionary.api.memory import MemoryDocumentServer
        return MemoryDocumentServer()
    raise ConfigurationError(
        f"Invalid database engine [{engine}]. Supported: sql, memory",
        details={'engine': engine},
    )
