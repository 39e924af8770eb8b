"""
Data dictionary model: namespaces, terms, descriptors, enumerations and predicates.

Identifier scheme:
    - A term's global identifier is ``<namespace gid>:<local id>``, or the bare local
      identifier for root namespaces (see ``make_gid``).
    - Terms are stored under their global identifier.
    - Descriptors are stored under a server-assigned ``@<hex>`` key; the key is
      registered in the match table under the descriptor's local identifier.
    - Predicates are directed edges ``_from`` -> ``_to`` between document handles.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from dhs_dictionary.api.collections import (
    KEY, DATA, DESCRIPTORS, SURVEYS, TERMS, TYPES,
    DocumentCollection, DocumentHandle, DocumentServer,
)
from dhs_dictionary.dictionary.cache import DescriptorCache
from dhs_dictionary.dictionary.match_table import MatchTable
from dhs_dictionary.dictionary.tokens import (
    DATA_KINDS, DATA_TYPES, DEFAULT_LANGUAGE, NAMESPACE_SEPARATOR, NODE_TYPE,
    PREDICATE_ENUM_OF, TAG_DATA_KIND, TAG_DATA_TYPE, TAG_DESCRIPTION, TAG_FROM, TAG_GID,
    TAG_LID, TAG_NAME, TAG_NODE_KIND, TAG_NS, TAG_PREDICATE, TAG_SYMBOL, TAG_TO,
)
from dhs_dictionary.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def make_gid(lid: str, namespace: Optional[str] = None) -> str:
    """Derive a global identifier from a local identifier and a namespace gid."""
    if namespace is None:
        return lid
    return f"{namespace}{NAMESPACE_SEPARATOR}{lid}"


def make_qualified_value(namespace: str, field: str, value: Any) -> str:
    """Global identifier of the enumeration ``value`` of ``field`` (``DHS:TagIds:12``)."""
    return make_gid(str(value).strip(), make_gid(field, namespace))


def localized(text: Optional[str], language: str = DEFAULT_LANGUAGE) -> Optional[Dict[str, str]]:
    if text is None:
        return None
    return {language: text}


def parse_handle(value: str) -> DocumentHandle:
    """Inverse of ``str(DocumentHandle)``."""
    collection, _, key = value.partition('/')
    return DocumentHandle(collection, key)


class DataDictionary:
    """Builds and queries the dictionary stored in a ``DocumentServer``.

    The match table is owned by the caller and shared with every ingestion stage;
    descriptors register themselves in it as they are created.
    """

    def __init__(self, server: DocumentServer, match_table: MatchTable,
                 cache: Optional[DescriptorCache] = None):
        self.server = server
        self.match_table = match_table
        self.cache = cache
        if cache is not None and cache.enumerations is None:
            cache.enumerations = self.get_enumerations

        self.terms: DocumentCollection = server.collection(TERMS)
        self.descriptors: DocumentCollection = server.collection(DESCRIPTORS)
        self.types: DocumentCollection = server.collection(TYPES)
        self.surveys: DocumentCollection = server.collection(SURVEYS)
        self.data: DocumentCollection = server.collection(DATA)

        self._descriptor_keys: Dict[str, str] = {}

    # --- Creation ---

    def create_namespace(self, lid: str, name: str, description: Optional[str] = None) -> str:
        """Store a root term and return its global identifier."""
        handle = self.create_term(None, lid, name, description=description)
        logger.info(f"Created namespace [{handle.key}]")
        return handle.key

    def create_term(
        self,
        namespace: Optional[str],
        lid: str,
        name: str,
        node_kind: Optional[str] = None,
        description: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> DocumentHandle:
        gid = make_gid(lid, namespace)
        document = {
            KEY: gid,
            TAG_NS: namespace,
            TAG_LID: lid,
            TAG_GID: gid,
            TAG_NAME: localized(name),
        }
        if description:
            document[TAG_DESCRIPTION] = localized(description)
        if node_kind:
            document[TAG_NODE_KIND] = [node_kind]
        if properties:
            document.update(properties)

        key = self.terms.insert(document)
        return self.terms.build_handle(key)

    def create_type(self, namespace: str, lid: str, name: str,
                    description: Optional[str] = None) -> str:
        """Store a type-defining term (enumeration root) and return its global identifier."""
        handle = self.create_term(namespace, lid, name, node_kind=NODE_TYPE, description=description)
        return handle.key

    def create_descriptor(
        self,
        namespace: str,
        lid: str,
        data_type: str,
        kinds: Iterable[str],
        name: str,
        description: Optional[str] = None,
        symbol: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> DocumentHandle:
        kinds = list(kinds)
        if data_type not in DATA_TYPES:
            raise ValueError(f"Descriptor [{lid}] has an invalid data type: {data_type}")
        if not kinds:
            raise ValueError(f"Descriptor [{lid}] requires at least one data kind")
        invalid = [k for k in kinds if k not in DATA_KINDS]
        if invalid:
            raise ValueError(f"Descriptor [{lid}] has invalid data kinds: {invalid}")

        gid = make_gid(lid, namespace)
        document = {
            KEY: self.server.new_descriptor_key(),
            TAG_NS: namespace,
            TAG_LID: lid,
            TAG_GID: gid,
            TAG_SYMBOL: symbol or lid,
            TAG_DATA_TYPE: data_type,
            TAG_DATA_KIND: kinds,
            TAG_NAME: localized(name),
        }
        if description:
            document[TAG_DESCRIPTION] = localized(description)
        if properties:
            document.update(properties)

        key = self.descriptors.insert(document)
        self._descriptor_keys.setdefault(gid, key)
        self.match_table.register(lid, key)
        return self.descriptors.build_handle(key)

    def create_predicate(self, kind: str, subject: DocumentHandle,
                         obj: DocumentHandle) -> DocumentHandle:
        """Store the edge ``subject --kind--> obj``; duplicates are not detected."""
        key = self.types.insert({
            TAG_FROM: str(subject),
            TAG_PREDICATE: kind,
            TAG_TO: str(obj),
        })
        return self.types.build_handle(key)

    def create_enumeration(
        self,
        type_gid: str,
        lid: str,
        name: str,
        descriptor: DocumentHandle,
        properties: Optional[Dict[str, Any]] = None,
    ) -> DocumentHandle:
        """Store an enumeration term under ``type_gid`` linked to ``descriptor``."""
        term = self.create_term(type_gid, lid, name, properties=properties)
        self.create_predicate(PREDICATE_ENUM_OF, term, descriptor)
        return term

    # --- Retrieval ---

    def get_term(self, gid: str) -> Dict[str, Any]:
        term = self.terms.find_by_key(gid)
        if term is None:
            raise NotFoundError(self.terms.name, gid)
        return term

    def get_descriptor_key(self, gid: str) -> str:
        """Return the storage key of the descriptor with global identifier ``gid``."""
        if gid in self._descriptor_keys:
            return self._descriptor_keys[gid]
        matches = self.descriptors.find_by_example({TAG_GID: gid})
        if not matches:
            raise NotFoundError(self.descriptors.name, gid)
        key = matches[0][KEY]
        self._descriptor_keys[gid] = key
        return key

    def get_descriptor(self, gid: str) -> Dict[str, Any]:
        """Return the descriptor with global identifier ``gid``."""
        descriptor = self.descriptors.find_by_key(self.get_descriptor_key(gid))
        if descriptor is None:
            raise NotFoundError(self.descriptors.name, gid)
        return descriptor

    def get_enumerations(self, descriptor_key: str) -> List[str]:
        """Global identifiers of the terms enumerating the descriptor ``descriptor_key``."""
        edges = self.types.find_by_example({
            TAG_PREDICATE: PREDICATE_ENUM_OF,
            TAG_TO: str(self.descriptors.build_handle(descriptor_key)),
        })
        return [parse_handle(edge[TAG_FROM]).key for edge in edges]

    def descriptor_handle(self, field: str) -> DocumentHandle:
        """Handle of the descriptor registered for ``field`` in the match table."""
        return self.descriptors.build_handle(self.match_table.resolve(field))

    # --- Cache ---

    def refresh_descriptor(self, descriptor: Union[DocumentHandle, str]) -> None:
        """Push the stored version of ``descriptor`` to the descriptor cache."""
        if self.cache is None:
            return
        key = descriptor.key if isinstance(descriptor, DocumentHandle) else descriptor
        document = self.descriptors.find_by_key(key)
        if document is None:
            raise NotFoundError(self.descriptors.name, key)
        self.cache.refresh(document)
