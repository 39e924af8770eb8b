"""
Built-in identifiers of the data dictionary: document tags, data types, data kinds,
node kinds and predicates. Types, kinds and predicates are global identifiers of terms
in the default (empty) namespace, hence the leading separator.
"""

NAMESPACE_SEPARATOR = ':'

# --- Document tags ---
TAG_NS = 'nid'
TAG_LID = 'lid'
TAG_GID = 'gid'
TAG_NAME = 'name'
TAG_DESCRIPTION = 'description'
TAG_NODE_KIND = 'node'
TAG_SYMBOL = 'symbol'
TAG_DATA_TYPE = 'type'
TAG_DATA_KIND = 'kind'
TAG_PREDICATE = 'predicate'
TAG_FROM = '_from'
TAG_TO = '_to'

# Survey documents embed their data points under this property.
TAG_DATA = 'data'

DEFAULT_LANGUAGE = 'en'

# --- Data types ---
TYPE_MIXED = ':type:mixed'
TYPE_STRING = ':type:string'
TYPE_INT = ':type:int'
TYPE_FLOAT = ':type:float'
TYPE_BOOLEAN = ':type:bool'
TYPE_URL = ':type:string:url'
TYPE_STRING_DATE = ':type:string:date'
TYPE_REF = ':type:ref'
TYPE_REF_TERM = ':type:ref-term'
TYPE_DATE = ':type:date'
TYPE_TIMESTAMP = ':type:time-stamp'
TYPE_ENUM = ':type:enum'
TYPE_ENUM_SET = ':type:enum-set'
TYPE_ARRAY = ':type:array'
TYPE_STRUCT = ':type:struct'
TYPE_LANG_STRING = ':type:string:lang'

DATA_TYPES = frozenset({
    TYPE_MIXED, TYPE_STRING, TYPE_INT, TYPE_FLOAT, TYPE_BOOLEAN, TYPE_URL,
    TYPE_STRING_DATE, TYPE_REF, TYPE_REF_TERM, TYPE_DATE, TYPE_TIMESTAMP, TYPE_ENUM,
    TYPE_ENUM_SET, TYPE_ARRAY, TYPE_STRUCT, TYPE_LANG_STRING,
})

# --- Data kinds ---
KIND_CATEGORICAL = ':kind:categorical'
KIND_QUANTITATIVE = ':kind:quantitative'
KIND_DISCRETE = ':kind:discrete'
KIND_RECOMMENDED = ':kind:recommended'
KIND_REQUIRED = ':kind:required'
KIND_LIST = ':kind:list'
KIND_SUMMARY = ':kind:summary'
KIND_LOOKUP = ':kind:lookup'

DATA_KINDS = frozenset({
    KIND_CATEGORICAL, KIND_QUANTITATIVE, KIND_DISCRETE, KIND_RECOMMENDED,
    KIND_REQUIRED, KIND_LIST, KIND_SUMMARY, KIND_LOOKUP,
})

# --- Node kinds ---
NODE_TYPE = ':type:node:type'

# --- Predicates ---
PREDICATE_ENUM_OF = ':predicate:ENUM-OF'


def normalize_type(value: str) -> str:
    """Accept either a full type identifier or its short form (``int``, ``enum-set``)."""
    value = value.strip()
    return value if value.startswith(NAMESPACE_SEPARATOR) else f':type:{value}'


def normalize_kind(value: str) -> str:
    """Accept either a full kind identifier or its short form (``quantitative``)."""
    value = value.strip()
    return value if value.startswith(NAMESPACE_SEPARATOR) else f':kind:{value}'
