"""
Component: etl/transforms.py
Purpose: Pure record transforms shared by the initializer stages: enumeration value
         qualification, numeric coercion, and construction of descriptor-keyed
         documents (indicator properties, surveys, data documents, data points).
         Nothing here touches storage.

Rules applied to every copied field:
    - Missing, None or empty-string values are omitted (no key is written).
    - The property name is the descriptor key resolved through the match table.
    - Enumeration fields become qualified global identifiers
      (``<namespace>:<field>:<value>``); enumeration-set fields are split on commas.
    - Other values are converted to the descriptor's data type when it is numeric
      or boolean.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from dhs_dictionary.api.collections import KEY
from dhs_dictionary.dictionary.match_table import MatchTable
from dhs_dictionary.dictionary.model import make_qualified_value
from dhs_dictionary.dictionary.tokens import TYPE_BOOLEAN, TYPE_FLOAT, TYPE_INT, TAG_DATA

logger = logging.getLogger(__name__)

# --- Field lists ---

INDICATOR_FIELDS = (
    'IndicatorOldId', 'Level1', 'Level2', 'Level3', 'Denominator', 'ShortName',
    'ByLabels', 'IndicatorOrder', 'NumberScale', 'QuickStatOrder', 'SDRID',
    'IsQuickStat', 'MeasurementType', 'IndicatorType', 'TagIds',
)
INDICATOR_QUALIFIED = ('MeasurementType', 'IndicatorType')
INDICATOR_QUALIFIED_LISTS = ('TagIds',)

SURVEY_FIELDS = (
    'SurveyId', 'SurveyType', 'SurveyYear', 'SurveyYearLabel', 'SurveyNum',
    'CountryName', 'DHS_CountryCode', 'RegionName', 'SubregionName', 'ReleaseDate',
    'PublicationDate', 'FieldworkStart', 'FieldworkEnd', 'NumberOfHouseholds',
    'NumberOfWomen', 'NumberOfMen', 'MinAgeWomen', 'MaxAgeWomen', 'MinAgeMen',
    'MaxAgeMen', 'ImplementingOrg', 'UniverseOfWomen', 'UniverseOfMen', 'SurveyStatus',
    'SurveyCharacteristicIds',
)
SURVEY_QUALIFIED = ('DHS_CountryCode',)
SURVEY_QUALIFIED_LISTS = ('SurveyCharacteristicIds',)

DATA_FIELDS = (
    'DataId', 'SurveyId', 'IndicatorId', 'Indicator', 'CountryName', 'DHS_CountryCode',
    'SurveyYear', 'SurveyYearLabel', 'SurveyType', 'CharacteristicId',
    'CharacteristicCategory', 'CharacteristicLabel', 'CharacteristicOrder',
    'ByVariableId', 'ByVariableLabel', 'IsTotal', 'IsPreferred', 'SDRID', 'RegionId',
    'DenominatorWeighted', 'DenominatorUnweighted', 'CILow', 'CIHigh', 'Precision',
)
DATA_QUALIFIED = ('DHS_CountryCode',)

DATA_POINT_FIELDS = (
    'CharacteristicId', 'CharacteristicCategory', 'CharacteristicLabel', 'IsTotal',
    'IsPreferred', 'SDRID', 'RegionId', 'DenominatorWeighted', 'DenominatorUnweighted',
    'CILow', 'CIHigh', 'ByVariableId',
)

COUNTRY_FIELDS = (
    'ISO2_CountryCode', 'ISO3_CountryCode', 'FIPS_CountryCode', 'UNAIDS_CountryCode',
    'UNICEF_CountryCode', 'UNSTAT_CountryCode', 'WHO_CountryCode', 'RegionName',
    'SubregionName', 'RegionOrder',
)

TAG_FIELDS = ('TagType', 'TagOrder')

VALUE_FIELD = 'Value'
PRECISION_FIELD = 'Precision'


# --- Scalars ---

def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_truthy(value: Any) -> bool:
    """Truth value of a loosely typed API field: empty, ``0`` and ``false`` are false."""
    if is_empty(value):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('false', 'no'):
        return False
    try:
        return float(value) != 0
    except (TypeError, ValueError):
        return True


def to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(float(value))


def coerce_value(value: Any, precision: Any = None):
    """Float when ``precision`` is truthy, integer otherwise."""
    if is_truthy(precision):
        return float(value)
    return to_int(value)


def convert(value: Any, data_type: Optional[str]):
    """Convert ``value`` to a numeric or boolean data type; other types pass through."""
    try:
        if data_type == TYPE_INT:
            return to_int(value)
        if data_type == TYPE_FLOAT:
            return float(value)
    except (TypeError, ValueError):
        logger.debug(f"Keeping unconvertible value {value!r} for type {data_type}")
        return value
    if data_type == TYPE_BOOLEAN:
        return is_truthy(value)
    return value


def qualify(namespace: str, field: str, value: Any) -> str:
    return make_qualified_value(namespace, field, value)


def qualify_list(namespace: str, field: str, value: Any) -> list:
    """Split a comma-separated list and qualify each non-empty element, keeping order."""
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(',')
    return [qualify(namespace, field, item) for item in items if not is_empty(str(item))]


# --- Documents ---

def copy_fields(
    record: Mapping[str, Any],
    fields: Iterable[str],
    namespace: str,
    match_table: MatchTable,
    field_types: Optional[Mapping[str, str]] = None,
    qualified: Sequence[str] = (),
    qualified_lists: Sequence[str] = (),
) -> Dict[str, Any]:
    """Copy the non-empty ``fields`` of ``record`` under their descriptor keys."""
    field_types = field_types or {}
    document = {}
    for field in fields:
        value = record.get(field)
        if is_empty(value):
            continue
        key = match_table.resolve(field)
        if field in qualified:
            document[key] = qualify(namespace, field, value)
        elif field in qualified_lists:
            items = qualify_list(namespace, field, value)
            if items:
                document[key] = items
        else:
            document[key] = convert(value, field_types.get(field.lower()))
    return document


def build_indicator_properties(record, namespace, match_table, field_types=None) -> Dict[str, Any]:
    """Descriptor properties copied from an indicator record."""
    return copy_fields(
        record, INDICATOR_FIELDS, namespace, match_table, field_types,
        qualified=INDICATOR_QUALIFIED, qualified_lists=INDICATOR_QUALIFIED_LISTS,
    )


def build_survey_document(record, namespace, match_table, field_types=None,
                          points: Optional[list] = None) -> Dict[str, Any]:
    document = copy_fields(
        record, SURVEY_FIELDS, namespace, match_table, field_types,
        qualified=SURVEY_QUALIFIED, qualified_lists=SURVEY_QUALIFIED_LISTS,
    )
    document[KEY] = str(record['SurveyId'])
    if points:
        document[TAG_DATA] = points
    return document


def data_document_key(record: Mapping[str, Any]) -> str:
    return f"{record['SurveyId']}:{record['DataId']}"


def build_data_document(record, namespace, match_table, field_types=None) -> Dict[str, Any]:
    """Flat, independently stored form of one measurement, keyed ``surveyId:dataId``."""
    document = copy_fields(
        record, DATA_FIELDS, namespace, match_table, field_types, qualified=DATA_QUALIFIED,
    )
    value = record.get(VALUE_FIELD)
    if not is_empty(value):
        document[match_table.resolve(VALUE_FIELD)] = coerce_value(value, record.get(PRECISION_FIELD))
    document[KEY] = data_document_key(record)
    return document


def build_data_point(record, descriptor_key: str, match_table, field_types=None) -> Dict[str, Any]:
    """Compact measurement keyed by the indicator descriptor, embedded in its survey."""
    point = {}
    value = record.get(VALUE_FIELD)
    if not is_empty(value):
        point[descriptor_key] = coerce_value(value, record.get(PRECISION_FIELD))
    point.update(copy_fields(record, DATA_POINT_FIELDS, None, match_table, field_types))
    return point
