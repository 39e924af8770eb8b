import pytest

from dhs_dictionary.api.collections import DocumentHandle
from dhs_dictionary.dictionary.match_table import MatchTable
from dhs_dictionary.dictionary.model import make_gid, make_qualified_value, parse_handle
from dhs_dictionary.dictionary.tokens import (
    KIND_CATEGORICAL, KIND_QUANTITATIVE, NODE_TYPE, PREDICATE_ENUM_OF, TAG_NODE_KIND,
    TYPE_ENUM, TYPE_FLOAT, TYPE_INT, normalize_kind, normalize_type,
)
from dhs_dictionary.exceptions import NotFoundError, ResolutionError


def test_match_table_first_registration_wins():
    table = MatchTable()
    assert table.register('SurveyId', '@1')
    assert not table.register('surveyid', '@2')
    assert table.resolve('SURVEYID') == '@1'
    assert 'surveyId' in table
    assert len(table) == 1


def test_match_table_unknown_field():
    with pytest.raises(ResolutionError) as exc:
        MatchTable({'Value': '@3'}).resolve('Precision')
    assert exc.value.field == 'Precision'
    assert exc.value.to_dict()['error'] == 'ResolutionFailure'


def test_gid_derivation():
    assert make_gid('DHS') == 'DHS'
    assert make_gid('MeasurementType', 'DHS') == 'DHS:MeasurementType'
    assert make_qualified_value('DHS', 'TagIds', ' 45') == 'DHS:TagIds:45'
    assert parse_handle('terms/DHS:TagIds:45') == DocumentHandle('terms', 'DHS:TagIds:45')


def test_short_type_and_kind_names():
    assert normalize_type('int') == TYPE_INT
    assert normalize_type(':type:float') == TYPE_FLOAT
    assert normalize_kind(' quantitative') == KIND_QUANTITATIVE


def test_descriptor_keys_are_sequential_hex(dictionary):
    keys = [
        dictionary.create_descriptor('DHS', f'Field{i}', TYPE_INT, [KIND_QUANTITATIVE], f'Field {i}').key
        for i in range(1, 12)
    ]
    assert keys[:2] == ['@1', '@2']
    assert keys[-2:] == ['@a', '@b']
    assert dictionary.match_table.resolve('field10') == '@a'


def test_descriptor_round_trip_by_gid(dictionary):
    handle = dictionary.create_descriptor(
        'DHS', 'CM_ECMR_C_CDF', TYPE_FLOAT, [KIND_QUANTITATIVE], 'Child mortality',
        description='Deaths per 1000', properties={'extra': 1},
    )
    descriptor = dictionary.get_descriptor('DHS:CM_ECMR_C_CDF')
    assert descriptor['_key'] == handle.key
    assert descriptor['gid'] == 'DHS:CM_ECMR_C_CDF'
    assert descriptor['type'] == TYPE_FLOAT
    assert descriptor['kind'] == [KIND_QUANTITATIVE]
    assert descriptor['name'] == {'en': 'Child mortality'}
    assert descriptor['extra'] == 1

    with pytest.raises(NotFoundError):
        dictionary.get_descriptor('DHS:MISSING')


@pytest.mark.parametrize("data_type, kinds", [
    (':type:decimal', [KIND_QUANTITATIVE]),
    (TYPE_INT, []),
    (TYPE_INT, [KIND_QUANTITATIVE, ':kind:unknown']),
])
def test_invalid_descriptor_definitions(dictionary, data_type, kinds):
    with pytest.raises(ValueError):
        dictionary.create_descriptor('DHS', 'Broken', data_type, kinds, 'Broken')
    assert dictionary.descriptors.count() == 0
    assert 'Broken' not in dictionary.match_table


def test_enumerations_link_terms_to_descriptor(dictionary, cache):
    ns = dictionary.create_namespace('DHS', 'DHS Program')
    descriptor = dictionary.create_descriptor(ns, 'IndicatorType', TYPE_ENUM, [KIND_CATEGORICAL], 'Indicator type')
    type_gid = dictionary.create_type(ns, 'IndicatorType', 'Indicator type')
    assert dictionary.get_term(type_gid)[TAG_NODE_KIND] == [NODE_TYPE]

    dictionary.create_enumeration(type_gid, 'I', 'Indicator', descriptor)
    dictionary.create_enumeration(type_gid, 'D', 'Weighted denominator', descriptor)

    assert sorted(dictionary.get_enumerations(descriptor.key)) == ['DHS:IndicatorType:D', 'DHS:IndicatorType:I']
    edges = dictionary.types.find_by_example({'_from': 'terms/DHS:IndicatorType:I'})
    assert edges[0]['predicate'] == PREDICATE_ENUM_OF
    assert edges[0]['_to'] == f'descriptors/{descriptor.key}'

    dictionary.refresh_descriptor(descriptor)
    assert cache.get(descriptor.key)['lid'] == 'IndicatorType'
    assert len(cache.get_enumerations(descriptor.key)) == 2


def test_get_term_missing(dictionary):
    with pytest.raises(NotFoundError) as exc:
        dictionary.get_term('DHS:Nothing')
    assert exc.value.details == {'collection': 'terms', 'identifier': 'DHS:Nothing'}
