import pytest

from dhs_dictionary.config import DEFAULT_REFERENCE_FILE
from dhs_dictionary.dictionary.tokens import KIND_CATEGORICAL, KIND_SUMMARY, TYPE_ENUM_SET, TYPE_INT
from dhs_dictionary.etl.etl_dhs import init_descriptors
from dhs_dictionary.etl.reference import read_reference_file
from dhs_dictionary.exceptions import FormatError


def write_reference(tmp_path, content):
    path = tmp_path / "descriptors.csv"
    path.write_text(content)
    return path


def test_reads_short_and_full_identifiers(tmp_path):
    path = write_reference(tmp_path, (
        'SurveyYear,Survey year,int,discrete\n'
        '\n'
        'TagIds,Indicator tags,:type:enum-set,"categorical, :kind:summary"\n'
    ))
    entries = read_reference_file(path)

    assert [e.code for e in entries] == ['SurveyYear', 'TagIds']
    assert entries[0].data_type == TYPE_INT
    assert entries[1].data_type == TYPE_ENUM_SET
    assert entries[1].kinds == [KIND_CATEGORICAL, KIND_SUMMARY]
    assert entries[1].line == 3


@pytest.mark.parametrize("bad_line", [
    'Value,Data point value,float',
    'Value,Data point value,float,quantitative,extra',
])
def test_wrong_column_count(tmp_path, dictionary, bad_line):
    path = write_reference(tmp_path, (
        'SurveyId,Survey identifier,string,discrete\n'
        'SurveyYear,Survey year,int,discrete\n'
        f'{bad_line}\n'
    ))

    with pytest.raises(FormatError) as exc:
        init_descriptors(dictionary, 'DHS', path)

    assert exc.value.line == 3
    assert dictionary.descriptors.count() == 0
    assert len(dictionary.match_table) == 0


def test_unknown_type_or_kind(tmp_path):
    with pytest.raises(FormatError, match='unknown data type'):
        read_reference_file(write_reference(tmp_path, 'Value,Value,decimal,quantitative\n'))
    with pytest.raises(FormatError, match='invalid data kinds'):
        read_reference_file(write_reference(tmp_path, 'Value,Value,float,continuous\n'))


def test_missing_file(tmp_path):
    with pytest.raises(FormatError):
        read_reference_file(tmp_path / "nowhere.csv")


def test_bundled_reference_file():
    entries = read_reference_file(DEFAULT_REFERENCE_FILE)
    codes = {e.code for e in entries}
    assert len(codes) == len(entries)
    assert {'Value', 'Precision', 'TagIds', 'DHS_CountryCode', 'MeasurementType',
            'IndicatorType', 'SurveyCharacteristicIds'} <= codes


def test_field_count_ignores_padding_columns(tmp_path):
    path = write_reference(tmp_path, (
        'Value,,float,quantitative\n'
        'Precision,Number of decimals,int,discrete\n'
    ))
    entries = read_reference_file(path)

    assert [(e.code, e.label, e.line) for e in entries] == [
        ('Value', 'Value', 1), ('Precision', 'Number of decimals', 2),
    ]


def test_missing_trailing_column(tmp_path):
    path = write_reference(tmp_path, (
        'SurveyId,Survey identifier,string,discrete\n'
        'Value,Data point value,float,\n'
    ))
    with pytest.raises(FormatError, match='found 3') as exc:
        read_reference_file(path)
    assert exc.value.line == 2
