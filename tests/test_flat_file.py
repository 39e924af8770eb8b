import pytest

from dhs_dictionary.etl.parsers.flat_file import load_flat_file_dataset, parse_dct
from dhs_dictionary.exceptions import FormatError

DCT = """infix dictionary using ZZIR62FL.DAT {
1 lines
    str12 caseid      1:   1-12
    byte  v012        1:  13-14
    int   v005        1:  15-18
}
"""

DCF = """[Dictionary]
Name=ZZIR62FL
Label=Individual recode

[Level]
Label=Individual
Name=RECORD1

[Item]
Label=Case Identification
Name=CASEID
Start=1
Len=12
DataType=Alpha

[Item]
Label=Current age - respondent
Name=V012
Start=13
Len=2

[ValueSet]
Label=Current age
Name=V012_VS1
Value='15';Fifteen
Value=16:49
Value=' ';Missing

[Item]
Label=Not in the Stata dictionary
Name=V999
Len=3
"""

DAT = "CASE00000001350100\nCASE00000002221200\n"


@pytest.fixture
def dataset_dir(tmp_path):
    (tmp_path / "ZZIR62FL.DCT").write_text(DCT)
    (tmp_path / "ZZIR62FL.DCF").write_text(DCF)
    (tmp_path / "ZZIR62FL.DAT").write_text(DAT)
    return tmp_path


def test_dataset_dictionary(dataset_dir):
    dataset = load_flat_file_dataset(dataset_dir)

    assert (dataset.country, dataset.type, dataset.phase, dataset.release) == ('ZZ', 'IR', '6', '2')
    assert dataset.lines == 1
    assert dataset.level == 'RECORD1'
    assert list(dataset.variables) == ['caseid', 'v012', 'v005']
    assert dataset.data_types() == ['str12', 'byte', 'int']

    age = dataset.variables['v012']
    assert age['name'] == 'V012'
    assert age['label'] == 'Current age - respondent'
    assert (age['line'], age['start'], age['end'], age['size']) == (1, 13, 14, 2)
    assert age['enum'] == {'15': 'Fifteen'}

    weight = dataset.variables['v005']
    assert weight['label'] == 'v005'
    assert 'enum' not in weight
    assert 'v999' not in dataset.variables


def test_read_data(dataset_dir):
    df = load_flat_file_dataset(dataset_dir).read_data()

    assert list(df.columns) == ['CASEID', 'V012', 'v005']
    assert df['CASEID'].tolist() == ['CASE00000001', 'CASE00000002']
    assert df['V012'].tolist() == [35, 22]
    assert df['v005'].tolist() == [100, 1200]


def test_invalid_dct_line(tmp_path):
    path = tmp_path / "ZZIR62FL.DCT"
    path.write_text("infix dictionary using ZZIR62FL.DAT {\n1 lines\n    str12 caseid 1\n}\n")

    with pytest.raises(FormatError) as exc:
        parse_dct(path)
    assert exc.value.line == 3


def test_missing_data_file(dataset_dir):
    (dataset_dir / "ZZIR62FL.DAT").unlink()
    with pytest.raises(FormatError, match="DAT"):
        load_flat_file_dataset(dataset_dir)


def test_lower_case_extensions(tmp_path):
    (tmp_path / "zzir62fl.dct").write_text(DCT)
    (tmp_path / "zzir62fl.dcf").write_text(DCF)
    (tmp_path / "zzir62fl.dat").write_text(DAT)

    dataset = load_flat_file_dataset(tmp_path)
    assert dataset.country == 'zz'
    assert len(dataset.variables) == 3
