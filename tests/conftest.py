import copy
import sys
from pathlib import Path

import pytest
import requests

# Add project root to path for module discovery
sys.path.append(str(Path(__file__).resolve().parents[1]))
from dhs_dictionary.api.memory import MemoryDocumentServer
from dhs_dictionary.config import DEFAULTS
from dhs_dictionary.dictionary.cache import DescriptorCache
from dhs_dictionary.dictionary.match_table import MatchTable
from dhs_dictionary.dictionary.model import DataDictionary
from dhs_dictionary.etl.fetcher import DHSFetcher


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self.payload


class FakeSession:
    """Serves canned records per endpoint, honouring page, perpage and surveyIds."""

    def __init__(self, records):
        self.records = records
        self.calls = []

    def get(self, url, params=None, timeout=None):
        params = dict(params or {})
        self.calls.append((url, params))
        endpoint = url.rsplit('/', 1)[-1]
        rows = list(self.records.get(endpoint, []))
        if 'surveyIds' in params:
            rows = [r for r in rows if r.get('SurveyId') == params['surveyIds']]
        total = len(rows)
        if 'page' in params:
            size = int(params['perpage'])
            start = (int(params['page']) - 1) * size
            rows = rows[start:start + size]
        return FakeResponse({'RecordCount': total, 'RecordsReturned': len(rows), 'Data': rows})

    def close(self):
        pass


API_RECORDS = {
    'countries': [
        {'DHS_CountryCode': 'AF', 'CountryName': 'Afghanistan', 'ISO2_CountryCode': 'AF',
         'ISO3_CountryCode': 'AFG', 'UNICEF_CountryCode': '', 'RegionName': 'South & Southeast Asia',
         'RegionOrder': '41'},
        {'DHS_CountryCode': 'AL', 'CountryName': 'Albania', 'ISO3_CountryCode': 'ALB',
         'RegionName': 'North Africa/West Asia/Europe'},
    ],
    'surveycharacteristics': [
        {'SurveyCharacteristicID': 1, 'SurveyCharacteristicName': 'Abortion'},
        {'SurveyCharacteristicID': 2, 'SurveyCharacteristicName': 'Anemia questions'},
    ],
    'tags': [
        {'TagID': 7, 'TagName': 'Child mortality', 'TagType': 0, 'TagOrder': 20},
        {'TagID': 12, 'TagName': 'Key indicators', 'TagType': 2, 'TagOrder': ''},
        {'TagID': 45, 'TagName': 'Fertility', 'TagType': 0, 'TagOrder': 5},
    ],
    'indicators': [
        {'IndicatorId': 'CM_ECMR_C_CDF', 'Label': 'Child mortality rate',
         'Definition': 'Deaths of\tchildren per 1000', 'NumberScale': 1, 'MeasurementType': 'Rate',
         'IndicatorType': 'I', 'TagIds': '12, 45,7', 'IsQuickStat': 0, 'IndicatorOrder': '10',
         'Level1': ''},
        {'IndicatorId': 'FE_FRTR_W_TFR', 'Label': 'Total fertility rate',
         'Definition': 'Total fertility rate', 'NumberScale': 0, 'MeasurementType': 'Number',
         'IndicatorType': 'I', 'TagIds': '45', 'IsQuickStat': 1},
    ],
    'surveys': [
        {'SurveyId': 'AF2015DHS', 'SurveyType': 'DHS', 'SurveyYear': '2015',
         'CountryName': 'Afghanistan', 'DHS_CountryCode': 'AF', 'SurveyCharacteristicIds': '1,2',
         'NumberOfWomen': '29461', 'ImplementingOrg': ''},
    ],
    'data': [
        {'DataId': 1, 'SurveyId': 'AF2015DHS', 'IndicatorId': 'CM_ECMR_C_CDF',
         'Indicator': 'Child mortality rate', 'DHS_CountryCode': 'AF', 'Value': 12.5,
         'Precision': 1, 'CILow': '', 'CIHigh': '14.1', 'IsTotal': 1,
         'CharacteristicCategory': 'Total', 'CharacteristicLabel': 'Total'},
        {'DataId': 2, 'SurveyId': 'AF2015DHS', 'IndicatorId': 'FE_FRTR_W_TFR',
         'Indicator': 'Total fertility rate', 'DHS_CountryCode': 'AF', 'Value': '42',
         'Precision': '', 'IsTotal': 0, 'CharacteristicCategory': 'Region',
         'CharacteristicLabel': 'Kabul'},
    ],
}


@pytest.fixture
def api_records():
    return copy.deepcopy(API_RECORDS)


@pytest.fixture
def fake_session(api_records):
    return FakeSession(api_records)


@pytest.fixture
def fetcher(fake_session):
    return DHSFetcher(base_url='http://api.test/rest/dhs', page_size=2, session=fake_session,
                      sleep=lambda seconds: None)


@pytest.fixture
def server():
    return MemoryDocumentServer()


@pytest.fixture
def match_table():
    return MatchTable()


@pytest.fixture
def cache():
    return DescriptorCache()


@pytest.fixture
def dictionary(server, match_table, cache):
    return DataDictionary(server, match_table, cache)


@pytest.fixture
def config():
    settings = copy.deepcopy(DEFAULTS)
    settings['engine'] = 'memory'
    return settings
