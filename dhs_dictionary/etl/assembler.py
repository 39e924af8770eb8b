"""
Component: etl/assembler.py
Purpose: Walks the data pages of a single survey and turns every record into both
         representations the dictionary keeps: the flat data document and the compact
         data point embedded in the survey. Persisting either is left to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from dhs_dictionary.dictionary.model import DataDictionary, make_gid
from dhs_dictionary.etl.fetcher import ENDPOINT_DATA, DHSFetcher
from dhs_dictionary.etl.transforms import build_data_document, build_data_point

logger = logging.getLogger(__name__)


@dataclass
class SurveyData:
    survey_id: str
    points: List[Dict[str, Any]] = field(default_factory=list)
    documents: List[Dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)


class SurveyDataAssembler:

    def __init__(self, dictionary: DataDictionary, namespace: str, fetcher: DHSFetcher,
                 field_types: Optional[Mapping[str, str]] = None):
        self.dictionary = dictionary
        self.namespace = namespace
        self.fetcher = fetcher
        self.field_types = field_types or {}

    def indicator_key(self, indicator_id: str) -> str:
        """Descriptor key of an indicator, looked up by its global identifier.

        Raises:
            NotFoundError: If no indicator descriptor was created for ``indicator_id``
        """
        return self.dictionary.get_descriptor_key(make_gid(str(indicator_id), self.namespace))

    def transform(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        return build_data_point(
            record, self.indicator_key(record['IndicatorId']),
            self.dictionary.match_table, self.field_types,
        )

    def assemble(self, survey_id: str) -> SurveyData:
        result = SurveyData(survey_id=survey_id)
        for record in self.fetcher.iter_records(ENDPOINT_DATA, surveyIds=survey_id):
            result.documents.append(build_data_document(
                record, self.namespace, self.dictionary.match_table, self.field_types,
            ))
            result.points.append(self.transform(record))

        logger.debug(f"Survey {survey_id}: assembled {len(result.points)} data points")
        return result
