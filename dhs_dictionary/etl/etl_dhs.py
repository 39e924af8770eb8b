#!/usr/bin/env python3
"""
DHS Data Dictionary ETL
File: etl/etl_dhs.py

Populates the data dictionary with the DHS Program metadata and data served by
http://api.dhsprogram.com/rest/dhs. Stages run in a fixed order, each one taking the
outputs of the stages it depends on:

    namespace -> descriptors -> country codes -> measurement types -> indicator types
    -> survey characteristics -> tags -> indicators -> surveys (+ data points) -> data

The run rebuilds the dictionary from scratch: storage must be empty when it starts
(``drop`` wipes it). Enumeration predicates are not deduplicated, so running twice on
the same storage duplicates them. Any error aborts the run and leaves a partially
populated database behind.
"""

import sys
import time
import logging
import argparse
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from dhs_dictionary.api.collections import DocumentServer, DocumentHandle, get_server
from dhs_dictionary.config import DEFAULT_CONFIG_PATH, load_config, setup_logging
from dhs_dictionary.dictionary.cache import DescriptorCache
from dhs_dictionary.dictionary.match_table import MatchTable
from dhs_dictionary.dictionary.model import DataDictionary
from dhs_dictionary.dictionary.tokens import KIND_QUANTITATIVE, TYPE_FLOAT, TYPE_INT
from dhs_dictionary.etl.assembler import SurveyDataAssembler
from dhs_dictionary.etl.fetcher import (
    ENDPOINT_COUNTRIES, ENDPOINT_DATA, ENDPOINT_INDICATORS, ENDPOINT_SURVEYS,
    ENDPOINT_SURVEY_CHARACTERISTICS, ENDPOINT_TAGS, DHSFetcher,
)
from dhs_dictionary.etl.reference import read_reference_file
from dhs_dictionary.etl.transforms import (
    COUNTRY_FIELDS, TAG_FIELDS, build_data_document, build_indicator_properties,
    build_survey_document, copy_fields, is_truthy,
)
from dhs_dictionary.exceptions import DictionaryError

logger = logging.getLogger(__name__)

NAMESPACE_NAME = "Demographic and Health Surveys (DHS) Program"
NAMESPACE_DESCRIPTION = (
    "This namespace groups all metadata regarding the USAID Demographic and Health Surveys"
)

MEASUREMENT_TYPES = {
    'Mean': 'Mean',
    'Median': 'Median',
    'Number': 'Number',
    'Percent': 'Percent',
    'Rate': 'Rate',
}

INDICATOR_TYPES = {
    'I': 'Indicator',
    'D': 'Weighted denominator',
    'U': 'Unweighted denominator',
    'T': 'Distribution total (100%)',
    'S': "Special answers (don't know/missing)",
    'E': 'Sampling errors',
    'C': 'Confidence interval',
}


@dataclass
class DescriptorSet:
    """Output of the descriptors stage: handles and data types by field name."""
    handles: Dict[str, DocumentHandle] = field(default_factory=dict)
    types: Dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.handles)


# --- Stages ---

def init_namespace(dictionary: DataDictionary, namespace: str) -> str:
    """Create the root namespace and return its global identifier."""
    return dictionary.create_namespace(namespace, NAMESPACE_NAME, NAMESPACE_DESCRIPTION)


def init_descriptors(dictionary: DataDictionary, ns: str, reference_path: str) -> DescriptorSet:
    """Create one descriptor per reference file line.

    The whole file is validated before the first descriptor is stored.
    """
    entries = read_reference_file(reference_path)
    descriptors = DescriptorSet()
    for entry in entries:
        handle = dictionary.create_descriptor(
            ns, entry.code, entry.data_type, entry.kinds, entry.code,
            description=entry.label,
        )
        descriptors.handles.setdefault(entry.code, handle)
        descriptors.types.setdefault(entry.code.lower(), entry.data_type)

    logger.info(f"Created {len(entries)} descriptors, match table holds {len(dictionary.match_table)} fields")
    return descriptors


def _init_enumerations(dictionary: DataDictionary, ns: str, field_name: str, type_name: str,
                       values: Dict[str, str]) -> int:
    """Fixed enumeration list under a type term, linked to the ``field_name`` descriptor."""
    type_gid = dictionary.create_type(ns, field_name, type_name)
    descriptor = dictionary.descriptor_handle(field_name)
    for lid, name in values.items():
        dictionary.create_enumeration(type_gid, lid, name, descriptor)

    dictionary.refresh_descriptor(descriptor)
    logger.info(f"Created {len(values)} {type_name.lower()} enumerations")
    return len(values)


def init_country_codes(dictionary: DataDictionary, ns: str, fetcher: DHSFetcher,
                       descriptors: DescriptorSet) -> int:
    """Create one enumeration per DHS country, with its alternate codes and region."""
    field_name = 'DHS_CountryCode'
    type_gid = dictionary.create_type(ns, field_name, "Country code")
    descriptor = dictionary.descriptor_handle(field_name)

    countries = fetcher.fetch_all(ENDPOINT_COUNTRIES).records
    for country in countries:
        properties = copy_fields(
            country, COUNTRY_FIELDS, ns, dictionary.match_table, descriptors.types,
        )
        dictionary.create_enumeration(
            type_gid, str(country[field_name]), country.get('CountryName') or country[field_name],
            descriptor, properties=properties,
        )

    dictionary.refresh_descriptor(descriptor)
    logger.info(f"Created {len(countries)} country enumerations")
    return len(countries)


def init_measurement_types(dictionary: DataDictionary, ns: str) -> int:
    return _init_enumerations(dictionary, ns, 'MeasurementType', "Measurement type", MEASUREMENT_TYPES)


def init_indicator_types(dictionary: DataDictionary, ns: str) -> int:
    return _init_enumerations(dictionary, ns, 'IndicatorType', "Indicator type", INDICATOR_TYPES)


def init_survey_characteristics(dictionary: DataDictionary, ns: str, fetcher: DHSFetcher) -> int:
    field_name = 'SurveyCharacteristicIds'
    type_gid = dictionary.create_type(ns, field_name, "Survey characteristic")
    descriptor = dictionary.descriptor_handle(field_name)

    characteristics = fetcher.fetch_all(ENDPOINT_SURVEY_CHARACTERISTICS).records
    for item in characteristics:
        lid = str(item['SurveyCharacteristicID'])
        dictionary.create_enumeration(
            type_gid, lid, item.get('SurveyCharacteristicName') or lid, descriptor,
        )

    dictionary.refresh_descriptor(descriptor)
    logger.info(f"Created {len(characteristics)} survey characteristic enumerations")
    return len(characteristics)


def init_tags(dictionary: DataDictionary, ns: str, fetcher: DHSFetcher,
              descriptors: DescriptorSet) -> int:
    field_name = 'TagIds'
    type_gid = dictionary.create_type(ns, field_name, "Tag")
    descriptor = dictionary.descriptor_handle(field_name)

    tags = fetcher.fetch_all(ENDPOINT_TAGS).records
    for tag in tags:
        lid = str(tag['TagID'])
        properties = copy_fields(tag, TAG_FIELDS, ns, dictionary.match_table, descriptors.types)
        dictionary.create_enumeration(
            type_gid, lid, tag.get('TagName') or lid, descriptor, properties=properties,
        )

    dictionary.refresh_descriptor(descriptor)
    logger.info(f"Created {len(tags)} tag enumerations")
    return len(tags)


def init_indicators(dictionary: DataDictionary, ns: str, fetcher: DHSFetcher,
                    descriptors: DescriptorSet, progress: bool = False) -> int:
    """Create a quantitative descriptor per indicator."""
    count = 0
    records = fetcher.iter_records(ENDPOINT_INDICATORS)
    for indicator in tqdm(records, desc="Indicators", unit="indicator", disable=not progress):
        lid = str(indicator['IndicatorId'])
        data_type = TYPE_FLOAT if is_truthy(indicator.get('NumberScale')) else TYPE_INT
        description = indicator.get('Definition')
        dictionary.create_descriptor(
            ns, lid, data_type, [KIND_QUANTITATIVE], indicator.get('Label') or lid,
            description=description.replace('\t', '') if description else None,
            symbol=lid,
            properties=build_indicator_properties(
                indicator, ns, dictionary.match_table, descriptors.types,
            ),
        )
        count += 1

    logger.info(f"Created {count} indicator descriptors")
    return count


def init_surveys(dictionary: DataDictionary, ns: str, fetcher: DHSFetcher,
                 assembler: SurveyDataAssembler, descriptors: DescriptorSet,
                 progress: bool = False) -> int:
    """Store surveys with their embedded data points, and every flat data document."""
    count = 0
    documents = 0
    records = fetcher.iter_records(ENDPOINT_SURVEYS)
    for survey in tqdm(records, desc="Surveys", unit="survey", disable=not progress):
        survey_id = str(survey['SurveyId'])
        survey_data = assembler.assemble(survey_id)
        for document in survey_data.documents:
            dictionary.data.save(document)
        documents += len(survey_data.documents)

        dictionary.surveys.insert(build_survey_document(
            survey, ns, dictionary.match_table, descriptors.types, points=survey_data.points,
        ))
        count += 1

    logger.info(f"Stored {count} surveys and {documents} data documents")
    return count


def init_data(dictionary: DataDictionary, ns: str, fetcher: DHSFetcher,
              descriptors: DescriptorSet, progress: bool = False) -> int:
    """Store the full (not survey-scoped) data set as flat data documents."""
    count = 0
    records = fetcher.iter_records(ENDPOINT_DATA)
    for record in tqdm(records, desc="Data", unit="record", disable=not progress):
        dictionary.data.save(build_data_document(record, ns, dictionary.match_table, descriptors.types))
        count += 1

    logger.info(f"Stored {count} data documents")
    return count


# --- Orchestration ---

class DHSDictionaryETL:
    """DHS data dictionary ETL processor."""

    def __init__(self, config: Dict[str, Any], server: Optional[DocumentServer] = None,
                 fetcher: Optional[DHSFetcher] = None, progress: bool = False):
        self.config = config
        self.namespace = config.get('namespace', 'DHS')
        self.reference_file = config['reference_file']
        self.load_flat = bool(config.get('data', {}).get('load_flat', True))
        self.progress = progress

        self.server = server or get_server(config.get('engine'), config.get('database_url'))
        self.fetcher = fetcher or DHSFetcher.from_config(config.get('api', {}))
        self._new_dictionary()

    def _new_dictionary(self):
        """Fresh match table, descriptor cache and dictionary; keys are only valid within one run."""
        self.match_table = MatchTable()
        self.cache = DescriptorCache()
        self.dictionary = DataDictionary(self.server, self.match_table, self.cache)

    def _timed(self, results: Dict[str, Any], name: str, func, *args, **kwargs):
        logger.info(f"Stage [{name}] started")
        started = time.monotonic()
        output = func(*args, **kwargs)
        results[name] = len(output) if isinstance(output, DescriptorSet) else output
        logger.info(f"Stage [{name}] completed in {time.monotonic() - started:.1f}s")
        return output

    def run(self, drop: Optional[bool] = None) -> Dict[str, Any]:
        """Run every stage in order and return a per-stage summary."""
        drop = self.config.get('drop', True) if drop is None else drop
        logger.info("Starting DHS data dictionary ETL process...")
        if drop:
            self.server.drop()
        self._new_dictionary()

        results: Dict[str, Any] = {}
        dictionary = self.dictionary
        try:
            ns = self._timed(results, 'namespace', init_namespace, dictionary, self.namespace)
            descriptors = self._timed(
                results, 'descriptors', init_descriptors, dictionary, ns, self.reference_file)
            self._timed(results, 'countries', init_country_codes, dictionary, ns, self.fetcher, descriptors)
            self._timed(results, 'measurement_types', init_measurement_types, dictionary, ns)
            self._timed(results, 'indicator_types', init_indicator_types, dictionary, ns)
            self._timed(results, 'survey_characteristics', init_survey_characteristics,
                        dictionary, ns, self.fetcher)
            self._timed(results, 'tags', init_tags, dictionary, ns, self.fetcher, descriptors)
            self._timed(results, 'indicators', init_indicators, dictionary, ns, self.fetcher,
                        descriptors, progress=self.progress)

            assembler = SurveyDataAssembler(dictionary, ns, self.fetcher, descriptors.types)
            self._timed(results, 'surveys', init_surveys, dictionary, ns, self.fetcher,
                        assembler, descriptors, progress=self.progress)
            if self.load_flat:
                self._timed(results, 'data', init_data, dictionary, ns, self.fetcher,
                            descriptors, progress=self.progress)
        except DictionaryError as e:
            logger.error(f"❌ DHS ETL process failed: {e}")
            raise

        logger.info(f"✅ DHS ETL process completed successfully: {results}")
        return results

    def close(self):
        self.fetcher.close()
        self.server.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='DHS Data Dictionary ETL')
    parser.add_argument('--config', '-c', default=DEFAULT_CONFIG_PATH,
                        help='Configuration file path')
    parser.add_argument('--engine', choices=['sql', 'memory'],
                        help='Storage engine (overrides config)')
    parser.add_argument('--database-url', help='SQLAlchemy database URL (overrides config)')
    parser.add_argument('--no-drop', dest='drop', action='store_false', default=None,
                        help='Do not wipe the database before loading')
    parser.add_argument('--skip-flat', action='store_true',
                        help='Skip reloading the full data set as flat data documents')
    parser.add_argument('--progress', action='store_true', help='Show progress bars')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except DictionaryError as e:
        setup_logging()
        logger.critical(f"FATAL: {e}")
        return 1

    if args.engine:
        config['engine'] = args.engine
    if args.database_url:
        config['database_url'] = args.database_url
    if args.skip_flat:
        config['data']['load_flat'] = False
    setup_logging(config['logging'].get('level', 'INFO'), config['logging'].get('file'))

    try:
        etl = DHSDictionaryETL(config, progress=args.progress)
        try:
            etl.run(drop=args.drop)
        finally:
            etl.close()
    except DictionaryError as e:
        logger.critical(f"FATAL: {e.to_dict()}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
