"""
Component: etl/reference.py
Purpose: Reads the reference descriptor file, a headerless CSV with four columns:
         code, label, data type, comma-separated data kinds (quoted when it holds
         more than one kind). Data types and kinds may be given in short form
         (``int``, ``quantitative``) or as full identifiers (``:type:int``).
Outputs: ReferenceDescriptor records, validated as a whole before any is used.
"""

import re
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

import pandas as pd

from dhs_dictionary.dictionary.tokens import DATA_KINDS, DATA_TYPES, normalize_kind, normalize_type
from dhs_dictionary.exceptions import FormatError

logger = logging.getLogger(__name__)

COLUMNS = 4
# Upper bound of fields read per line; wider lines fail to tokenize.
MAX_FIELDS = 64


@dataclass(frozen=True)
class ReferenceDescriptor:
    code: str
    label: str
    data_type: str
    kinds: List[str]
    line: int


def _cells(row: pd.Series) -> List[str]:
    """Row values as stripped strings; padding columns come back empty or NaN."""
    return [v.strip() if isinstance(v, str) else '' for v in row.tolist()]


def _field_count(cells: List[str]) -> int:
    """Number of fields up to the last non-empty one."""
    for position in range(len(cells), 0, -1):
        if cells[position - 1]:
            return position
    return 0


def read_reference_file(path: Union[str, Path]) -> List[ReferenceDescriptor]:
    """Parse and validate the whole reference file.

    Raises:
        FormatError: If the file is missing or any non-blank line does not have
            exactly four columns, a known data type and at least one known kind.
    """
    path = Path(path)
    if not path.is_file():
        raise FormatError(f"Reference descriptor file not found: {path}", path=str(path))

    try:
        df = pd.read_csv(
            path,
            header=None,
            names=list(range(MAX_FIELDS)),
            index_col=False,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            skipinitialspace=True,
            encoding='utf-8',
        )
    except pd.errors.EmptyDataError:
        logger.warning(f"Reference descriptor file {path} is empty")
        return []
    except pd.errors.ParserError as e:
        match = re.search(r'line (\d+)', str(e))
        line = int(match.group(1)) if match else None
        raise FormatError(
            f"Invalid reference descriptor line {line}: too many columns",
            path=str(path), line=line,
        ) from e

    descriptors = []
    for index, row in df.iterrows():
        line = index + 1
        cells = _cells(row)
        count = _field_count(cells)
        if count == 0:
            continue
        if count != COLUMNS:
            raise FormatError(
                f"Invalid reference descriptor line {line}: expecting {COLUMNS} columns, found {count}",
                path=str(path), line=line,
            )

        code, label, data_type, kinds = cells[:COLUMNS]
        if not code:
            raise FormatError(f"Invalid reference descriptor line {line}: empty code", path=str(path), line=line)

        data_type = normalize_type(data_type)
        if data_type not in DATA_TYPES:
            raise FormatError(
                f"Invalid reference descriptor line {line}: unknown data type [{data_type}]",
                path=str(path), line=line,
            )

        kind_list = [normalize_kind(k) for k in kinds.split(',') if k.strip()]
        unknown = [k for k in kind_list if k not in DATA_KINDS]
        if not kind_list or unknown:
            raise FormatError(
                f"Invalid reference descriptor line {line}: invalid data kinds [{kinds}]",
                path=str(path), line=line,
            )

        descriptors.append(ReferenceDescriptor(code, label or code, data_type, kind_list, line))

    logger.info(f"Read {len(descriptors)} reference descriptors from {path}")
    return descriptors
