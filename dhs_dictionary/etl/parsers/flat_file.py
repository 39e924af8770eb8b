import re
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import pandas as pd

from dhs_dictionary.exceptions import FormatError

logger = logging.getLogger(__name__)

DCT_LINES = re.compile(r'(\d+) lines')
DCF_HEADER = re.compile(r'^\[(.+)\]\s*$')
DCF_ENTRY = re.compile(r'^(.+?)=(.+)$')
WORD = re.compile(r'\w+')

ITEM_BLOCK = 'Item'
VALUE_SET_BLOCK = 'ValueSet'
LEVEL_BLOCK = 'Level'


@dataclass
class FlatFileDataset:
    """A DHS flat-file dataset: fixed-width ``.DAT`` records described by ``.DCT``/``.DCF``."""
    country: str
    type: str
    phase: str
    release: str
    dat_path: Path
    lines: int = 1
    level: Optional[str] = None
    variables: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def data_types(self) -> List[str]:
        """Distinct variable types, in order of first appearance."""
        types = []
        for variable in self.variables.values():
            if variable['type'] not in types:
                types.append(variable['type'])
        return types

    def read_data(self) -> pd.DataFrame:
        """Read the record lines of the ``.DAT`` file into a DataFrame.

        Only the variables located on the first line of each record are read. Columns
        are named after the variables; non-string variables are converted to numbers.
        """
        columns = [v for v in self.variables.values() if v['line'] == 1]
        if not columns:
            raise FormatError("Dataset has no variables on the first record line", path=str(self.dat_path))

        lines = self.lines
        df = pd.read_fwf(
            self.dat_path,
            colspecs=[(v['start'] - 1, v['end']) for v in columns],
            names=[v['name'] for v in columns],
            header=None,
            dtype=str,
            skiprows=(lambda i: i % lines != 0) if lines > 1 else None,
        )
        for variable in columns:
            if not variable['type'].lower().startswith('str'):
                df[variable['name']] = pd.to_numeric(df[variable['name']], errors='coerce')

        logger.info(f"Read {len(df)} records from {self.dat_path}")
        return df


def _find_files(directory: Path) -> Dict[str, Path]:
    files = {}
    for path in sorted(directory.iterdir()):
        suffix = path.suffix.lower()
        if path.is_file() and suffix in ('.dcf', '.dct', '.dat'):
            if suffix in files:
                raise FormatError(f"More than one {suffix.upper()} file in dataset", path=str(directory))
            files[suffix] = path
    for suffix in ('.dcf', '.dct', '.dat'):
        if suffix not in files:
            raise FormatError(f"Missing {suffix.upper()[1:]} file", path=str(directory))
    return files


def parse_dct(path: Union[str, Path]) -> Tuple[int, Dict[str, Dict[str, Any]]]:
    """Parse a Stata dictionary: record line count and variables keyed by lower-case name.

    Raises:
        FormatError: If a variable line does not hold exactly five word tokens
            (type, name, line, start, end).
    """
    lines = None
    variables: Dict[str, Dict[str, Any]] = {}
    with open(path, 'r', encoding='latin-1') as f:
        for number, line in enumerate(f, start=1):
            if lines is None:
                match = DCT_LINES.search(line)
                if match:
                    lines = int(match.group(1))
                continue

            if '}' in line:
                break
            tokens = WORD.findall(line)
            if len(tokens) != 5:
                raise FormatError(f"Invalid line format: [{line.rstrip()}]", path=str(path), line=number)

            data_type, name, record_line, start, end = tokens
            try:
                record_line, start, end = int(record_line), int(start), int(end)
            except ValueError as e:
                raise FormatError(f"Invalid line format: [{line.rstrip()}]", path=str(path), line=number) from e
            variables[name.lower()] = {
                'type': data_type,
                'name': name,
                'label': name,
                'line': record_line,
                'start': start,
                'end': end,
                'size': end - start + 1,
            }

    if lines is None:
        raise FormatError("Missing record line count", path=str(path))
    return lines, variables


def _dcf_blocks(path: Path) -> Iterator[Tuple[str, List[Tuple[str, str]]]]:
    """Yield ``(block name, [(key, value), ...])``; a block ends at its first non-entry line."""
    name = None
    entries: List[Tuple[str, str]] = []
    open_block = False
    with open(path, 'r', encoding='latin-1') as f:
        for line in f:
            line = line.rstrip('\r\n')
            header = DCF_HEADER.match(line)
            if header:
                if name is not None:
                    yield name, entries
                name, entries, open_block = header.group(1), [], True
                continue
            entry = DCF_ENTRY.match(line)
            if entry and open_block:
                entries.append((entry.group(1), entry.group(2)))
            else:
                open_block = False
    if name is not None:
        yield name, entries


def _value_set(entries: List[Tuple[str, str]]) -> Dict[str, str]:
    values = {}
    for key, value in entries:
        if key != 'Value' or ';' not in value:
            continue
        code, _, label = value.partition(';')
        code = code.replace("'", '').strip()
        if code:
            values[code] = label
    return values


def parse_dcf(path: Union[str, Path], variables: Dict[str, Dict[str, Any]]) -> Optional[str]:
    """Merge CSPro dictionary items into ``variables`` and return the record level name.

    Each ``[Item]`` updates the name, label and size of the matching variable; the
    ``[ValueSet]`` that directly follows an item becomes its ``enum``.
    """
    level = None
    current = None
    for block, entries in _dcf_blocks(Path(path)):
        data = dict(entries)
        if block == LEVEL_BLOCK and level is None:
            level = data.get('Name')
        elif block == ITEM_BLOCK:
            name = data.get('Name')
            current = variables.get(name.lower()) if name else None
            if current is None:
                logger.warning(f"Item [{name}] of {path} is not in the DCT dictionary, skipping")
                continue
            current['name'] = name
            current['label'] = data.get('Label', name)
            if 'Len' in data:
                current['size'] = int(data['Len'])
        elif block == VALUE_SET_BLOCK and current is not None:
            values = _value_set(entries)
            if values:
                current['enum'] = values
            current = None
        else:
            current = None
    return level


def load_flat_file_dataset(directory: Union[str, Path]) -> FlatFileDataset:
    """Load the dictionary of the dataset stored in ``directory``.

    The directory must hold exactly one ``.DCF``, ``.DCT`` and ``.DAT`` file. The
    dataset code (country, type, phase, release) is read from the DCF file name.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FormatError(f"Dataset directory not found: {directory}", path=str(directory))

    files = _find_files(directory)
    code = files['.dcf'].stem
    lines, variables = parse_dct(files['.dct'])
    level = parse_dcf(files['.dcf'], variables)

    dataset = FlatFileDataset(
        country=code[0:2],
        type=code[2:4],
        phase=code[4:5],
        release=code[5:6],
        dat_path=files['.dat'],
        lines=lines,
        level=level,
        variables=variables,
    )
    logger.info(f"Loaded dataset {code}: {len(variables)} variables, {lines} line(s) per record")
    return dataset
