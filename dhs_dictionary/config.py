"""
Configuration and logging setup for the DHS data dictionary loader.

Settings are read from a YAML file (default ``config/dhs.yaml``) with environment
variables expanded in its content, then overridden by a handful of environment
variables (``DATABASE_URL``, ``DHS_ENGINE``, ``DHS_API_URL``, ``LOG_LEVEL``) so a
deployment can be pointed elsewhere without editing the file.
"""

import os
import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from dhs_dictionary.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = 'config/dhs.yaml'
DEFAULT_REFERENCE_FILE = str(Path(__file__).resolve().parent / 'data' / 'dhs_descriptors.csv')

DEFAULTS: Dict[str, Any] = {
    'engine': 'sql',
    'database_url': 'sqlite:///dhs_dictionary.db',
    'drop': True,
    'namespace': 'DHS',
    'reference_file': DEFAULT_REFERENCE_FILE,
    'api': {
        'base_url': 'http://api.dhsprogram.com/rest/dhs',
        'page_size': 1000,
        'max_retries': 10,
        'retry_delay': 10.0,
        'timeout': 60,
    },
    'data': {
        'load_flat': True,
    },
    'logging': {
        'level': 'INFO',
        'file': 'logs/etl_dhs.log',
    },
}

# Environment variable -> (section, key); a None section means top level.
ENV_OVERRIDES = {
    'DATABASE_URL': (None, 'database_url'),
    'DHS_ENGINE': (None, 'engine'),
    'DHS_API_URL': ('api', 'base_url'),
    'LOG_LEVEL': ('logging', 'level'),
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from YAML file, expanding env vars in its content.

    A missing file at the default location is not an error (defaults apply); a missing
    file that was asked for explicitly is.
    """
    load_dotenv()
    file_config: Dict[str, Any] = {}

    if config_path:
        path = Path(os.path.expandvars(config_path))
        if not path.is_absolute() and not path.exists():
            path = PROJECT_ROOT / path
        if path.exists():
            try:
                with open(path, 'r') as f:
                    config_str = os.path.expandvars(f.read())
                file_config = yaml.safe_load(config_str) or {}
            except yaml.YAMLError as e:
                logger.critical(f"FATAL: YAML parsing error in {path}: {e}")
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(f"Config in {path} must be a mapping")
            logger.info(f"Loaded configuration from {path}")
        elif config_path != DEFAULT_CONFIG_PATH:
            logger.critical(f"FATAL: Config file not found at {path}")
            raise ConfigurationError(f"Config file not found: {path}")

    config = _merge(DEFAULTS, file_config)

    for variable, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(variable)
        if not value:
            continue
        if section:
            config[section][key] = value
        else:
            config[key] = value

    return config


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None):
    """Configure root logging for command line runs."""
    handlers = [logging.StreamHandler()]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )
