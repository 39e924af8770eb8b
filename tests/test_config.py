import logging

import pytest

from dhs_dictionary.config import ENV_OVERRIDES, load_config, setup_logging
from dhs_dictionary.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for variable in ENV_OVERRIDES:
        monkeypatch.delenv(variable, raising=False)


def test_file_values_are_merged_with_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv('DHS_PAGE_SIZE', '250')
    path = tmp_path / "dhs.yaml"
    path.write_text(
        "engine: memory\n"
        "api:\n"
        "  page_size: ${DHS_PAGE_SIZE}\n"
        "data:\n"
        "  load_flat: false\n"
    )

    config = load_config(str(path))

    assert config['engine'] == 'memory'
    assert config['api']['page_size'] == 250
    assert config['api']['max_retries'] == 10
    assert config['data']['load_flat'] is False
    assert config['namespace'] == 'DHS'


def test_environment_overrides(tmp_path, monkeypatch):
    path = tmp_path / "dhs.yaml"
    path.write_text("engine: memory\n")
    monkeypatch.setenv('DHS_ENGINE', 'sql')
    monkeypatch.setenv('DATABASE_URL', 'sqlite:///:memory:')
    monkeypatch.setenv('DHS_API_URL', 'http://mirror.test/rest/dhs')

    config = load_config(str(path))

    assert config['engine'] == 'sql'
    assert config['database_url'] == 'sqlite:///:memory:'
    assert config['api']['base_url'] == 'http://mirror.test/rest/dhs'


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "missing.yaml"))


def test_invalid_yaml(tmp_path):
    path = tmp_path / "dhs.yaml"
    path.write_text("api: [unclosed\n")
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "etl.log"
    setup_logging('DEBUG', str(log_file))
    logging.getLogger('dhs_dictionary.test').debug("hello")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "hello" in log_file.read_text()
