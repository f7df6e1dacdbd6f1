"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from reelist import config as config_module
from reelist.config import Config, load_config


@pytest.fixture(autouse=True)
def no_user_config(tmp_path, monkeypatch):
    monkeypatch.delenv('REELIST_CONFIG', raising=False)
    monkeypatch.setattr(config_module, 'DEFAULT_CONFIG_PATH', tmp_path / 'absent.yml')


def write_yaml(path: Path, data) -> Path:
    with open(path, 'w') as f:
        yaml.safe_dump(data, f)
    return path


def test_defaults_without_config_file():
    config = load_config()

    assert config.api_base_url is None
    assert config.page_size == 24
    assert config.persist_timeout == 10.0
    assert config.max_resync_attempts == 3
    assert config.resync_delay == 0.5


def test_load_flat_config(tmp_path):
    path = write_yaml(tmp_path / 'config.yml', {
        'db_path': str(tmp_path / 'lists.db'),
        'page_size': 12,
        'persist_timeout': 3,
    })

    config = load_config(path)

    assert config.db_path == tmp_path / 'lists.db'
    assert config.page_size == 12
    assert config.persist_timeout == 3.0
    assert config.max_resync_attempts == 3


def test_load_nested_config(tmp_path):
    path = write_yaml(tmp_path / 'config.yml', {
        'store': {'api_base_url': "https://example.org", 'api_token': "t0k3n"},
        'session': {'max_resync_attempts': 5, 'resync_delay': 1},
        'log_file': str(tmp_path / 'reelist.log'),
    })

    config = load_config(path)

    assert config.api_base_url == "https://example.org"
    assert config.api_token == "t0k3n"
    assert config.max_resync_attempts == 5
    assert config.resync_delay == 1.0
    assert config.log_file == tmp_path / 'reelist.log'


def test_config_from_environment(tmp_path, monkeypatch):
    path = write_yaml(tmp_path / 'env.yml', {'page_size': 6})
    monkeypatch.setenv('REELIST_CONFIG', str(path))

    assert load_config().page_size == 6


def test_explicit_path_must_exist(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / 'missing.yml')


def test_invalid_page_size(tmp_path):
    path = write_yaml(tmp_path / 'config.yml', {'page_size': 0})
    with pytest.raises(ValueError):
        load_config(path)


def test_save_config_round_trip(tmp_path):
    config = Config(
        db_path=tmp_path / 'db.sqlite',
        api_base_url="http://localhost:3000",
        page_size=30,
        resync_delay=0.25
    )
    path = tmp_path / 'nested' / 'config.yml'

    config.save_config(path)

    assert Config.load_config(path) == config
