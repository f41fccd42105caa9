"""Tests for CLI configuration module."""

import json

from cli.config import Config


def test_config_creates_default_file(tmp_path):
    """Test that config file is created with defaults if missing."""
    config_path = tmp_path / '.polygraf' / 'config.json'
    config = Config(config_path)

    assert config_path.exists()
    assert config.data['server_port'] == 8000
    assert config.data['timeout'] == 30
    assert config.data['max_retries'] == 3
    assert config.data['retry_backoff_multiplier'] == 2
    assert 'session_key' not in config.data


def test_config_loads_existing_file(tmp_path):
    config_path = tmp_path / '.polygraf' / 'config.json'
    config_path.parent.mkdir(parents=True)
    with open(config_path, 'w') as f:
        json.dump({'session_key': 'pgs_test', 'server_host': 'example.com', 'server_port': 9000}, f)

    config = Config(config_path)

    assert config.get_session_key() == 'pgs_test'
    assert config.get_base_url() == 'http://example.com:9000'
    assert config.data['timeout'] == 30


def test_config_save_and_clear_session_key(temp_config):
    assert temp_config.get_session_key() is None

    temp_config.set_session_key('pgs_abc')
    with open(temp_config.config_path) as f:
        assert json.load(f)['session_key'] == 'pgs_abc'

    temp_config.set_session_key(None)
    assert temp_config.get_session_key() is None
    with open(temp_config.config_path) as f:
        assert 'session_key' not in json.load(f)


def test_config_handles_corrupted_file(tmp_path):
    config_path = tmp_path / '.polygraf' / 'config.json'
    config_path.parent.mkdir(parents=True)
    config_path.write_text('{ invalid json content')

    config = Config(config_path)

    assert config.data['server_port'] == 8000
    assert config_path.with_suffix('.json.bak').exists()


def test_config_get_retry_config(temp_config):
    temp_config.data['max_retries'] = 5
    temp_config.data['retry_backoff_multiplier'] = 3

    assert temp_config.get_retry_config() == {'max_retries': 5, 'retry_backoff_multiplier': 3}
