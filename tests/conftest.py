"""Shared pytest fixtures for all tests."""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from cli.config import Config
from polygraf import service_locator
from polygraf.database import init_database


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("polygraf.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("polygraf.config.DATABASE_PATH", str(db_path))
        service_locator.set_identity_provider(None)
        init_database()
        yield db_path
        service_locator.set_identity_provider(None)


@pytest.fixture
def guest_enabled(monkeypatch):
    """Enable guest access with the token GUEST-DEMO-001."""
    monkeypatch.setattr("polygraf.config.GUEST_ACCESS_TOKEN", "GUEST-DEMO-001")
    return "GUEST-DEMO-001"


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .polygraf directory
    """
    config_dir = tmp_path / '.polygraf'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path
