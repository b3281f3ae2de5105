"""Shared pytest fixtures for all tests."""

import pytest
from fastapi.testclient import TestClient

from cli.config import Config
from relay.chunk_store import ChunkStore
from relay.config import RelayConfig
from relay.main import create_app
from relay.protocol import RelayProtocolHandler
from relay.session_registry import SessionRegistry

TEST_CHUNK_SIZE = 1024
TEST_SESSION_QUOTA = 25 * TEST_CHUNK_SIZE


@pytest.fixture
def relay_config(tmp_path):
    """
    Relay configuration scaled down for tests (1 KiB chunks, 25 KiB quota).

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        RelayConfig with a temporary storage root and auth disabled
    """
    return RelayConfig(
        storage_root=tmp_path / 'relay',
        chunk_size=TEST_CHUNK_SIZE,
        session_quota=TEST_SESSION_QUOTA,
        auth_enabled=False,
    )


@pytest.fixture
def registry(relay_config):
    return SessionRegistry(relay_config)


@pytest.fixture
def store(relay_config, registry):
    return ChunkStore(relay_config, registry)


@pytest.fixture
def handler(relay_config, registry, store):
    return RelayProtocolHandler(relay_config, registry, store)


@pytest.fixture
def app(relay_config):
    """Relay application built around the test configuration."""
    return create_app(relay_config)


@pytest.fixture
def api(app):
    """
    FastAPI test client for the relay.

    Startup events are not run; the storage root is created on first use.
    """
    return TestClient(app)


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .chunkrelay directory
    """
    config_dir = tmp_path / '.chunkrelay'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file of two and a half chunks.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample binary file
    """
    file_path = tmp_path / 'sample.bin'
    file_path.write_bytes(bytes(range(256)) * 10)
    return file_path
