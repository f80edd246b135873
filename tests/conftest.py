"""Test fixtures for OCI registry reaper."""

from collections.abc import Iterator

import pytest
import respx

from oci_reaper.config import Config
from oci_reaper.storage.registry import RegistryClient

from support.registry import BASE_URL, MockRegistry, make_config


@pytest.fixture
def config() -> Config:
    """Configuration pointing at the mock registry."""
    return make_config()


@pytest.fixture
def mock_registry() -> Iterator[MockRegistry]:
    """Empty mock registry at ``registry.example.com``."""
    with respx.mock(assert_all_called=False) as router:
        yield MockRegistry(router, BASE_URL)


@pytest.fixture
def client(
    config: Config, mock_registry: MockRegistry
) -> Iterator[RegistryClient]:
    """Registry client talking to the mock registry."""
    with RegistryClient(config) as client:
        yield client
