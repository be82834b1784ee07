"""
Fixtures for poller, service and API tests.
"""

import pytest

from node_sources.config import NetworkConfig
from network_monitor.poller import NetworkPoller
from network_monitor.service import NetworkService

from tests.network_monitor.fakes import FakeClient, fake_discovery


@pytest.fixture
def config():
    return NetworkConfig(
        bootstrap_nodes=["10.0.0.0"],
        refresh_interval_seconds=15,
        geolocation_enabled=False,
    )


@pytest.fixture
def make_poller(config):
    def build(discovery=None, client=None, **kwargs):
        return NetworkPoller(
            config=kwargs.pop("config", config),
            client=client or FakeClient(),
            discovery=discovery or fake_discovery(),
            **kwargs,
        )
    return build


@pytest.fixture
def make_service(make_poller):
    def build(discovery=None, cache_ttl_seconds=0, **kwargs):
        return NetworkService(make_poller(discovery=discovery, **kwargs), cache_ttl_seconds)
    return build
