"""
Tests for bootstrap discovery ordering and fallback.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from node_sources.discovery import BootstrapDiscovery, parse_candidate
from node_sources.exceptions import (
    AllBootstrapsFailedError,
    ConnectFailureError,
    RequestTimeoutError,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def roster(make_entry):
    return [make_entry("1.1.1.1:9001"), make_entry("2.2.2.2:9001")]


def fake_client(responses):
    """Client whose get_pods_with_stats answers per host from ``responses``."""
    client = MagicMock()
    client.DEFAULT_TIMEOUT = 8.0

    async def get_pods_with_stats(host, port, timeout=None):
        outcome = responses[host]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    client.get_pods_with_stats = AsyncMock(side_effect=get_pods_with_stats)
    return client


# ============================================================
# TESTS
# ============================================================

class TestParseCandidate:
    """Tests for candidate parsing."""

    def test_bare_host_uses_default_port(self):
        assert parse_candidate("173.212.203.145") == ("173.212.203.145", 6000)

    def test_host_with_port(self):
        assert parse_candidate("173.212.203.145:7000") == ("173.212.203.145", 7000)

    def test_custom_default_port(self):
        assert parse_candidate("node.example", 6100) == ("node.example", 6100)


class TestBootstrapDiscovery:
    """Tests for BootstrapDiscovery."""

    @pytest.mark.asyncio
    async def test_first_success_wins_and_later_candidates_are_not_called(self, roster):
        """A errors, B returns a roster, C is never called."""
        client = fake_client({
            "A": ConnectFailureError("refused", host="A"),
            "B": roster,
            "C": roster,
        })
        discovery = BootstrapDiscovery(client, ["A", "B", "C"])

        result = await discovery.discover()

        assert result == roster
        called_hosts = [call.args[0] for call in client.get_pods_with_stats.call_args_list]
        assert called_hosts == ["A", "B"]
        assert discovery.last_source == "B:6000"
        assert discovery.last_attempts == ["A:6000: refused"]

    @pytest.mark.asyncio
    async def test_empty_roster_is_skipped(self, roster):
        client = fake_client({"A": [], "B": roster})
        discovery = BootstrapDiscovery(client, ["A", "B"])

        assert await discovery.discover() == roster
        assert discovery.last_attempts == ["A:6000: empty roster"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_skipped(self, roster):
        client = fake_client({"A": RuntimeError("weird"), "B": roster})
        discovery = BootstrapDiscovery(client, ["A", "B"])

        assert await discovery.discover() == roster

    @pytest.mark.asyncio
    async def test_all_failed_raises_with_ordered_diagnostics(self):
        client = fake_client({
            "A": ConnectFailureError("refused", host="A"),
            "B": RequestTimeoutError("Request timeout after 8.0s", host="B"),
            "C": [],
        })
        discovery = BootstrapDiscovery(client, ["A", "B:7000", "C"])

        with pytest.raises(AllBootstrapsFailedError) as exc_info:
            await discovery.discover()

        assert exc_info.value.attempts == [
            "A:6000: refused",
            "B:7000: Request timeout after 8.0s",
            "C:6000: empty roster",
        ]
        assert discovery.last_source is None

    @pytest.mark.asyncio
    async def test_timeout_and_port_are_forwarded(self, roster):
        client = fake_client({"A": roster})
        discovery = BootstrapDiscovery(client, ["A:6123"], timeout=2.5)

        await discovery.discover()

        client.get_pods_with_stats.assert_awaited_once_with("A", 6123, timeout=2.5)

    def test_worst_case_seconds(self):
        client = fake_client({})
        discovery = BootstrapDiscovery(client, ["A", "B", "C"], timeout=2.0)

        assert discovery.worst_case_seconds() == 6.0
