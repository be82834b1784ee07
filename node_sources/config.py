"""
Node Sources - Configuration.

============================================================
CONFIGURABLE NETWORK ACCESS
============================================================

All network access parameters are configurable:
- Ordered bootstrap node list
- pRPC port and per-call timeouts
- Fetch batch size
- Refresh cadence and cache lifetimes
- Geolocation endpoint

Configuration can be loaded from:
- Default values
- Environment variables (.env supported)
- YAML config file

============================================================
"""

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from node_sources.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


DEFAULT_BOOTSTRAP_NODES = [
    "173.212.203.145",
    "173.212.220.65",
    "161.97.97.41",
    "192.190.136.36",
    "192.190.136.37",
    "192.190.136.38",
    "192.190.136.28",
    "192.190.136.29",
    "207.244.255.1",
]

DEFAULT_PRPC_PORT = 6000
DEFAULT_GEOLOCATION_URL = "http://ip-api.com/batch"

MIN_REFRESH_INTERVAL = 15
MAX_REFRESH_INTERVAL = 300


@dataclass
class NetworkConfig:
    """
    Main configuration for the network monitor.

    Timeouts are in seconds.
    """
    # Discovery
    bootstrap_nodes: List[str] = field(default_factory=lambda: list(DEFAULT_BOOTSTRAP_NODES))
    prpc_port: int = DEFAULT_PRPC_PORT
    bootstrap_timeout: float = 8.0

    # Stats fetching
    stats_timeout: float = 3.0
    batch_size: int = 20

    # Polling
    refresh_interval_seconds: int = 30
    roster_ttl_seconds: int = 0  # 0 = rediscover every cycle
    cache_ttl_seconds: int = 30
    event_retention: int = 50
    alert_retention: int = 100

    # Geolocation
    geolocation_enabled: bool = True
    geolocation_url: str = DEFAULT_GEOLOCATION_URL
    geolocation_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.bootstrap_nodes:
            raise ConfigurationError("At least one bootstrap node is required", "bootstrap_nodes")
        if not 0 < self.prpc_port < 65536:
            raise ConfigurationError(f"Invalid pRPC port {self.prpc_port}", "prpc_port")
        if self.bootstrap_timeout <= 0 or self.stats_timeout <= 0:
            raise ConfigurationError("Timeouts must be positive", "stats_timeout")
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be >= 1", "batch_size")
        if not MIN_REFRESH_INTERVAL <= self.refresh_interval_seconds <= MAX_REFRESH_INTERVAL:
            raise ConfigurationError(
                f"refresh_interval_seconds must be {MIN_REFRESH_INTERVAL}-{MAX_REFRESH_INTERVAL}",
                "refresh_interval_seconds",
            )
        if self.event_retention < 1:
            raise ConfigurationError("event_retention must be >= 1", "event_retention")

    def worst_case_fetch_seconds(self, target_count: int) -> float:
        """Upper bound on one fetch phase: ceil(N / batch) x timeout."""
        return math.ceil(target_count / self.batch_size) * self.stats_timeout

    def worst_case_discovery_seconds(self) -> float:
        """Upper bound on one discovery attempt."""
        return len(self.bootstrap_nodes) * self.bootstrap_timeout

    @classmethod
    def from_env(cls) -> "NetworkConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - PUBLIC_PNODES (comma separated, ``host`` or ``host:port``)
        - PRPC_PORT
        - PRPC_TIMEOUT
        - STATS_TIMEOUT
        - FETCH_BATCH_SIZE
        - REFRESH_INTERVAL
        - ROSTER_TTL
        - CACHE_TTL
        - EVENT_RETENTION
        - GEOLOCATION_ENABLED
        - GEOLOCATION_URL
        """
        load_dotenv()

        kwargs: Dict[str, Any] = {}

        if os.getenv("PUBLIC_PNODES"):
            kwargs["bootstrap_nodes"] = [
                h.strip() for h in os.getenv("PUBLIC_PNODES").split(",") if h.strip()
            ]
        if os.getenv("PRPC_PORT"):
            kwargs["prpc_port"] = int(os.getenv("PRPC_PORT"))
        if os.getenv("PRPC_TIMEOUT"):
            kwargs["bootstrap_timeout"] = float(os.getenv("PRPC_TIMEOUT"))
        if os.getenv("STATS_TIMEOUT"):
            kwargs["stats_timeout"] = float(os.getenv("STATS_TIMEOUT"))
        if os.getenv("FETCH_BATCH_SIZE"):
            kwargs["batch_size"] = int(os.getenv("FETCH_BATCH_SIZE"))
        if os.getenv("REFRESH_INTERVAL"):
            kwargs["refresh_interval_seconds"] = int(os.getenv("REFRESH_INTERVAL"))
        if os.getenv("ROSTER_TTL"):
            kwargs["roster_ttl_seconds"] = int(os.getenv("ROSTER_TTL"))
        if os.getenv("CACHE_TTL"):
            kwargs["cache_ttl_seconds"] = int(os.getenv("CACHE_TTL"))
        if os.getenv("EVENT_RETENTION"):
            kwargs["event_retention"] = int(os.getenv("EVENT_RETENTION"))
        if os.getenv("GEOLOCATION_ENABLED"):
            kwargs["geolocation_enabled"] = os.getenv("GEOLOCATION_ENABLED").lower() in ("1", "true", "yes")
        if os.getenv("GEOLOCATION_URL"):
            kwargs["geolocation_url"] = os.getenv("GEOLOCATION_URL")

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> "NetworkConfig":
        """Load configuration from YAML file."""
        import yaml

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load YAML config from {path}", original_error=e)

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys in {path}: {unknown}")

        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "bootstrap_nodes": list(self.bootstrap_nodes),
            "prpc_port": self.prpc_port,
            "bootstrap_timeout": self.bootstrap_timeout,
            "stats_timeout": self.stats_timeout,
            "batch_size": self.batch_size,
            "refresh_interval_seconds": self.refresh_interval_seconds,
            "roster_ttl_seconds": self.roster_ttl_seconds,
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "event_retention": self.event_retention,
            "geolocation_enabled": self.geolocation_enabled,
        }


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[NetworkConfig] = None


def get_config() -> NetworkConfig:
    """Get the global network configuration."""
    global _default_config
    if _default_config is None:
        _default_config = NetworkConfig.from_env()
    return _default_config


def set_config(config: NetworkConfig) -> None:
    """Set the global network configuration."""
    global _default_config
    _default_config = config
