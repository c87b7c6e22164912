"""
Configuration management for HostDiag.

Loads probe settings from environment variables or a .env file.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

ENV_LOCATIONS = [
    Path.home() / ".hostdiag" / ".env",
    Path.home() / ".config" / "hostdiag" / ".env",
    Path.cwd() / ".env",
]

DEFAULT_PING_TARGETS = ["8.8.8.8", "1.1.1.1"]


def load_env_file() -> Path | None:
    """Load the first .env file found in the usual locations."""
    for env_path in ENV_LOCATIONS:
        if env_path.exists():
            load_dotenv(env_path)
            return env_path
    return None


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _list_env(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class DiagConfig:
    """Probe and collection settings."""

    # Ping
    ping_timeout_ms: int = 1000
    ping_targets: list[str] = field(default_factory=lambda: list(DEFAULT_PING_TARGETS))
    gateway: str | None = None  # Overrides the routing table default

    # Traceroute
    trace_target: str | None = None
    trace_max_hops: int = 30
    trace_timeout_ms: int = 1000

    # DNS resolution test
    dns_test_hostname: str = "www.cloudflare.com"
    dns_timeout_ms: int = 2000

    # Overall collection deadline
    collect_deadline_s: float = 60.0

    @classmethod
    def from_env(cls) -> "DiagConfig":
        """Load configuration from environment variables."""
        return cls(
            ping_timeout_ms=_int_env("HOSTDIAG_PING_TIMEOUT_MS", 1000),
            ping_targets=_list_env("HOSTDIAG_PING_TARGETS", DEFAULT_PING_TARGETS),
            gateway=os.getenv("HOSTDIAG_GATEWAY") or None,
            trace_target=os.getenv("HOSTDIAG_TRACE_TARGET") or None,
            trace_max_hops=_int_env("HOSTDIAG_TRACE_MAX_HOPS", 30),
            trace_timeout_ms=_int_env("HOSTDIAG_TRACE_TIMEOUT_MS", 1000),
            dns_test_hostname=os.getenv("HOSTDIAG_DNS_TEST_HOSTNAME", "www.cloudflare.com"),
            dns_timeout_ms=_int_env("HOSTDIAG_DNS_TIMEOUT_MS", 2000),
            collect_deadline_s=_float_env("HOSTDIAG_COLLECT_DEADLINE_S", 60.0),
        )


# Global config instance
_config: DiagConfig | None = None


def get_config() -> DiagConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        load_env_file()
        _config = DiagConfig.from_env()
    return _config


def set_config(config: DiagConfig | None) -> None:
    """Set (or with None, reset) the global configuration instance."""
    global _config
    _config = config
