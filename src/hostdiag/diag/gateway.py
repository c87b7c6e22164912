"""
Default gateway discovery from the host's routing table.
"""

import logging
import platform
import re
import subprocess

from netaddr import valid_ipv4

logger = logging.getLogger(__name__)

ROUTE_COMMAND_TIMEOUT_S = 5.0

_COMMANDS = {
    "linux": ["ip", "-4", "route", "show", "default"],
    "darwin": ["route", "-n", "get", "default"],
    "windows": ["route", "print", "-4", "0.0.0.0"],
}

# "default via 192.168.1.1 dev eth0 proto dhcp metric 100"
_LINUX_RE = re.compile(r"^default\s+via\s+(?P<gw>\S+)", re.MULTILINE)
# "    gateway: 192.168.1.1"
_DARWIN_RE = re.compile(r"^\s*gateway:\s+(?P<gw>\S+)", re.MULTILINE)
# "          0.0.0.0          0.0.0.0      192.168.1.1    192.168.1.100     25"
_WINDOWS_RE = re.compile(r"^\s*0\.0\.0\.0\s+0\.0\.0\.0\s+(?P<gw>\S+)", re.MULTILINE)

_PATTERNS = {
    "linux": _LINUX_RE,
    "darwin": _DARWIN_RE,
    "windows": _WINDOWS_RE,
}


def parse_default_gateway(output: str, system: str) -> str | None:
    """Pick the first usable IPv4 default gateway out of route command output."""
    pattern = _PATTERNS.get(system.lower())
    if pattern is None:
        return None

    for match in pattern.finditer(output):
        gateway = match.group("gw")
        # On-link routes have no next hop
        if valid_ipv4(gateway) and gateway != "0.0.0.0":
            return gateway
    return None


def discover_gateway(system: str | None = None) -> str | None:
    """Ask the routing table for the default gateway. Returns None when there is none."""
    system = (system or platform.system()).lower()
    cmd = _COMMANDS.get(system)
    if cmd is None:
        logger.debug(f"No gateway discovery for platform {system}")
        return None

    try:
        output = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=ROUTE_COMMAND_TIMEOUT_S,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"{' '.join(cmd)} timed out after {ROUTE_COMMAND_TIMEOUT_S}s")
        return None
    except OSError as e:
        logger.warning(f"Could not run {cmd[0]}: {e}")
        return None

    gateway = parse_default_gateway(output.stdout, system)
    logger.debug(f"Default gateway: {gateway or 'none'}")
    return gateway
