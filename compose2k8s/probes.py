"""
Health check to Kubernetes probe conversion.
"""

import math
import re
from typing import Any, Dict, Optional, Sequence

from .types import AnalyzedPort, HealthCheck

DEFAULT_DURATION_SECONDS = 30

_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
}

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_RE = re.compile(r"^(?:\d+(?:\.\d+)?(?:ms|h|m|s))+$")

# curl [-flags ...] [http[s]://](localhost|127.0.0.1)[:port][/path]
_CURL_RE = re.compile(
    r"curl\s+(?:-[a-zA-Z]+\s+)*(https?://)?(?:localhost|127\.0\.0\.1)(?::(\d+))?(/[^\s\"'|;&]*)?"
)


def parse_duration(duration: Optional[str]) -> int:
    """
    Parse a compose duration (``30s``, ``1m30s``, ``500ms``) to whole seconds.

    Sub-second positive values round up to 1. A bare number is seconds.
    Unparseable values fall back to 30.
    """
    if duration is None:
        return DEFAULT_DURATION_SECONDS

    text = str(duration).strip()
    if text.isdigit():
        return int(text)

    if not _DURATION_RE.match(text):
        return DEFAULT_DURATION_SECONDS

    total = sum(
        float(value) * _DURATION_UNITS[unit]
        for value, unit in _DURATION_PART_RE.findall(text)
    )
    if total <= 0:
        return 0
    return max(1, math.ceil(total))


def _probe_handler(test: Sequence[str], ports: Sequence[AnalyzedPort]) -> Dict[str, Any]:
    if test[0] == "CMD":
        return {"exec": {"command": list(test[1:])}}

    if test[0] == "CMD-SHELL":
        shell_cmd = " ".join(test[1:])
        match = _CURL_RE.search(shell_cmd)
        if match:
            scheme, port, path = match.groups()
            if port:
                probe_port = int(port)
            elif ports:
                probe_port = ports[0].container_port
            else:
                probe_port = 80
            http_get: Dict[str, Any] = {"path": path or "/", "port": probe_port}
            if scheme == "https://":
                http_get["scheme"] = "HTTPS"
            return {"httpGet": http_get}
        return {"exec": {"command": ["sh", "-c", shell_cmd]}}

    return {"exec": {"command": list(test)}}


def healthcheck_to_probes(
    healthcheck: Optional[HealthCheck],
    ports: Sequence[AnalyzedPort],
) -> Dict[str, Dict[str, Any]]:
    """
    Convert a compose healthcheck to liveness and readiness probes.

    Both probes share the handler and timing; only the liveness probe gets
    ``initialDelaySeconds`` from ``start_period``.

    Args:
        healthcheck: Normalized health check, if any
        ports: Service ports, used when a curl check has no explicit port

    Returns:
        ``{"livenessProbe": ..., "readinessProbe": ...}`` or an empty dict
    """
    if healthcheck is None or healthcheck.disable or not healthcheck.test:
        return {}
    if healthcheck.test[0] == "NONE":
        return {}

    probe = _probe_handler(healthcheck.test, ports)

    if healthcheck.interval:
        probe["periodSeconds"] = max(1, parse_duration(healthcheck.interval))
    if healthcheck.timeout:
        probe["timeoutSeconds"] = max(1, parse_duration(healthcheck.timeout))
    if healthcheck.retries:
        probe["failureThreshold"] = healthcheck.retries

    readiness = dict(probe)
    liveness = dict(probe)

    if healthcheck.start_period:
        liveness["initialDelaySeconds"] = parse_duration(healthcheck.start_period)

    return {"livenessProbe": liveness, "readinessProbe": readiness}
