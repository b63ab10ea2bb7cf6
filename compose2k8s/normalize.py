"""
Normalization of docker-compose service fields.

Compose accepts several equivalent shapes for most fields. Each helper
here turns one field into its single canonical shape.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .interpolate import parse_env_file
from .types import (
    ComposePort,
    ComposeService,
    ComposeVolumeMount,
    DeployConfig,
    HealthCheck,
)

logger = logging.getLogger(__name__)

DEFAULT_DEPENDS_ON_CONDITION = "service_started"


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _split_key_values(entries: List[str]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for entry in entries:
        if "=" in entry:
            key, value = entry.split("=", 1)
            result[key] = value
        else:
            result[entry] = ""
    return result


def normalize_environment(env: Any) -> Dict[str, str]:
    """Normalize ``["KEY=VAL", "KEY"]`` or a mapping to ``{KEY: str}``."""
    if not env:
        return {}
    if isinstance(env, list):
        return _split_key_values(env)
    return {key: _stringify(value) for key, value in env.items()}


def normalize_labels(labels: Any) -> Dict[str, str]:
    """Normalize ``["k=v"]`` or a mapping to ``{k: str}``."""
    if not labels:
        return {}
    if isinstance(labels, list):
        return _split_key_values(labels)
    return {key: _stringify(value) for key, value in labels.items()}


def normalize_depends_on(depends_on: Any) -> Dict[str, str]:
    """Normalize a list of names or an explicit mapping to ``{name: condition}``."""
    if not depends_on:
        return {}
    if isinstance(depends_on, list):
        return {name: DEFAULT_DEPENDS_ON_CONDITION for name in depends_on}
    return {
        name: (entry or {}).get("condition") or DEFAULT_DEPENDS_ON_CONDITION
        for name, entry in depends_on.items()
    }


def normalize_ports(ports: Any) -> Tuple[ComposePort, ...]:
    """Parse every port specification. Raises PortSpecError on bad input."""
    return tuple(ComposePort.parse(p) for p in ports or [])


def normalize_volumes(volumes: Any, top_level_volumes: frozenset) -> Tuple[ComposeVolumeMount, ...]:
    """Parse every volume specification."""
    return tuple(ComposeVolumeMount.parse(v, top_level_volumes) for v in volumes or [])


def normalize_networks(service_name: str, networks: Any) -> Tuple[Tuple[str, ...], List[str]]:
    """
    Normalize networks to a tuple of names.

    Per-network settings (aliases, static addresses, ...) have no
    Kubernetes counterpart and are dropped with a warning.
    """
    warnings: List[str] = []
    if not networks:
        return (), warnings
    if isinstance(networks, list):
        return tuple(networks), warnings

    for net_name, net_config in networks.items():
        if isinstance(net_config, dict) and net_config:
            message = (
                f'Network configuration for "{service_name}" on network '
                f'"{net_name}" is not supported and will be ignored'
            )
            logger.warning(message)
            warnings.append(message)
    return tuple(networks.keys()), warnings


def normalize_command(value: Any) -> Optional[Any]:
    """Keep string commands as-is (tokenized later) and lists as lists of str."""
    if value is None:
        return None
    if isinstance(value, list):
        return [str(v) for v in value]
    return str(value)


def _env_file_entries(env_file: Any) -> List[Tuple[str, bool]]:
    if not env_file:
        return []
    entries = env_file if isinstance(env_file, list) else [env_file]
    result = []
    for entry in entries:
        if isinstance(entry, dict):
            result.append((entry["path"], bool(entry.get("required", True))))
        else:
            result.append((str(entry), True))
    return result


def load_env_files(
    service_name: str,
    env_file: Any,
    base_dir: Path,
) -> Tuple[Dict[str, str], List[str]]:
    """
    Load a service's env_file entries relative to the project directory.

    Later files override earlier ones by key. Paths resolving outside
    ``base_dir`` and missing files are skipped with a warning.

    Returns:
        Tuple of (merged variables, warnings)
    """
    merged: Dict[str, str] = {}
    warnings: List[str] = []
    root = base_dir.resolve()

    for rel_path, required in _env_file_entries(env_file):
        full_path = (root / rel_path).resolve()
        try:
            full_path.relative_to(root)
        except ValueError:
            message = (
                f'env_file path escapes compose directory for service '
                f'"{service_name}": {rel_path} (skipped)'
            )
            logger.warning(message)
            warnings.append(message)
            continue

        if not full_path.is_file():
            if required:
                message = f'env_file not found for service "{service_name}": {rel_path}'
                logger.warning(message)
                warnings.append(message)
            continue

        logger.debug(f"Loading env_file {full_path} for {service_name}")
        merged.update(parse_env_file(full_path.read_text(encoding="utf-8")))

    return merged, warnings


def normalize_service(
    name: str,
    data: Dict[str, Any],
    top_level_volumes: frozenset,
    base_dir: Path,
) -> Tuple[ComposeService, List[str]]:
    """
    Build the canonical ComposeService for one validated service entry.

    env_file contents form the base layer; explicit ``environment`` entries
    override them.

    Returns:
        Tuple of (service, warnings)
    """
    warnings: List[str] = []

    env_from_files, env_warnings = load_env_files(name, data.get("env_file"), base_dir)
    warnings.extend(env_warnings)

    environment = dict(env_from_files)
    environment.update(normalize_environment(data.get("environment")))

    networks, net_warnings = normalize_networks(name, data.get("networks"))
    warnings.extend(net_warnings)

    build = data.get("build")
    if isinstance(build, str):
        build = {"context": build}

    user = data.get("user")

    service = ComposeService(
        name=name,
        image=data.get("image"),
        build=build,
        command=normalize_command(data.get("command")),
        entrypoint=normalize_command(data.get("entrypoint")),
        environment=environment,
        ports=normalize_ports(data.get("ports")),
        volumes=normalize_volumes(data.get("volumes"), top_level_volumes),
        depends_on=normalize_depends_on(data.get("depends_on")),
        labels=normalize_labels(data.get("labels")),
        networks=networks,
        healthcheck=HealthCheck.from_dict(data.get("healthcheck")),
        deploy=DeployConfig.from_dict(data.get("deploy")),
        working_dir=data.get("working_dir"),
        user=str(user) if user is not None else None,
        restart=data.get("restart"),
    )
    return service, warnings
