"""
Docker Compose parser for compose2k8s.

Loads docker-compose files, interpolates variables, validates the result
against the supported schema and normalizes every service.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import ComposeParseError, ComposeValidationError
from .interpolate import interpolate_all, parse_env_file
from .normalize import normalize_service
from .schema import validate_compose
from .types import ComposeProject, ComposeService, ParseResult

logger = logging.getLogger(__name__)

COMPOSE_FILE_NAMES = [
    "compose.yaml",
    "compose.yml",
    "docker-compose.yml",
    "docker-compose.yaml",
]


def find_compose_file(directory: Union[str, Path]) -> Optional[Path]:
    """
    Find a compose file in a directory.

    Args:
        directory: Directory to search

    Returns:
        Path of the first match in COMPOSE_FILE_NAMES order, or None
    """
    for name in COMPOSE_FILE_NAMES:
        candidate = Path(directory) / name
        if candidate.is_file():
            return candidate
    return None


def load_yaml_document(content: str, source: str) -> Dict[str, Any]:
    """
    Parse YAML text that must contain a single mapping.

    Raises:
        ComposeParseError: If the YAML is malformed or not an object
    """
    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ComposeParseError(f"Failed to parse YAML in {source}: {e}") from e

    if not isinstance(raw, dict):
        raise ComposeParseError(
            f"Invalid compose file: {source} does not contain a valid YAML object"
        )
    return raw


def parse_compose_data(
    raw: Any,
    source: str = "<compose>",
    base_dir: Union[str, Path] = ".",
    env: Optional[Mapping[str, str]] = None,
) -> ParseResult:
    """
    Interpolate, validate and normalize an already loaded compose document.

    Args:
        raw: Loaded YAML document
        source: Name used in error messages
        base_dir: Project directory used to resolve env_file paths
        env: Variables available for interpolation

    Returns:
        ParseResult with the normalized project and warnings

    Raises:
        ComposeParseError: If the document is not an object
        ComposeValidationError: If the document violates the schema
        PortSpecError: If a port specification is invalid
    """
    if not isinstance(raw, dict):
        raise ComposeParseError(
            f"Invalid compose file: {source} does not contain a valid YAML object"
        )

    interpolated = interpolate_all(raw, env or {})

    errors = validate_compose(interpolated)
    if errors:
        raise ComposeValidationError(source, errors)

    top_level_volumes = frozenset((interpolated.get("volumes") or {}).keys())
    warnings: List[str] = []
    services: Dict[str, ComposeService] = {}

    for name, service_data in interpolated["services"].items():
        service, service_warnings = normalize_service(
            name, service_data or {}, top_level_volumes, Path(base_dir)
        )
        services[name] = service
        warnings.extend(service_warnings)

    version = interpolated.get("version")
    project = ComposeProject(
        services=services,
        volumes=dict(interpolated.get("volumes") or {}),
        networks=dict(interpolated.get("networks") or {}),
        version=str(version) if version is not None else None,
    )

    logger.info(f"Parsed {len(services)} services from {source}")
    return ParseResult(project=project, warnings=warnings, source_file=source)


def parse_compose_file(
    file: Union[str, Path],
    env_file: Optional[Union[str, Path]] = None,
    working_dir: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ParseResult:
    """
    Parse a Docker Compose file into a normalized ComposeProject.

    Variables come from ``environ`` (default: the process environment)
    overlaid with ``env_file`` or, when not given, the project's ``.env``.

    Args:
        file: Path to the compose file
        env_file: Optional explicit .env file
        working_dir: Project directory (default: compose file's directory)
        environ: Base variables for interpolation

    Returns:
        ParseResult

    Raises:
        FileNotFoundError: If the compose file does not exist
        ComposeParseError: If the file cannot be parsed or validated
    """
    compose_path = Path(file)
    if not compose_path.is_file():
        raise FileNotFoundError(f"Compose file not found: {compose_path}")

    base_dir = Path(working_dir) if working_dir else compose_path.resolve().parent

    env: Dict[str, str] = dict(os.environ if environ is None else environ)
    env_path = Path(env_file) if env_file else base_dir / ".env"
    if env_path.is_file():
        logger.debug(f"Loading variables from {env_path}")
        env.update(parse_env_file(env_path.read_text(encoding="utf-8")))
    elif env_file:
        raise FileNotFoundError(f"Env file not found: {env_path}")

    raw = load_yaml_document(compose_path.read_text(encoding="utf-8"), str(compose_path))
    return parse_compose_data(raw, source=str(compose_path), base_dir=base_dir, env=env)
