"""
compose2k8s - Docker Compose to Kubernetes converter

Parses a compose project, classifies its services and volumes, and
generates Kubernetes manifests.
"""

__version__ = "0.1.0"

from .errors import (
    Compose2K8sError,
    ComposeParseError,
    ComposeValidationError,
    ConfigError,
    PortSpecError,
)

from .types import (
    AnalysisResult,
    ComposeProject,
    ComposeService,
    GeneratedManifest,
    GeneratorOutput,
)

from .parser import (
    parse_compose_data,
    parse_compose_file,
)

from .analyzer import analyze_project

from .config import (
    Configuration,
    generate_defaults,
    load_config_file,
)

from .generators import generate_manifests

from .output import (
    manifest_to_yaml,
    write_output,
)

__all__ = [
    # Errors
    "Compose2K8sError",
    "ComposeParseError",
    "ComposeValidationError",
    "ConfigError",
    "PortSpecError",
    # Types
    "AnalysisResult",
    "ComposeProject",
    "ComposeService",
    "GeneratedManifest",
    "GeneratorOutput",
    # Pipeline
    "parse_compose_data",
    "parse_compose_file",
    "analyze_project",
    "Configuration",
    "generate_defaults",
    "load_config_file",
    "generate_manifests",
    "manifest_to_yaml",
    "write_output",
]
