"""
Conversion configuration for compose2k8s.

The Configuration dataclass is the contract between whatever collects the
user's choices (defaults, a pre-answer YAML file) and the generators.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import ConfigError
from .k8s_names import to_k8s_name
from .schema import validate_config
from .types import AnalysisResult, ServiceCategory, VolumeClassification, WorkloadType

logger = logging.getLogger(__name__)


class EnvClassification(str, Enum):
    """Where an environment variable is stored."""
    CONFIGMAP = "configmap"
    SECRET = "secret"


class ExposureType(str, Enum):
    """How a service is reached."""
    CLUSTER_IP = "ClusterIP"
    NODE_PORT = "NodePort"
    LOAD_BALANCER = "LoadBalancer"
    INGRESS = "Ingress"


class RoutingMode(str, Enum):
    """External HTTP routing API."""
    INGRESS = "ingress"
    GATEWAY_API = "gateway-api"


class InitContainerMode(str, Enum):
    """Readiness gating strategy."""
    WAIT_FOR_PORT = "wait-for-port"
    NONE = "none"


class PodSecurityStandard(str, Enum):
    """Pod Security Standards profile."""
    NONE = "none"
    BASELINE = "baseline"
    RESTRICTED = "restricted"


@dataclass
class ServiceExposure:
    """Exposure choice for one service."""
    type: ExposureType = ExposureType.CLUSTER_IP
    node_port: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "ServiceExposure":
        return cls(
            type=ExposureType(data.get("type", "ClusterIP")),
            node_port=data.get("nodePort"),
        )


@dataclass
class IngressRoute:
    """Path routed to a service port."""
    service_name: str
    path: str = "/"
    port: int = 80

    @classmethod
    def from_dict(cls, data: Dict) -> "IngressRoute":
        return cls(
            service_name=data["service"],
            path=data.get("path", "/"),
            port=data.get("port", 80),
        )


@dataclass
class IngressConfig:
    """External routing configuration."""
    enabled: bool = False
    mode: RoutingMode = RoutingMode.INGRESS
    domain: Optional[str] = None
    tls: bool = False
    cert_manager: bool = False
    controller: str = "none"  # nginx, traefik, higress, none
    gateway_class: str = "istio"
    routes: List[IngressRoute] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "IngressConfig":
        """A present ``ingress`` section enables routing."""
        if data is None:
            return cls()
        return cls(
            enabled=True,
            mode=RoutingMode(data.get("mode", "ingress")),
            domain=data.get("domain"),
            tls=data.get("tls", False),
            cert_manager=data.get("certManager", False),
            controller=data.get("controller", "nginx"),
            gateway_class=data.get("gatewayClass", "istio"),
            routes=[IngressRoute.from_dict(r) for r in data.get("routes", [])],
        )


@dataclass
class StorageConfig:
    """Size and class for one persistent volume."""
    volume_name: str
    size: str = "1Gi"
    access_mode: str = "ReadWriteOnce"
    storage_class: str = ""

    @classmethod
    def from_dict(cls, data: Dict, base: Optional["StorageConfig"] = None) -> "StorageConfig":
        """Omitted fields keep the values of ``base`` (or the defaults)."""
        if base is None:
            base = cls(volume_name=to_k8s_name(data["volume"]))
        return cls(
            volume_name=base.volume_name,
            size=data.get("size", base.size),
            access_mode=data.get("accessMode", base.access_mode),
            storage_class=data.get("storageClass", base.storage_class),
        )


@dataclass
class ResourceDefaults:
    """CPU/memory requests and limits."""
    cpu_request: str = "100m"
    cpu_limit: str = "500m"
    memory_request: str = "128Mi"
    memory_limit: str = "512Mi"

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "ResourceDefaults":
        if not data:
            return cls()
        return cls(
            cpu_request=data.get("cpuRequest", "100m"),
            cpu_limit=data.get("cpuLimit", "500m"),
            memory_request=data.get("memoryRequest", "128Mi"),
            memory_limit=data.get("memoryLimit", "512Mi"),
        )


@dataclass
class DeployOptions:
    """Cluster-wide deployment settings."""
    namespace: str = "default"
    image_pull_policy: str = "IfNotPresent"
    image_pull_secrets: List[str] = field(default_factory=list)
    registry: Optional[str] = None
    output_format: str = "plain"  # plain or single-file
    output_dir: str = "./k8s"
    migration_scripts: bool = True
    pod_security_standard: PodSecurityStandard = PodSecurityStandard.NONE
    resource_defaults: ResourceDefaults = field(default_factory=ResourceDefaults)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "DeployOptions":
        if not data:
            return cls()
        return cls(
            namespace=data.get("namespace", "default"),
            image_pull_policy=data.get("imagePullPolicy", "IfNotPresent"),
            image_pull_secrets=list(data.get("imagePullSecrets", [])),
            registry=data.get("registry"),
            output_format=data.get("format", "plain"),
            output_dir=data.get("outputDir", "./k8s"),
            migration_scripts=data.get("migrationScripts", True),
            pod_security_standard=PodSecurityStandard(data.get("podSecurityStandard", "none")),
            resource_defaults=ResourceDefaults.from_dict(data.get("resources")),
        )


@dataclass
class Configuration:
    """Everything the generators need besides the analysis."""
    selected_services: List[str] = field(default_factory=list)
    workload_overrides: Dict[str, WorkloadType] = field(default_factory=dict)
    service_exposures: Dict[str, ServiceExposure] = field(default_factory=dict)
    ingress: IngressConfig = field(default_factory=IngressConfig)
    env_classification: Dict[str, Dict[str, EnvClassification]] = field(default_factory=dict)
    storage_config: List[StorageConfig] = field(default_factory=list)
    init_containers: InitContainerMode = InitContainerMode.WAIT_FOR_PORT
    resource_overrides: Dict[str, ResourceDefaults] = field(default_factory=dict)
    deploy: DeployOptions = field(default_factory=DeployOptions)

    def storage_for(self, volume_name: str) -> Optional[StorageConfig]:
        """Find the storage entry for a (sanitized) volume name."""
        for entry in self.storage_config:
            if entry.volume_name == volume_name:
                return entry
        return None

    @classmethod
    def from_dict(cls, data: Dict) -> "Configuration":
        """Parse the camelCase configuration file form without defaults merging."""
        return cls(
            selected_services=list(data.get("services", [])),
            workload_overrides={
                name: WorkloadType(kind) for name, kind in data.get("workloads", {}).items()
            },
            service_exposures={
                name: ServiceExposure.from_dict(e) for name, e in data.get("exposures", {}).items()
            },
            ingress=IngressConfig.from_dict(data.get("ingress")),
            env_classification={
                svc: {var: EnvClassification(c) for var, c in vars_.items()}
                for svc, vars_ in data.get("secrets", {}).items()
            },
            storage_config=[StorageConfig.from_dict(s) for s in data.get("storage", [])],
            init_containers=InitContainerMode(data.get("initContainers", "wait-for-port")),
            resource_overrides={
                name: ResourceDefaults.from_dict(r) for name, r in data.get("resources", {}).items()
            },
            deploy=DeployOptions.from_dict(data.get("deploy")),
        )


def generate_defaults(
    analysis: AnalysisResult,
    namespace: Optional[str] = None,
    output_dir: Optional[str] = None,
    output_format: Optional[str] = None,
) -> Configuration:
    """
    Build a non-interactive configuration from the analysis.

    Every service is selected, variables follow the secret detector and
    each persistent volume gets 10Gi (databases) or 1Gi.

    Args:
        analysis: Project analysis
        namespace: Target namespace (default: "default")
        output_dir: Output directory (default: ./k8s)
        output_format: plain or single-file (default: plain)

    Returns:
        Configuration
    """
    env_classification: Dict[str, Dict[str, EnvClassification]] = {}
    storage_config: List[StorageConfig] = []

    for name, svc in analysis.services.items():
        env_classification[name] = {
            var.name: EnvClassification.SECRET if var.sensitive else EnvClassification.CONFIGMAP
            for var in svc.env_vars
        }
        for vol in svc.volumes:
            if vol.classification != VolumeClassification.PVC:
                continue
            is_db = svc.category == ServiceCategory.DATABASE
            storage_config.append(StorageConfig(
                volume_name=to_k8s_name(vol.suggested_name),
                size="10Gi" if is_db else "1Gi",
            ))

    return Configuration(
        selected_services=list(analysis.services.keys()),
        env_classification=env_classification,
        storage_config=storage_config,
        deploy=DeployOptions(
            namespace=namespace or "default",
            output_dir=output_dir or "./k8s",
            output_format=output_format or "plain",
        ),
    )


def _warn(warnings: List[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)


def _resolve_services(
    data: Dict[str, Any],
    defaults: Configuration,
    analysis: AnalysisResult,
    warnings: List[str],
) -> List[str]:
    if "services" not in data:
        return defaults.selected_services

    valid = []
    for name in data["services"]:
        if name in analysis.services:
            valid.append(name)
        else:
            _warn(warnings, f'Unknown service "{name}" in config; skipping.')
    return valid or defaults.selected_services


def _resolve_secrets(
    data: Dict[str, Any],
    defaults: Configuration,
    analysis: AnalysisResult,
    warnings: List[str],
) -> Dict[str, Dict[str, EnvClassification]]:
    result = {svc: dict(vars_) for svc, vars_ in defaults.env_classification.items()}

    for svc_name, vars_ in (data.get("secrets") or {}).items():
        if svc_name not in analysis.services:
            _warn(warnings, f'Unknown service "{svc_name}" in secrets config; skipping.')
            continue

        known = {v.name for v in analysis.services[svc_name].env_vars}
        target = result.setdefault(svc_name, {})
        for var_name, classification in vars_.items():
            if var_name not in known:
                _warn(
                    warnings,
                    f'Unknown env var "{var_name}" for service "{svc_name}"; applying anyway.',
                )
            target[var_name] = EnvClassification(classification)

    return result


def _resolve_storage(data: Dict[str, Any], defaults: Configuration) -> List[StorageConfig]:
    result = list(defaults.storage_config)

    for item in data.get("storage") or []:
        volume_name = to_k8s_name(item["volume"])
        for i, existing in enumerate(result):
            if existing.volume_name == volume_name:
                result[i] = StorageConfig.from_dict(item, base=existing)
                break
        else:
            result.append(StorageConfig.from_dict(item))

    return result


def load_config_file(
    path: Union[str, Path],
    analysis: AnalysisResult,
) -> Tuple[Configuration, List[str]]:
    """
    Load a pre-answer configuration file and merge it over the defaults.

    Args:
        path: YAML configuration file
        analysis: Project analysis used for defaults and name checks

    Returns:
        Tuple of (Configuration, warnings)

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file is not valid YAML or violates the schema
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {config_path}: {e}") from e

    data = data or {}
    errors = validate_config(data)
    if errors:
        raise ConfigError(f"Invalid config file {config_path}", errors)

    warnings: List[str] = []
    defaults = generate_defaults(analysis)
    parsed = Configuration.from_dict(data)

    config = Configuration(
        selected_services=_resolve_services(data, defaults, analysis, warnings),
        workload_overrides=parsed.workload_overrides,
        service_exposures=parsed.service_exposures,
        ingress=parsed.ingress,
        env_classification=_resolve_secrets(data, defaults, analysis, warnings),
        storage_config=_resolve_storage(data, defaults),
        init_containers=parsed.init_containers,
        resource_overrides=parsed.resource_overrides,
        deploy=parsed.deploy,
    )

    logger.info(f"Loaded configuration from {config_path}")
    return config, warnings
