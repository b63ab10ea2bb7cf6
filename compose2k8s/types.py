"""
Type definitions for compose2k8s.

These dataclasses represent the normalized Docker Compose model, the
analysis derived from it, and the generated Kubernetes output.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import PortSpecError


class Protocol(str, Enum):
    """Port protocol."""
    TCP = "tcp"
    UDP = "udp"


class MountType(str, Enum):
    """Compose volume mount type."""
    BIND = "bind"
    VOLUME = "volume"
    TMPFS = "tmpfs"


class ServiceCategory(str, Enum):
    """Semantic role inferred for a service."""
    WEB = "web"
    API = "api"
    DATABASE = "database"
    CACHE = "cache"
    QUEUE = "queue"
    WORKER = "worker"
    PROXY = "proxy"
    OTHER = "other"


class WorkloadType(str, Enum):
    """Kubernetes workload kind."""
    DEPLOYMENT = "Deployment"
    STATEFULSET = "StatefulSet"


class VolumeClassification(str, Enum):
    """Kubernetes storage strategy for a mount."""
    CONFIGMAP = "configmap"
    SECRET = "secret"
    PVC = "pvc"
    EMPTYDIR = "emptydir"


_IPV4_RE = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


def _validate_port(raw: str, spec: Any) -> int:
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise PortSpecError(
            f"Invalid port number: {raw!r} in {spec!r} is not a valid integer"
        ) from None
    if value < 1 or value > 65535:
        raise PortSpecError(f"Port number out of range: {value} (must be 1-65535)")
    return value


@dataclass(frozen=True)
class ComposePort:
    """Container port with optional published (host) port."""
    target: int
    published: Optional[int] = None
    protocol: Protocol = Protocol.TCP

    @classmethod
    def parse(cls, port_spec: Any) -> "ComposePort":
        """
        Parse port specification from docker-compose format.

        Accepts ``80``, ``"8080:80"``, ``"127.0.0.1:8080:80/udp"`` and the
        long object form.

        Raises:
            PortSpecError: If the port is malformed or out of range
        """
        if isinstance(port_spec, int):
            return cls(target=_validate_port(str(port_spec), port_spec))

        if isinstance(port_spec, dict):
            published = port_spec.get("published")
            protocol = port_spec.get("protocol") or "tcp"
            if protocol not in ("tcp", "udp"):
                raise PortSpecError(f"Invalid port protocol: {protocol!r} (must be tcp or udp)")
            return cls(
                target=_validate_port(port_spec["target"], port_spec),
                published=_validate_port(published, port_spec) if published not in (None, "") else None,
                protocol=Protocol(protocol),
            )

        # String format: "80", "8080:80", "ip:8080:80", optionally "/udp"
        port_str = str(port_spec).strip()
        protocol = "tcp"
        if "/" in port_str:
            port_str, protocol = port_str.rsplit("/", 1)
            if protocol not in ("tcp", "udp"):
                raise PortSpecError(
                    f"Invalid port protocol: {protocol!r} in {port_spec!r} (must be tcp or udp)"
                )

        if port_str.startswith("["):
            # IPv6 binding: "[::1]:8080:80"
            close = port_str.find("]")
            rest = port_str[close + 1:] if close != -1 else ""
            if not rest.startswith(":") or len(rest[1:].split(":")) != 2:
                raise PortSpecError(
                    f"Invalid port mapping: {port_spec!r} (3-segment format requires IP:published:target)"
                )
            segments = [port_str[:close + 1]] + rest[1:].split(":")
        else:
            segments = port_str.split(":")

        if len(segments) == 3:
            ip, published, target = segments
            if not (_IPV4_RE.match(ip) or ip.startswith("[")):
                raise PortSpecError(
                    f"Invalid port mapping: {port_spec!r} (3-segment format requires IP:published:target)"
                )
            return cls(
                target=_validate_port(target, port_spec),
                published=_validate_port(published, port_spec) if published else None,
                protocol=Protocol(protocol),
            )

        if len(segments) == 2:
            return cls(
                target=_validate_port(segments[1], port_spec),
                published=_validate_port(segments[0], port_spec),
                protocol=Protocol(protocol),
            )

        if len(segments) == 1:
            return cls(target=_validate_port(segments[0], port_spec), protocol=Protocol(protocol))

        raise PortSpecError(f"Invalid port mapping: {port_spec!r}")


@dataclass(frozen=True)
class ComposeVolumeMount:
    """Volume mount configuration. An empty source on a volume is anonymous."""
    source: str
    target: str
    read_only: bool = False
    type: MountType = MountType.VOLUME

    @property
    def is_anonymous(self) -> bool:
        return self.type == MountType.VOLUME and self.source == ""

    @classmethod
    def parse(cls, volume_spec: Any, top_level_volumes: frozenset = frozenset()) -> "ComposeVolumeMount":
        """
        Parse volume specification from docker-compose format.

        Short-syntax sources are disambiguated using the declared top-level
        volume names: declared names are volumes, paths starting with
        ``.``, ``/`` or ``~`` are binds, anything else defaults to a volume.
        """
        if isinstance(volume_spec, dict):
            return cls(
                source=volume_spec.get("source") or "",
                target=volume_spec["target"],
                read_only=bool(volume_spec.get("read_only", False)),
                type=MountType(volume_spec.get("type") or "volume"),
            )

        parts = str(volume_spec).split(":")
        if len(parts) == 1:
            # Anonymous volume: "/data"
            return cls(source="", target=parts[0])

        source = parts[0]
        target = parts[1]
        read_only = len(parts) >= 3 and "ro" in parts[2].split(",")

        if source in top_level_volumes:
            vol_type = MountType.VOLUME
        elif source.startswith((".", "/", "~")):
            vol_type = MountType.BIND
        else:
            vol_type = MountType.VOLUME

        return cls(source=source, target=target, read_only=read_only, type=vol_type)


@dataclass(frozen=True)
class HealthCheck:
    """Container health check configuration."""
    test: Tuple[str, ...] = ()
    interval: Optional[str] = None
    timeout: Optional[str] = None
    retries: Optional[int] = None
    start_period: Optional[str] = None
    disable: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["HealthCheck"]:
        """Parse from docker-compose healthcheck format."""
        if not data:
            return None

        test = data.get("test", [])
        if isinstance(test, str):
            test = ["CMD-SHELL", test]

        return cls(
            test=tuple(test),
            interval=data.get("interval"),
            timeout=data.get("timeout"),
            retries=data.get("retries"),
            start_period=data.get("start_period"),
            disable=bool(data.get("disable", False)) or list(test[:1]) == ["NONE"],
        )


@dataclass(frozen=True)
class ResourceLimits:
    """CPU/memory pair from deploy.resources."""
    cpus: Optional[str] = None
    memory: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["ResourceLimits"]:
        """Parse from docker-compose deploy.resources format."""
        if not data:
            return None

        return cls(
            cpus=str(data.get("cpus")) if data.get("cpus") is not None else None,
            memory=data.get("memory"),
        )


@dataclass(frozen=True)
class DeployConfig:
    """Deployment configuration from docker-compose."""
    replicas: Optional[int] = None
    limits: Optional[ResourceLimits] = None
    reservations: Optional[ResourceLimits] = None
    restart_condition: Optional[str] = None

    @property
    def has_resources(self) -> bool:
        return self.limits is not None or self.reservations is not None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["DeployConfig"]:
        """Parse from docker-compose deploy format."""
        if not data:
            return None

        resources = data.get("resources") or {}
        restart = data.get("restart_policy") or {}

        return cls(
            replicas=data.get("replicas"),
            limits=ResourceLimits.from_dict(resources.get("limits")),
            reservations=ResourceLimits.from_dict(resources.get("reservations")),
            restart_condition=restart.get("condition"),
        )


@dataclass(frozen=True)
class ComposeService:
    """Normalized docker-compose service."""
    name: str
    image: Optional[str] = None
    build: Optional[Dict[str, Any]] = None
    command: Optional[Any] = None  # str or list of words
    entrypoint: Optional[Any] = None  # str or list of words
    environment: Dict[str, str] = field(default_factory=dict)
    ports: Tuple[ComposePort, ...] = ()
    volumes: Tuple[ComposeVolumeMount, ...] = ()
    depends_on: Dict[str, str] = field(default_factory=dict)  # name -> condition
    labels: Dict[str, str] = field(default_factory=dict)
    networks: Tuple[str, ...] = ()
    healthcheck: Optional[HealthCheck] = None
    deploy: Optional[DeployConfig] = None
    working_dir: Optional[str] = None
    user: Optional[str] = None
    restart: Optional[str] = None


@dataclass(frozen=True)
class ComposeProject:
    """Parsed docker-compose project. Built once per conversion."""
    services: Dict[str, ComposeService] = field(default_factory=dict)
    volumes: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict)
    networks: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict)
    version: Optional[str] = None


@dataclass(frozen=True)
class ParseResult:
    """Normalized project plus the warnings collected while parsing."""
    project: ComposeProject
    warnings: List[str] = field(default_factory=list)
    source_file: str = ""


# ============================================================================
# Analysis
# ============================================================================

@dataclass(frozen=True)
class DependencyGraph:
    """Start-order dependency graph."""
    edges: Dict[str, List[str]]
    order: List[str]
    has_cycles: bool
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnalyzedVolume:
    """Mount with its storage classification."""
    mount: ComposeVolumeMount
    classification: VolumeClassification
    suggested_name: str


@dataclass(frozen=True)
class AnalyzedPort:
    """Container port exposed by a service."""
    container_port: int
    protocol: Protocol = Protocol.TCP
    published_port: Optional[int] = None


@dataclass(frozen=True)
class AnalyzedEnvVar:
    """Environment variable with its sensitivity verdict."""
    name: str
    value: str
    sensitive: bool


@dataclass(frozen=True)
class AnalyzedService:
    """Per-service analysis. Derived from a ComposeService and never mutated."""
    name: str
    service: ComposeService
    category: ServiceCategory
    workload_type: WorkloadType
    volumes: Tuple[AnalyzedVolume, ...] = ()
    ports: Tuple[AnalyzedPort, ...] = ()
    env_vars: Tuple[AnalyzedEnvVar, ...] = ()
    depends_on: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisResult:
    """Everything the generator needs to know about a project."""
    services: Dict[str, AnalyzedService]
    dependency_graph: DependencyGraph
    warnings: List[str] = field(default_factory=list)


# ============================================================================
# Generator output
# ============================================================================

K8sManifest = Dict[str, Any]


@dataclass
class GeneratedManifest:
    """A single Kubernetes object and the file it should be written to."""
    filename: str
    manifest: K8sManifest
    service_name: str
    description: str


@dataclass
class MigrationScript:
    """Helper shell script for moving data out of compose."""
    filename: str
    content: str
    service_name: str
    description: str


@dataclass
class GeneratorOutput:
    """Result of a conversion, consumed by the writer."""
    manifests: List[GeneratedManifest] = field(default_factory=list)
    migration_scripts: List[MigrationScript] = field(default_factory=list)
    readme: str = ""
    warnings: List[str] = field(default_factory=list)
