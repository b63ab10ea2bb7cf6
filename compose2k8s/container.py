"""
Container spec builder shared by Deployment and StatefulSet generators.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .config import (
    Configuration,
    EnvClassification,
    InitContainerMode,
    PodSecurityStandard,
    ResourceDefaults,
)
from .init_containers import generate_init_containers
from .k8s_names import to_k8s_name
from .probes import healthcheck_to_probes
from .types import AnalyzedService, AnalyzedVolume, VolumeClassification


@dataclass
class ContainerSpec:
    """Main container, its init containers and the pod volumes they use."""
    main: Dict[str, Any]
    init_containers: List[Dict[str, Any]] = field(default_factory=list)
    volumes: List[Dict[str, Any]] = field(default_factory=list)


def parse_shell_words(text: str) -> List[str]:
    """
    Split a command string into words.

    Handles single quotes, double quotes and backslash escapes (outside
    single quotes). Unterminated quotes run to the end of the input.
    """
    words: List[str] = []
    current: List[str] = []
    in_word = False
    in_single = False
    in_double = False
    escaped = False

    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\" and not in_single:
            escaped = True
            in_word = True
            continue
        if ch == "'" and not in_double:
            in_single = not in_single
            in_word = True
            continue
        if ch == '"' and not in_single:
            in_double = not in_double
            in_word = True
            continue
        if ch.isspace() and not in_single and not in_double:
            if in_word:
                words.append("".join(current))
                current = []
                in_word = False
            continue
        current.append(ch)
        in_word = True

    if in_word:
        words.append("".join(current))
    return words


def _command_words(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, list):
        return list(value)
    return parse_shell_words(value)


def convert_memory(memory: Optional[str]) -> Optional[str]:
    """Convert docker-compose memory format (``512m``, ``1g``) to K8s format."""
    if not memory:
        return None

    memory = str(memory).strip()

    # Already in K8s format
    if memory.endswith(("Ki", "Mi", "Gi", "Ti")):
        return memory

    lower = memory.lower()
    if lower.endswith("b") and len(lower) > 1 and not lower[-2].isdigit():
        lower = lower[:-1]  # 512mb -> 512m

    if lower.endswith("t"):
        return f"{lower[:-1]}Ti"
    if lower.endswith("g"):
        return f"{lower[:-1]}Gi"
    if lower.endswith("m"):
        return f"{lower[:-1]}Mi"
    if lower.endswith("k"):
        return f"{lower[:-1]}Ki"
    return memory


def convert_cpu(cpus: Optional[str]) -> Optional[str]:
    """Convert docker-compose CPU format (``0.5`` cores) to millicores."""
    if not cpus:
        return None

    cpus = str(cpus).strip()

    # Already in K8s format
    if cpus.endswith("m"):
        return cpus

    try:
        cores = float(cpus)
    except ValueError:
        return cpus
    return f"{int(round(cores * 1000))}m"


def build_resources(analyzed: AnalyzedService, config: Configuration) -> Dict[str, Any]:
    """
    Resource requests and limits for a service.

    A per-service override wins, then the compose ``deploy.resources``
    block, then the configured defaults.
    """
    override = config.resource_overrides.get(analyzed.name)
    deploy = analyzed.service.deploy

    if override is None and deploy is not None and deploy.has_resources:
        resources: Dict[str, Any] = {}
        if deploy.reservations:
            requests = {}
            if deploy.reservations.cpus:
                requests["cpu"] = convert_cpu(deploy.reservations.cpus)
            if deploy.reservations.memory:
                requests["memory"] = convert_memory(deploy.reservations.memory)
            if requests:
                resources["requests"] = requests
        if deploy.limits:
            limits = {}
            if deploy.limits.cpus:
                limits["cpu"] = convert_cpu(deploy.limits.cpus)
            if deploy.limits.memory:
                limits["memory"] = convert_memory(deploy.limits.memory)
            if limits:
                resources["limits"] = limits
        return resources

    defaults: ResourceDefaults = override or config.deploy.resource_defaults
    return {
        "requests": {"cpu": defaults.cpu_request, "memory": defaults.memory_request},
        "limits": {"cpu": defaults.cpu_limit, "memory": defaults.memory_limit},
    }


def build_pod_security_context(pss: PodSecurityStandard) -> Optional[Dict[str, Any]]:
    """Pod-level securityContext for the restricted profile."""
    if pss == PodSecurityStandard.RESTRICTED:
        return {
            "runAsNonRoot": True,
            "seccompProfile": {"type": "RuntimeDefault"},
        }
    return None


def build_container_security_context(pss: PodSecurityStandard) -> Optional[Dict[str, Any]]:
    """Container-level securityContext for baseline and restricted."""
    if pss in (PodSecurityStandard.BASELINE, PodSecurityStandard.RESTRICTED):
        return {
            "allowPrivilegeEscalation": False,
            "capabilities": {"drop": ["ALL"]},
        }
    return None


def _user_security_context(user: Optional[str]) -> Dict[str, Any]:
    """Map a numeric compose ``user: uid[:gid]`` to runAsUser/runAsGroup."""
    context: Dict[str, Any] = {}
    if not user:
        return context
    parts = user.split(":")
    if parts[0].isdigit():
        context["runAsUser"] = int(parts[0])
    if len(parts) > 1 and parts[1].isdigit():
        context["runAsGroup"] = int(parts[1])
    return context


def resolve_image(analyzed: AnalyzedService, config: Configuration) -> str:
    """Compose image, or ``[registry/]<name>:latest`` for build-only services."""
    if analyzed.service.image:
        return analyzed.service.image
    name = to_k8s_name(analyzed.name)
    if config.deploy.registry:
        return f"{config.deploy.registry.rstrip('/')}/{name}:latest"
    return f"{name}:latest"


def env_classification_for(
    analyzed: AnalyzedService,
    config: Configuration,
) -> Dict[str, EnvClassification]:
    """Per-variable storage choice, falling back to the secret detector."""
    overrides = config.env_classification.get(analyzed.name, {})
    result = {}
    for var in analyzed.env_vars:
        default = EnvClassification.SECRET if var.sensitive else EnvClassification.CONFIGMAP
        result[var.name] = EnvClassification(overrides.get(var.name, default))
    return result


def _volume_spec(vol_name: str, vol: AnalyzedVolume, k8s_name: str) -> Dict[str, Any]:
    if vol.classification == VolumeClassification.CONFIGMAP:
        return {"name": vol_name, "configMap": {"name": f"{k8s_name}-{vol_name}"}}
    if vol.classification == VolumeClassification.SECRET:
        return {"name": vol_name, "secret": {"secretName": f"{k8s_name}-{vol_name}"}}
    if vol.classification == VolumeClassification.EMPTYDIR:
        return {"name": vol_name, "emptyDir": {}}
    return {"name": vol_name, "persistentVolumeClaim": {"claimName": vol_name}}


def build_container_spec(
    analyzed: AnalyzedService,
    config: Configuration,
    all_services: Mapping[str, AnalyzedService],
) -> ContainerSpec:
    """
    Build the container definition and pod volumes for a service.

    Args:
        analyzed: Analyzed service
        config: Conversion configuration
        all_services: Every analyzed service, used for init containers

    Returns:
        ContainerSpec
    """
    k8s_name = to_k8s_name(analyzed.name)
    service = analyzed.service
    pss = config.deploy.pod_security_standard

    container: Dict[str, Any] = {
        "name": k8s_name,
        "image": resolve_image(analyzed, config),
        "imagePullPolicy": config.deploy.image_pull_policy,
    }

    command = _command_words(service.entrypoint)
    if command is not None:
        container["command"] = command
    args = _command_words(service.command)
    if args is not None:
        container["args"] = args

    if service.working_dir:
        container["workingDir"] = service.working_dir

    if analyzed.ports:
        container["ports"] = [
            {"containerPort": p.container_port, "protocol": p.protocol.value.upper()}
            for p in analyzed.ports
        ]

    # Environment: configmap vars in bulk, secret vars one by one
    classification = env_classification_for(analyzed, config)
    env = [
        {
            "name": name,
            "valueFrom": {"secretKeyRef": {"name": f"{k8s_name}-secret", "key": name}},
        }
        for name, kind in classification.items()
        if kind == EnvClassification.SECRET
    ]
    if env:
        container["env"] = env
    if any(kind == EnvClassification.CONFIGMAP for kind in classification.values()):
        container["envFrom"] = [{"configMapRef": {"name": f"{k8s_name}-env"}}]

    volume_mounts = []
    volumes = []
    for vol in analyzed.volumes:
        vol_name = to_k8s_name(vol.suggested_name)
        mount: Dict[str, Any] = {"name": vol_name, "mountPath": vol.mount.target}
        if vol.mount.read_only:
            mount["readOnly"] = True

        # Single-file mounts from a configmap/secret project one key
        target_base = vol.mount.target.rstrip("/").split("/")[-1]
        if "." in target_base and vol.classification in (
            VolumeClassification.CONFIGMAP,
            VolumeClassification.SECRET,
        ):
            mount["subPath"] = target_base

        volume_mounts.append(mount)
        volumes.append(_volume_spec(vol_name, vol, k8s_name))

    if volume_mounts:
        container["volumeMounts"] = volume_mounts

    container["resources"] = build_resources(analyzed, config)
    container.update(healthcheck_to_probes(service.healthcheck, analyzed.ports))

    security_context = _user_security_context(service.user)
    security_context.update(build_container_security_context(pss) or {})
    if security_context:
        container["securityContext"] = security_context

    init_containers: List[Dict[str, Any]] = []
    if config.init_containers == InitContainerMode.WAIT_FOR_PORT:
        init_containers = generate_init_containers(
            analyzed, config.selected_services, all_services
        )
        init_context = build_container_security_context(pss)
        if init_context:
            for init in init_containers:
                init["securityContext"] = dict(init_context)

    return ContainerSpec(main=container, init_containers=init_containers, volumes=volumes)


def build_pod_spec(spec: ContainerSpec, config: Configuration) -> Dict[str, Any]:
    """Assemble the pod spec around a ContainerSpec."""
    pod_spec: Dict[str, Any] = {}

    pod_context = build_pod_security_context(config.deploy.pod_security_standard)
    if pod_context:
        pod_spec["securityContext"] = pod_context
    if spec.init_containers:
        pod_spec["initContainers"] = spec.init_containers
    pod_spec["containers"] = [spec.main]
    if spec.volumes:
        pod_spec["volumes"] = spec.volumes
    if config.deploy.image_pull_secrets:
        pod_spec["imagePullSecrets"] = [{"name": s} for s in config.deploy.image_pull_secrets]

    return pod_spec
