"""
Kubernetes manifest generators for Docker Compose projects.

Converts analyzed compose services to Deployment, StatefulSet, Service,
PersistentVolumeClaim, ConfigMap and Secret manifests.
"""

import logging
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .config import Configuration, EnvClassification, ExposureType, InitContainerMode
from .container import build_container_spec, build_pod_spec, env_classification_for
from .init_containers import unreachable_dependencies
from .k8s_names import selector_labels, standard_labels, to_k8s_name
from .migrations import generate_migration_scripts
from .readme import generate_readme
from .routing import generate_routing
from .types import (
    AnalysisResult,
    AnalyzedService,
    AnalyzedVolume,
    GeneratedManifest,
    GeneratorOutput,
    K8sManifest,
    Protocol,
    VolumeClassification,
    WorkloadType,
)

logger = logging.getLogger(__name__)

SECRET_PLACEHOLDER = "REPLACE_ME"

# Kubernetes ConfigMap size limit
MAX_CONFIGMAP_SIZE = 1024 * 1024

DEPLOYMENT_PVC_SIZE = "1Gi"
STATEFULSET_PVC_SIZE = "10Gi"


def _metadata(name: str, service_name: str, config: Configuration) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"name": name}
    if config.deploy.namespace:
        metadata["namespace"] = config.deploy.namespace
    metadata["labels"] = standard_labels(service_name)
    return metadata


def _replicas(analyzed: AnalyzedService) -> Optional[int]:
    deploy = analyzed.service.deploy
    if deploy is None or deploy.replicas is None or deploy.replicas == 1:
        return None
    return deploy.replicas


def _service_ports(analyzed: AnalyzedService) -> List[Dict[str, Any]]:
    ports = []
    for p in analyzed.ports:
        port: Dict[str, Any] = {"name": f"{p.protocol.value}-{p.container_port}", "port": p.container_port}
        if p.protocol != Protocol.TCP:
            port["protocol"] = p.protocol.value.upper()
        ports.append(port)
    return ports


def _pvc_spec(vol_name: str, config: Configuration, default_size: str) -> Dict[str, Any]:
    storage = config.storage_for(vol_name)
    spec: Dict[str, Any] = {
        "accessModes": [storage.access_mode if storage else "ReadWriteOnce"],
        "resources": {
            "requests": {
                "storage": storage.size if storage else default_size,
            },
        },
    }
    if storage and storage.storage_class:
        spec["storageClassName"] = storage.storage_class
    return spec


def generate_deployment(
    analyzed: AnalyzedService,
    config: Configuration,
    all_services: Mapping[str, AnalyzedService],
) -> GeneratedManifest:
    """
    Generate a Deployment for a stateless service.

    Args:
        analyzed: Analyzed service
        config: Conversion configuration
        all_services: Every analyzed service (for init containers)

    Returns:
        GeneratedManifest
    """
    name = to_k8s_name(analyzed.name)
    selector = selector_labels(analyzed.name)
    container = build_container_spec(analyzed, config, all_services)

    spec: Dict[str, Any] = {}
    replicas = _replicas(analyzed)
    if replicas is not None:
        spec["replicas"] = replicas
    spec["selector"] = {"matchLabels": selector}
    spec["template"] = {
        "metadata": {"labels": {**standard_labels(analyzed.name), **selector}},
        "spec": build_pod_spec(container, config),
    }

    manifest: K8sManifest = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(name, analyzed.name, config),
        "spec": spec,
    }

    return GeneratedManifest(
        filename=f"{name}-deployment.yaml",
        manifest=manifest,
        service_name=analyzed.name,
        description=f"Deployment for {analyzed.name}",
    )


def generate_statefulset(
    analyzed: AnalyzedService,
    config: Configuration,
    all_services: Mapping[str, AnalyzedService],
) -> List[GeneratedManifest]:
    """
    Generate a StatefulSet and, when the service has ports, its headless Service.

    Persistent volumes become volumeClaimTemplates instead of pod volumes.
    """
    name = to_k8s_name(analyzed.name)
    selector = selector_labels(analyzed.name)
    container = build_container_spec(analyzed, config, all_services)

    # PVC volumes move to volumeClaimTemplates
    container.volumes = [v for v in container.volumes if "persistentVolumeClaim" not in v]
    claim_templates = []
    for vol in analyzed.volumes:
        if vol.classification != VolumeClassification.PVC:
            continue
        vol_name = to_k8s_name(vol.suggested_name)
        claim_templates.append({
            "metadata": {"name": vol_name},
            "spec": _pvc_spec(vol_name, config, STATEFULSET_PVC_SIZE),
        })

    spec: Dict[str, Any] = {"serviceName": f"{name}-headless"}
    replicas = _replicas(analyzed)
    if replicas is not None:
        spec["replicas"] = replicas
    spec["selector"] = {"matchLabels": selector}
    spec["template"] = {
        "metadata": {"labels": {**standard_labels(analyzed.name), **selector}},
        "spec": build_pod_spec(container, config),
    }
    if claim_templates:
        spec["volumeClaimTemplates"] = claim_templates

    results = [
        GeneratedManifest(
            filename=f"{name}-statefulset.yaml",
            manifest={
                "apiVersion": "apps/v1",
                "kind": "StatefulSet",
                "metadata": _metadata(name, analyzed.name, config),
                "spec": spec,
            },
            service_name=analyzed.name,
            description=f"StatefulSet for {analyzed.name}",
        )
    ]

    if analyzed.ports:
        results.append(GeneratedManifest(
            filename=f"{name}-headless-service.yaml",
            manifest={
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": _metadata(f"{name}-headless", analyzed.name, config),
                "spec": {
                    "clusterIP": "None",
                    "selector": selector,
                    "ports": _service_ports(analyzed),
                },
            },
            service_name=analyzed.name,
            description=f"Headless Service for {analyzed.name} StatefulSet",
        ))

    return results


def generate_service(
    analyzed: AnalyzedService,
    config: Configuration,
) -> Optional[GeneratedManifest]:
    """
    Generate a Service for a compose service.

    Returns:
        GeneratedManifest or None if the service declares no ports
    """
    if not analyzed.ports:
        return None

    name = to_k8s_name(analyzed.name)
    exposure = config.service_exposures.get(analyzed.name)
    exposure_type = exposure.type if exposure else ExposureType.CLUSTER_IP

    ports = _service_ports(analyzed)
    if exposure_type == ExposureType.NODE_PORT and exposure.node_port is not None:
        for port in ports:
            port["nodePort"] = exposure.node_port

    spec: Dict[str, Any] = {}
    # ClusterIP and Ingress-routed services keep the Kubernetes default type
    if exposure_type in (ExposureType.NODE_PORT, ExposureType.LOAD_BALANCER):
        spec["type"] = exposure_type.value
    spec["selector"] = selector_labels(analyzed.name)
    spec["ports"] = ports

    return GeneratedManifest(
        filename=f"{name}-service.yaml",
        manifest={
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": _metadata(name, analyzed.name, config),
            "spec": spec,
        },
        service_name=analyzed.name,
        description=f"Service for {analyzed.name}",
    )


def generate_pvc(
    analyzed: AnalyzedService,
    volume: AnalyzedVolume,
    config: Configuration,
) -> GeneratedManifest:
    """Generate a standalone PersistentVolumeClaim for a Deployment volume."""
    vol_name = to_k8s_name(volume.suggested_name)
    return GeneratedManifest(
        filename=f"{vol_name}-pvc.yaml",
        manifest={
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": _metadata(vol_name, analyzed.name, config),
            "spec": _pvc_spec(vol_name, config, DEPLOYMENT_PVC_SIZE),
        },
        service_name=analyzed.name,
        description=f"PersistentVolumeClaim for {analyzed.name}: {volume.mount.target}",
    )


def read_config_source(
    source: str,
    service_name: str,
    base_dir: Path,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Read a bind-mounted config file for embedding in a ConfigMap.

    Returns:
        Tuple of (content or None, warning or None)
    """
    path = Path(source).expanduser()
    if not path.is_absolute():
        path = base_dir / path

    if not path.is_file():
        return None, f"Config file not found: {source} (for {service_name}). Using placeholder."

    size = path.stat().st_size
    if size > MAX_CONFIGMAP_SIZE:
        return None, (
            f"Config file too large: {source} ({size / 1024 / 1024:.1f}MB) exceeds "
            f"Kubernetes 1MB ConfigMap limit. Using placeholder."
        )

    raw = path.read_bytes()
    if b"\x00" in raw:
        return None, f"Config file appears to be binary: {source} (for {service_name}). Using placeholder."

    return raw.decode("utf-8", errors="replace"), None


def generate_configmaps(
    analyzed: AnalyzedService,
    config: Configuration,
    base_dir: Path,
) -> Tuple[List[GeneratedManifest], List[str]]:
    """
    Generate file ConfigMaps (one per config mount) and the env ConfigMap.

    Returns:
        Tuple of (manifests, warnings)
    """
    manifests: List[GeneratedManifest] = []
    warnings: List[str] = []
    name = to_k8s_name(analyzed.name)

    for vol in analyzed.volumes:
        if vol.classification != VolumeClassification.CONFIGMAP:
            continue

        vol_name = to_k8s_name(vol.suggested_name)
        file_name = posixpath.basename(vol.mount.target.rstrip("/"))
        content = f"# TODO: Add content for {file_name}"

        if vol.mount.source:
            loaded, warning = read_config_source(vol.mount.source, analyzed.name, base_dir)
            if warning:
                logger.warning(warning)
                warnings.append(warning)
            if loaded is not None:
                content = loaded

        manifests.append(GeneratedManifest(
            filename=f"{name}-configmap-{vol_name}.yaml",
            manifest={
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": _metadata(f"{name}-{vol_name}", analyzed.name, config),
                "data": {file_name: content},
            },
            service_name=analyzed.name,
            description=f"ConfigMap for {analyzed.name} file: {file_name}",
        ))

    classification = env_classification_for(analyzed, config)
    env_data = {
        var.name: var.value
        for var in analyzed.env_vars
        if classification[var.name] == EnvClassification.CONFIGMAP
    }
    if env_data:
        manifests.append(GeneratedManifest(
            filename=f"{name}-configmap-env.yaml",
            manifest={
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": _metadata(f"{name}-env", analyzed.name, config),
                "data": env_data,
            },
            service_name=analyzed.name,
            description=f"Environment ConfigMap for {analyzed.name}",
        ))

    return manifests, warnings


def generate_secrets(
    analyzed: AnalyzedService,
    config: Configuration,
) -> List[GeneratedManifest]:
    """
    Generate the env Secret and one Secret per secret mount.

    Values are always the REPLACE_ME placeholder; real values are never
    written out.
    """
    manifests: List[GeneratedManifest] = []
    name = to_k8s_name(analyzed.name)

    classification = env_classification_for(analyzed, config)
    secret_data = {
        var.name: SECRET_PLACEHOLDER
        for var in analyzed.env_vars
        if classification[var.name] == EnvClassification.SECRET
    }
    if secret_data:
        manifests.append(GeneratedManifest(
            filename=f"{name}-secret.yaml",
            manifest={
                "apiVersion": "v1",
                "kind": "Secret",
                "metadata": _metadata(f"{name}-secret", analyzed.name, config),
                "type": "Opaque",
                "stringData": secret_data,
            },
            service_name=analyzed.name,
            description=f"Secret for {analyzed.name} (replace {SECRET_PLACEHOLDER} with real values)",
        ))

    for vol in analyzed.volumes:
        if vol.classification != VolumeClassification.SECRET:
            continue

        vol_name = to_k8s_name(vol.suggested_name)
        file_name = posixpath.basename(vol.mount.target.rstrip("/")) or "secret-file"
        manifests.append(GeneratedManifest(
            filename=f"{name}-secret-{vol_name}.yaml",
            manifest={
                "apiVersion": "v1",
                "kind": "Secret",
                "metadata": _metadata(f"{name}-{vol_name}", analyzed.name, config),
                "type": "Opaque",
                "stringData": {file_name: SECRET_PLACEHOLDER},
            },
            service_name=analyzed.name,
            description=(
                f"File secret for {analyzed.name}: {file_name} "
                f"(replace {SECRET_PLACEHOLDER} with real content)"
            ),
        ))

    return manifests


def generate_manifests(
    analysis: AnalysisResult,
    config: Configuration,
    working_dir: Union[str, Path] = ".",
) -> GeneratorOutput:
    """
    Generate all Kubernetes manifests for the selected services.

    Args:
        analysis: Project analysis
        config: Conversion configuration
        working_dir: Compose project directory, for config file sources

    Returns:
        GeneratorOutput with manifests, migration scripts, README and warnings
    """
    manifests: List[GeneratedManifest] = []
    warnings: List[str] = []
    base_dir = Path(working_dir)

    for service_name in config.selected_services:
        analyzed = analysis.services.get(service_name)
        if analyzed is None:
            message = f'Service "{service_name}" not found in analysis.'
            logger.warning(message)
            warnings.append(message)
            continue

        workload_type = config.workload_overrides.get(service_name, analyzed.workload_type)
        logger.debug(f"Generating {workload_type.value} for {service_name}")

        if workload_type == WorkloadType.STATEFULSET:
            manifests.extend(generate_statefulset(analyzed, config, analysis.services))
        else:
            manifests.append(generate_deployment(analyzed, config, analysis.services))
            for vol in analyzed.volumes:
                if vol.classification == VolumeClassification.PVC:
                    manifests.append(generate_pvc(analyzed, vol, config))

        service = generate_service(analyzed, config)
        if service:
            manifests.append(service)

        configmaps, configmap_warnings = generate_configmaps(analyzed, config, base_dir)
        manifests.extend(configmaps)
        warnings.extend(configmap_warnings)

        manifests.extend(generate_secrets(analyzed, config))

        if config.init_containers == InitContainerMode.WAIT_FOR_PORT:
            for dep_name in unreachable_dependencies(analyzed, config.selected_services, analysis.services):
                message = (
                    f'"{service_name}" waits for "{dep_name}", which declares no ports and '
                    "gets no Service; the init container cannot reach it."
                )
                logger.warning(message)
                warnings.append(message)

    manifests.extend(generate_routing(config))

    migration_scripts = []
    if config.deploy.migration_scripts:
        migration_scripts = generate_migration_scripts(
            analysis, config.selected_services, config.deploy.namespace
        )

    logger.info(f"Generated {len(manifests)} manifests")

    return GeneratorOutput(
        manifests=manifests,
        migration_scripts=migration_scripts,
        readme=generate_readme(manifests, config, analysis.warnings + warnings),
        warnings=warnings,
    )
