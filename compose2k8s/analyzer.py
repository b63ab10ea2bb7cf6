"""
Project analysis for compose2k8s.

Joins the classifiers and the dependency analysis into one AnalysisResult,
the only object handed to configuration and generation.
"""

import logging
from typing import Dict, List, Set

from .classifiers import (
    classify_volume,
    infer_service_category,
    infer_workload_type,
    is_sensitive_env_var,
)
from .dependency import analyze_dependencies
from .k8s_names import to_k8s_name
from .types import (
    AnalysisResult,
    AnalyzedEnvVar,
    AnalyzedPort,
    AnalyzedService,
    AnalyzedVolume,
    ComposeProject,
    ComposeService,
)

logger = logging.getLogger(__name__)


def _volume_base_name(service_name: str, target: str) -> str:
    last = [segment for segment in target.split("/") if segment]
    return to_k8s_name(f"{service_name}-{last[-1] if last else 'data'}")


def _analyze_volumes(name: str, service: ComposeService) -> List[AnalyzedVolume]:
    volumes: List[AnalyzedVolume] = []
    used: Set[str] = set()

    for mount in service.volumes:
        base = _volume_base_name(name, mount.target)
        suggested = base
        suffix = 2
        while suggested in used:
            suggested = to_k8s_name(f"{base}-{suffix}")
            suffix += 1
        used.add(suggested)

        volumes.append(AnalyzedVolume(
            mount=mount,
            classification=classify_volume(mount),
            suggested_name=suggested,
        ))
    return volumes


def analyze_service(name: str, service: ComposeService) -> AnalyzedService:
    """
    Classify a single service.

    Args:
        name: Compose service name
        service: Normalized service

    Returns:
        AnalyzedService
    """
    category = infer_service_category(name, service)
    workload_type = infer_workload_type(service, category)

    ports = tuple(
        AnalyzedPort(
            container_port=p.target,
            protocol=p.protocol,
            published_port=p.published,
        )
        for p in service.ports
    )

    env_vars = tuple(
        AnalyzedEnvVar(name=key, value=value, sensitive=is_sensitive_env_var(key, value))
        for key, value in service.environment.items()
    )

    logger.debug(f"Service {name}: category={category.value}, workload={workload_type.value}")

    return AnalyzedService(
        name=name,
        service=service,
        category=category,
        workload_type=workload_type,
        volumes=tuple(_analyze_volumes(name, service)),
        ports=ports,
        env_vars=env_vars,
        depends_on=tuple(service.depends_on.keys()),
    )


def analyze_project(project: ComposeProject) -> AnalysisResult:
    """
    Analyze a parsed compose project for Kubernetes conversion.

    Args:
        project: Normalized compose project

    Returns:
        AnalysisResult with per-service analysis, the dependency graph and
        every warning raised along the way
    """
    warnings: List[str] = []
    services: Dict[str, AnalyzedService] = {}

    for name, service in project.services.items():
        services[name] = analyze_service(name, service)

        if not service.image and service.build:
            message = (
                f'Service "{name}" uses build without image. You\'ll need to push '
                f"the image to a registry and set the image field."
            )
            logger.warning(message)
            warnings.append(message)

    graph = analyze_dependencies(project.services)
    warnings.extend(graph.warnings)

    logger.info(f"Analyzed {len(services)} services")
    return AnalysisResult(services=services, dependency_graph=graph, warnings=warnings)
