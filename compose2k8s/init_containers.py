"""
Readiness gating through init containers.

Each selected dependency gets a ``wait-for-<dep>`` init container that
blocks the pod until the dependency answers.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .classifiers import image_basename
from .k8s_names import to_k8s_name
from .types import AnalyzedService, ServiceCategory

GENERIC_WAIT_IMAGE = "busybox:1.37"

# Attempts before giving up, with SLEEP_SECONDS between them.
MAX_RETRIES = 150
SLEEP_SECONDS = 2

CATEGORY_DEFAULT_PORTS: Mapping[ServiceCategory, int] = MappingProxyType({
    ServiceCategory.DATABASE: 5432,
    ServiceCategory.CACHE: 6379,
    ServiceCategory.QUEUE: 5672,
    ServiceCategory.WEB: 80,
    ServiceCategory.PROXY: 80,
    ServiceCategory.API: 3000,
})


@dataclass(frozen=True)
class ReadinessCheck:
    """Native readiness command for an image family."""
    family: str
    default_port: int
    command: str  # formatted with host and port


# Matched by substring of the image basename, first hit wins.
READINESS_CHECKS: Tuple[ReadinessCheck, ...] = (
    ReadinessCheck("postgres", 5432, "pg_isready -h {host} -p {port} -q"),
    ReadinessCheck("mariadb", 3306, "mariadb-admin ping -h {host} -P {port} --silent"),
    ReadinessCheck("mysql", 3306, "mysqladmin ping -h {host} -P {port} --silent"),
    ReadinessCheck("redis", 6379, "redis-cli -h {host} -p {port} ping | grep -q PONG"),
    ReadinessCheck(
        "mongo", 27017, "mongosh --host {host} --port {port} --quiet --eval \"db.adminCommand('ping')\""
    ),
)


def find_readiness_check(image: Optional[str]) -> Optional[ReadinessCheck]:
    """Return the native check for an image, or None for unknown images."""
    basename = image_basename(image)
    if not basename:
        return None
    for check in READINESS_CHECKS:
        if check.family in basename:
            return check
    return None


def dependency_port(dep: Optional[AnalyzedService], check: Optional[ReadinessCheck] = None) -> int:
    """
    Port to probe on a dependency.

    First declared port, else the image family default, else the
    category default, else 80.
    """
    if dep is not None and dep.ports:
        return dep.ports[0].container_port
    if check:
        return check.default_port
    if dep is not None and dep.category in CATEGORY_DEFAULT_PORTS:
        return CATEGORY_DEFAULT_PORTS[dep.category]
    return 80


def wait_script(check_command: str, dep_name: str) -> str:
    """Wrap a check in a bounded retry loop that fails with a timeout message."""
    return (
        f"i=0; until {check_command}; do i=$((i+1)); "
        f"if [ $i -ge {MAX_RETRIES} ]; then "
        f'echo "Timeout waiting for {dep_name} after {MAX_RETRIES} attempts"; exit 1; fi; '
        f'echo "Waiting for {dep_name}... ($i/{MAX_RETRIES})"; sleep {SLEEP_SECONDS}; done'
    )


def build_init_container(dep_name: str, dep: Optional[AnalyzedService]) -> Dict[str, Any]:
    """
    Build the wait container for one dependency.

    Recognized images wait with their own CLI inside their own image,
    anything else gets a TCP check from busybox.
    """
    host = to_k8s_name(dep_name)
    image = dep.service.image if dep else None
    check = find_readiness_check(image)
    port = dependency_port(dep, check)

    if check:
        command = check.command.format(host=host, port=port)
        container_image = image
    else:
        command = f"nc -z {host} {port}"
        container_image = GENERIC_WAIT_IMAGE

    return {
        "name": f"wait-for-{host}",
        "image": container_image,
        "command": ["sh", "-c", wait_script(command, dep_name)],
    }


def generate_init_containers(
    analyzed: AnalyzedService,
    selected_services: List[str],
    all_services: Mapping[str, AnalyzedService],
) -> List[Dict[str, Any]]:
    """
    Generate init containers for every selected, existing dependency.

    Args:
        analyzed: Service whose pod is gated
        selected_services: Services being converted
        all_services: Every analyzed service by name

    Returns:
        List of init container dicts in depends_on order
    """
    containers = []
    for dep_name in analyzed.depends_on:
        if dep_name not in selected_services or dep_name not in all_services:
            continue
        containers.append(build_init_container(dep_name, all_services[dep_name]))
    return containers


def unreachable_dependencies(
    analyzed: AnalyzedService,
    selected_services: List[str],
    all_services: Mapping[str, AnalyzedService],
) -> List[str]:
    """
    Selected dependencies that get a wait container but no Service.

    A dependency without declared ports gets no Service, so its host name
    never resolves and the wait container runs until it times out.
    """
    return [
        dep_name
        for dep_name in analyzed.depends_on
        if dep_name in selected_services
        and dep_name in all_services
        and not all_services[dep_name].ports
    ]
