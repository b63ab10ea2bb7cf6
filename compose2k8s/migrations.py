"""
Data migration helper scripts.

For database services with a known image family, emits a shell script
that dumps the data from the running compose container and restores it
into the first pod of the Kubernetes workload.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .classifiers import image_basename
from .k8s_names import NAME_LABEL, to_k8s_name
from .types import AnalysisResult, MigrationScript, ServiceCategory


@dataclass(frozen=True)
class DumpStrategy:
    """Dump and restore commands run inside the database containers."""
    family: str
    dump: str
    restore: str


# Commands run under ``sh -c`` inside the containers, so credentials come
# from the containers' own environment and never appear in the script.
DUMP_STRATEGIES: Tuple[DumpStrategy, ...] = (
    DumpStrategy(
        "postgres",
        'pg_dump -U "${POSTGRES_USER:-postgres}" "${POSTGRES_DB:-${POSTGRES_USER:-postgres}}"',
        'psql -U "${POSTGRES_USER:-postgres}" "${POSTGRES_DB:-${POSTGRES_USER:-postgres}}"',
    ),
    DumpStrategy(
        "mariadb",
        'mariadb-dump -uroot -p"${MARIADB_ROOT_PASSWORD:-$MYSQL_ROOT_PASSWORD}" --all-databases',
        'mariadb -uroot -p"${MARIADB_ROOT_PASSWORD:-$MYSQL_ROOT_PASSWORD}"',
    ),
    DumpStrategy(
        "mysql",
        'mysqldump -uroot -p"$MYSQL_ROOT_PASSWORD" --all-databases',
        'mysql -uroot -p"$MYSQL_ROOT_PASSWORD"',
    ),
    DumpStrategy(
        "mongo",
        "mongodump --archive",
        "mongorestore --archive --drop",
    ),
)


def find_dump_strategy(image: Optional[str]) -> Optional[DumpStrategy]:
    """Return the dump strategy for an image, or None if unsupported."""
    basename = image_basename(image)
    if not basename:
        return None
    for strategy in DUMP_STRATEGIES:
        if strategy.family in basename:
            return strategy
    return None


def render_migration_script(
    service_name: str,
    strategy: DumpStrategy,
    namespace: str,
) -> str:
    """Render the bash script for one database service."""
    k8s_name = to_k8s_name(service_name)
    return f"""#!/usr/bin/env bash
# Migrate {strategy.family} data for "{service_name}" from docker compose to Kubernetes.
# Run from the compose project directory while both environments are up.
set -euo pipefail

NAMESPACE="${{NAMESPACE:-{namespace}}}"
COMPOSE_SERVICE="{service_name}"
DUMP_FILE="${{DUMP_FILE:-{k8s_name}-dump.out}}"

echo "Dumping data from compose service $COMPOSE_SERVICE..."
docker compose exec -T "$COMPOSE_SERVICE" sh -c '{strategy.dump}' > "$DUMP_FILE"

POD="$(kubectl get pods -n "$NAMESPACE" -l {NAME_LABEL}={k8s_name} \\
  -o jsonpath='{{.items[0].metadata.name}}')"
if [ -z "$POD" ]; then
  echo "No pod found for {k8s_name} in namespace $NAMESPACE" >&2
  exit 1
fi

echo "Restoring into pod $POD..."
kubectl exec -i -n "$NAMESPACE" "$POD" -- sh -c '{strategy.restore}' < "$DUMP_FILE"

echo "Migration of {service_name} complete."
"""


def generate_migration_scripts(
    analysis: AnalysisResult,
    selected_services: Sequence[str],
    namespace: str,
) -> List[MigrationScript]:
    """
    Generate migration scripts for selected database services.

    Args:
        analysis: Project analysis
        selected_services: Services being converted
        namespace: Target namespace

    Returns:
        List of MigrationScript, in selection order
    """
    scripts = []
    for name in selected_services:
        analyzed = analysis.services.get(name)
        if analyzed is None or analyzed.category != ServiceCategory.DATABASE:
            continue

        strategy = find_dump_strategy(analyzed.service.image)
        if strategy is None:
            continue

        scripts.append(MigrationScript(
            filename=f"migrate-{to_k8s_name(name)}.sh",
            content=render_migration_script(name, strategy, namespace or "default"),
            service_name=name,
            description=f"Copy {strategy.family} data for {name} into Kubernetes",
        ))
    return scripts
