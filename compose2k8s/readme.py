"""
README generation for the output directory.
"""

from typing import List, Sequence

from .config import Configuration
from .types import GeneratedManifest

SINGLE_FILE_NAME = "all-resources.yaml"


def generate_readme(
    manifests: Sequence[GeneratedManifest],
    config: Configuration,
    warnings: Sequence[str] = (),
) -> str:
    """
    Build the markdown README that accompanies the manifests.

    Args:
        manifests: Generated manifests
        config: Conversion configuration
        warnings: Warnings to surface to whoever applies the manifests

    Returns:
        Markdown text
    """
    namespace = config.deploy.namespace or "default"
    lines: List[str] = [
        "# Kubernetes Manifests",
        "",
        "Generated by compose2k8s from a Docker Compose project.",
        "",
        "## Files",
        "",
    ]

    if config.deploy.output_format == "single-file":
        lines.append(f"All resources are in `{SINGLE_FILE_NAME}`:")
        lines.append("")

    for m in manifests:
        lines.append(f"- `{m.filename}`: {m.description}")
    lines.append("")

    if any(m.manifest.get("kind") == "Secret" for m in manifests):
        lines.extend([
            "## Secrets",
            "",
            "Secret values are placeholders. Replace every `REPLACE_ME` with the",
            "real value before applying.",
            "",
        ])

    if warnings:
        lines.extend(["## Warnings", ""])
        lines.extend(f"- {w}" for w in warnings)
        lines.append("")

    lines.extend(["## Apply", "", "```bash"])
    if namespace != "default":
        lines.append(f"kubectl create namespace {namespace}")
    if config.deploy.output_format == "single-file":
        lines.append(f"kubectl apply -n {namespace} -f {SINGLE_FILE_NAME}")
    else:
        lines.append(f"kubectl apply -n {namespace} -f .")
    lines.extend(["```", ""])

    if config.deploy.migration_scripts:
        lines.extend([
            "## Data migration",
            "",
            "Scripts in `scripts/` (if any) copy database contents from the running",
            "compose containers into the new pods. Run them after the pods are ready.",
            "",
        ])

    return "\n".join(lines)
