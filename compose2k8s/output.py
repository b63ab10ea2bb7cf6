"""
YAML serialization and output writing.
"""

import logging
import stat
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union

import yaml

from .config import Configuration
from .readme import SINGLE_FILE_NAME
from .types import GeneratorOutput, K8sManifest

logger = logging.getLogger(__name__)

MANIFEST_KEY_ORDER = ("apiVersion", "kind", "metadata", "type", "spec", "data", "stringData")


class ManifestDumper(yaml.SafeDumper):
    """SafeDumper without anchors, with literal blocks for multi-line text."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_str(data)


def _represent_enum(dumper: yaml.SafeDumper, data: Enum) -> yaml.Node:
    return dumper.represent_data(data.value)


ManifestDumper.add_representer(str, _represent_str)
ManifestDumper.add_multi_representer(Enum, _represent_enum)


def order_manifest(manifest: K8sManifest) -> Dict[str, Any]:
    """
    Reorder top-level keys: apiVersion, kind, metadata, type, spec, data,
    stringData, then any remaining keys in their original order. None
    values are dropped.
    """
    ordered: Dict[str, Any] = {}
    for key in MANIFEST_KEY_ORDER:
        if manifest.get(key) is not None:
            ordered[key] = manifest[key]
    for key, value in manifest.items():
        if key not in ordered and value is not None:
            ordered[key] = value
    return ordered


def manifest_to_yaml(manifest: K8sManifest) -> str:
    """Serialize one manifest with Kubernetes key ordering."""
    return yaml.dump(
        order_manifest(manifest),
        Dumper=ManifestDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=float("inf"),
    )


def manifests_to_multi_doc(manifests: Sequence[K8sManifest]) -> str:
    """Join manifests into one ``---`` separated YAML stream."""
    return "\n".join(f"---\n{manifest_to_yaml(m)}" for m in manifests)


def write_output(output: GeneratorOutput, config: Configuration) -> List[Path]:
    """
    Write manifests, README and migration scripts to ``deploy.output_dir``.

    ``plain`` writes one file per manifest, ``single-file`` writes
    all-resources.yaml. Migration scripts go to ``scripts/`` and are made
    executable.

    Returns:
        Paths written, in write order
    """
    out_dir = Path(config.deploy.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []

    if config.deploy.output_format == "single-file":
        path = out_dir / SINGLE_FILE_NAME
        path.write_text(manifests_to_multi_doc([m.manifest for m in output.manifests]), encoding="utf-8")
        written.append(path)
    else:
        for m in output.manifests:
            path = out_dir / m.filename
            path.write_text(manifest_to_yaml(m.manifest), encoding="utf-8")
            written.append(path)

    readme_path = out_dir / "README.md"
    readme_path.write_text(output.readme, encoding="utf-8")
    written.append(readme_path)

    if output.migration_scripts:
        scripts_dir = out_dir / "scripts"
        scripts_dir.mkdir(exist_ok=True)
        for script in output.migration_scripts:
            path = scripts_dir / script.filename
            path.write_text(script.content, encoding="utf-8")
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            written.append(path)

    logger.info(f"Wrote {len(written)} files to {out_dir}")
    return written


def _missing_fields(doc: Dict[str, Any]) -> List[str]:
    missing = []
    if not doc.get("apiVersion"):
        missing.append("apiVersion")
    if not doc.get("kind"):
        missing.append("kind")
    metadata = doc.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        missing.append("metadata.name")
    return missing


def validate_manifest_dir(directory: Union[str, Path]) -> Tuple[int, List[str]]:
    """
    Check every YAML document under a directory for the required fields.

    Args:
        directory: Directory searched recursively for .yaml/.yml files

    Returns:
        Tuple of (valid document count, error messages)

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Directory not found: {root}")

    valid = 0
    errors: List[str] = []
    files = sorted(p for p in root.rglob("*") if p.suffix in (".yaml", ".yml") and p.is_file())

    for path in files:
        try:
            docs = [d for d in yaml.safe_load_all(path.read_text(encoding="utf-8")) if d is not None]
        except yaml.YAMLError as e:
            errors.append(f"{path}: YAML parse error: {e}")
            continue

        for doc in docs:
            if not isinstance(doc, dict):
                errors.append(f"{path}: Empty or non-object document")
                continue
            missing = _missing_fields(doc)
            if missing:
                errors.append(f"{path}: Missing required fields: {', '.join(missing)}")
            else:
                valid += 1

    return valid, errors
