"""
CLI for compose2k8s - Docker Compose to Kubernetes converter.

Commands:
    convert     Generate K8s manifests from a compose file
    parse       Parse and display a compose file
    validate    Check generated manifests for required fields
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .analyzer import analyze_project
from .config import generate_defaults, load_config_file
from .errors import Compose2K8sError
from .generators import generate_manifests
from .output import manifest_to_yaml, validate_manifest_dir, write_output
from .parser import find_compose_file, parse_compose_file
from .types import ComposeProject

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="compose2k8s",
        description="Convert Docker Compose to Kubernetes manifests",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # convert command
    convert_parser = subparsers.add_parser(
        "convert",
        help="Generate K8s manifests from a compose file",
    )
    convert_parser.add_argument(
        "-f", "--file",
        help="Compose file (default: auto-detect in current directory)",
    )
    convert_parser.add_argument(
        "-c", "--config",
        help="Pre-answer configuration file (YAML)",
    )
    convert_parser.add_argument(
        "-o", "--output",
        help="Output directory (default: ./k8s)",
    )
    convert_parser.add_argument(
        "-n", "--namespace",
        help="Target namespace (default: default)",
    )
    convert_parser.add_argument(
        "--format",
        choices=["plain", "single-file"],
        help="Output format (default: plain)",
    )
    convert_parser.add_argument(
        "--env-file",
        help="Variables file for interpolation (default: .env next to the compose file)",
    )
    convert_parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print manifests instead of writing files",
    )

    # parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse and display a compose file",
    )
    parse_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Compose file or directory containing one (default: .)",
    )
    parse_parser.add_argument(
        "--env-file",
        help="Variables file for interpolation",
    )
    parse_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check generated manifests for required fields",
    )
    validate_parser.add_argument(
        "dir",
        nargs="?",
        default="./k8s",
        help="Manifest directory (default: ./k8s)",
    )

    return parser


def resolve_compose_path(path: Optional[str]) -> Path:
    """
    Resolve a compose file argument, auto-detecting inside directories.

    Raises:
        FileNotFoundError: If no compose file can be found
    """
    candidate = Path(path or ".")
    if candidate.is_dir():
        found = find_compose_file(candidate)
        if found is None:
            raise FileNotFoundError(f"No compose file found in {candidate}")
        return found
    if not candidate.is_file():
        raise FileNotFoundError(f"Compose file not found: {candidate}")
    return candidate


def cmd_convert(args: argparse.Namespace) -> int:
    """Handle convert command."""
    compose_path = resolve_compose_path(args.file)
    logger.info(f"Converting {compose_path}")
    result = parse_compose_file(compose_path, env_file=args.env_file)
    analysis = analyze_project(result.project)
    warnings = result.warnings + analysis.warnings

    if args.config:
        config, config_warnings = load_config_file(args.config, analysis)
        warnings.extend(config_warnings)
        # Command-line flags win over the file
        if args.namespace:
            config.deploy.namespace = args.namespace
        if args.output:
            config.deploy.output_dir = args.output
        if args.format:
            config.deploy.output_format = args.format
    else:
        config = generate_defaults(
            analysis,
            namespace=args.namespace,
            output_dir=args.output,
            output_format=args.format,
        )

    output = generate_manifests(analysis, config, working_dir=compose_path.resolve().parent)
    warnings.extend(output.warnings)

    if args.stdout:
        print("\n".join(f"---\n{manifest_to_yaml(m.manifest)}" for m in output.manifests))
    else:
        written = write_output(output, config)
        for path in written:
            print(f"Written: {path}", file=sys.stderr)

    # Each warning was already logged where it was raised
    if warnings:
        print(f"Completed with {len(warnings)} warning(s)", file=sys.stderr)

    if args.verbose:
        print(
            f"Generated {len(output.manifests)} manifests for "
            f"{len(config.selected_services)} services",
            file=sys.stderr,
        )

    return 0


def project_to_dict(project: ComposeProject) -> Dict[str, Any]:
    """JSON-friendly view of a normalized project."""
    services = []
    for svc in project.services.values():
        services.append({
            "name": svc.name,
            "image": svc.image,
            "build": svc.build,
            "ports": [
                {"published": p.published, "target": p.target, "protocol": p.protocol.value}
                for p in svc.ports
            ],
            "volumes": [
                {
                    "source": v.source,
                    "target": v.target,
                    "type": v.type.value,
                    "read_only": v.read_only,
                }
                for v in svc.volumes
            ],
            "environment": svc.environment,
            "depends_on": svc.depends_on,
            "networks": list(svc.networks),
        })
    return {
        "version": project.version,
        "services": services,
        "volumes": list(project.volumes.keys()),
        "networks": list(project.networks.keys()),
    }


def cmd_parse(args: argparse.Namespace) -> int:
    """Handle parse command."""
    compose_path = resolve_compose_path(args.path)
    result = parse_compose_file(compose_path, env_file=args.env_file)
    project = result.project

    if args.json:
        data = project_to_dict(project)
        data["warnings"] = result.warnings
        print(json.dumps(data, indent=2))
        return 0

    print(f"File: {result.source_file}")
    print(f"Services: {len(project.services)}")
    print(f"Volumes: {len(project.volumes)}")
    print(f"Networks: {len(project.networks)}")
    print()

    for svc in project.services.values():
        print(f"  Service: {svc.name}")
        if svc.image:
            print(f"    Image: {svc.image}")
        if svc.build:
            print(f"    Build: {svc.build.get('context', '.')}")
        if svc.ports:
            ports_str = ", ".join(
                f"{p.published}:{p.target}" if p.published else str(p.target)
                for p in svc.ports
            )
            print(f"    Ports: {ports_str}")
        if svc.volumes:
            print(f"    Volumes: {len(svc.volumes)}")
        if svc.environment:
            print(f"    Environment: {len(svc.environment)} vars")
        if svc.depends_on:
            print(f"    Depends on: {', '.join(svc.depends_on)}")
        print()

    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Handle validate command."""
    valid, errors = validate_manifest_dir(args.dir)

    for error in errors:
        print(f"Error: {error}", file=sys.stderr)

    if not valid and not errors:
        print(f"No YAML files found in {args.dir}", file=sys.stderr)
        return 0

    if errors:
        print(f"{valid} valid, {len(errors)} invalid manifests.")
        return 1

    print(f"All {valid} manifests are valid.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "convert": cmd_convert,
        "parse": cmd_parse,
        "validate": cmd_validate,
    }

    handler = commands.get(args.command)
    if not handler:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except (Compose2K8sError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
