"""
External traffic routing manifests.

Generates either a networking.k8s.io Ingress or a Gateway API
Gateway + HTTPRoute pair, never both.
"""

from typing import Any, Dict, List, Optional

from .config import Configuration, RoutingMode
from .k8s_names import MANAGED_BY, MANAGED_BY_LABEL, to_k8s_name
from .types import GeneratedManifest

DEFAULT_HOST = "app.example.com"
CLUSTER_ISSUER_ANNOTATION = "cert-manager.io/cluster-issuer"
CLUSTER_ISSUER = "letsencrypt-prod"

INGRESS_TLS_SECRET = "app-tls-secret"


def _routing_metadata(name: str, config: Configuration) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"name": name}
    if config.deploy.namespace:
        metadata["namespace"] = config.deploy.namespace
    metadata["labels"] = {MANAGED_BY_LABEL: MANAGED_BY}
    return metadata


def _cert_manager_annotations(config: Configuration) -> Dict[str, str]:
    if config.ingress.tls and config.ingress.cert_manager:
        return {CLUSTER_ISSUER_ANNOTATION: CLUSTER_ISSUER}
    return {}


def _routing_enabled(config: Configuration) -> bool:
    return config.ingress.enabled and bool(config.ingress.routes)


def generate_ingress(config: Configuration) -> Optional[GeneratedManifest]:
    """
    Generate a single Ingress with one path per configured route.

    Returns:
        GeneratedManifest or None when routing is off or has no routes
    """
    if not _routing_enabled(config):
        return None

    ingress = config.ingress
    host = ingress.domain or DEFAULT_HOST

    metadata = _routing_metadata("app-ingress", config)
    annotations = _cert_manager_annotations(config)
    if annotations:
        metadata["annotations"] = annotations

    spec: Dict[str, Any] = {}
    if ingress.controller and ingress.controller != "none":
        spec["ingressClassName"] = ingress.controller
    if ingress.tls:
        spec["tls"] = [{"hosts": [host], "secretName": INGRESS_TLS_SECRET}]
    spec["rules"] = [
        {
            "host": host,
            "http": {
                "paths": [
                    {
                        "path": route.path,
                        "pathType": "Prefix",
                        "backend": {
                            "service": {
                                "name": to_k8s_name(route.service_name),
                                "port": {"number": route.port},
                            },
                        },
                    }
                    for route in ingress.routes
                ],
            },
        }
    ]

    return GeneratedManifest(
        filename="ingress.yaml",
        manifest={
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": metadata,
            "spec": spec,
        },
        service_name="_ingress",
        description="Ingress for routing external traffic",
    )


def generate_gateway_api(config: Configuration) -> List[GeneratedManifest]:
    """
    Generate a Gateway and an HTTPRoute for the configured routes.

    With TLS the Gateway gets an HTTPS listener terminating with
    ``<namespace>-tls-secret`` plus a plain HTTP listener.
    """
    if not _routing_enabled(config):
        return []

    ingress = config.ingress
    host = ingress.domain or DEFAULT_HOST
    prefix = to_k8s_name(config.deploy.namespace or "app")
    gateway_name = f"{prefix}-gateway"
    allowed_routes = {"namespaces": {"from": "Same"}}

    listeners: List[Dict[str, Any]] = []
    if ingress.tls:
        listeners.append({
            "name": "https",
            "protocol": "HTTPS",
            "port": 443,
            "hostname": host,
            "tls": {
                "mode": "Terminate",
                "certificateRefs": [{"kind": "Secret", "name": f"{prefix}-tls-secret"}],
            },
            "allowedRoutes": allowed_routes,
        })
    listeners.append({
        "name": "http",
        "protocol": "HTTP",
        "port": 80,
        "hostname": host,
        "allowedRoutes": allowed_routes,
    })

    gateway_metadata = _routing_metadata(gateway_name, config)
    annotations = _cert_manager_annotations(config)
    if annotations:
        gateway_metadata["annotations"] = annotations

    gateway = GeneratedManifest(
        filename="gateway.yaml",
        manifest={
            "apiVersion": "gateway.networking.k8s.io/v1",
            "kind": "Gateway",
            "metadata": gateway_metadata,
            "spec": {
                "gatewayClassName": ingress.gateway_class or "istio",
                "listeners": listeners,
            },
        },
        service_name="_gateway",
        description="Gateway for external traffic routing",
    )

    http_route = GeneratedManifest(
        filename="httproute.yaml",
        manifest={
            "apiVersion": "gateway.networking.k8s.io/v1",
            "kind": "HTTPRoute",
            "metadata": _routing_metadata(f"{prefix}-httproute", config),
            "spec": {
                "parentRefs": [{"name": gateway_name}],
                "hostnames": [host],
                "rules": [
                    {
                        "matches": [{"path": {"type": "PathPrefix", "value": route.path}}],
                        "backendRefs": [
                            {"name": to_k8s_name(route.service_name), "port": route.port}
                        ],
                    }
                    for route in ingress.routes
                ],
            },
        },
        service_name="_gateway",
        description="HTTPRoute for path-based routing",
    )

    return [gateway, http_route]


def generate_routing(config: Configuration) -> List[GeneratedManifest]:
    """Generate the routing manifests for the configured mode."""
    if config.ingress.mode == RoutingMode.GATEWAY_API:
        return generate_gateway_api(config)
    ingress = generate_ingress(config)
    return [ingress] if ingress else []
