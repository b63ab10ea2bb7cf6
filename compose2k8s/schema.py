"""
JSON schemas for the supported Docker Compose subset and the converter
configuration file, with validation helpers.
"""

from typing import Any, Dict, List

import jsonschema


_STRING_OR_LIST = {
    "anyOf": [
        {"type": "string"},
        {"type": "array", "items": {"type": "string"}},
    ],
}

_STRING_LIST_OR_MAP = {
    "anyOf": [
        {"type": "array", "items": {"type": "string"}},
        {"type": "object"},
    ],
}

_RESOURCE_SPEC = {
    "type": "object",
    "properties": {
        "cpus": {"type": ["string", "number"]},
        "memory": {"type": "string"},
    },
}

_HEALTHCHECK = {
    "type": "object",
    "properties": {
        "test": _STRING_OR_LIST,
        "interval": {"type": "string"},
        "timeout": {"type": "string"},
        "retries": {"type": "integer"},
        "start_period": {"type": "string"},
        "disable": {"type": "boolean"},
    },
}

_DEPLOY = {
    "type": "object",
    "properties": {
        "replicas": {"type": "integer"},
        "resources": {
            "type": "object",
            "properties": {
                "limits": _RESOURCE_SPEC,
                "reservations": _RESOURCE_SPEC,
            },
        },
        "restart_policy": {
            "type": "object",
            "properties": {
                "condition": {"type": "string"},
            },
        },
    },
}

_PORT_OBJECT = {
    "type": "object",
    "required": ["target"],
    "properties": {
        "target": {"type": "integer"},
        "published": {"type": ["integer", "string"]},
        "protocol": {"enum": ["tcp", "udp"]},
    },
    "additionalProperties": True,
}

_VOLUME_OBJECT = {
    "type": "object",
    "required": ["target"],
    "properties": {
        "type": {"enum": ["bind", "volume", "tmpfs"]},
        "source": {"type": "string"},
        "target": {"type": "string"},
        "read_only": {"type": "boolean"},
    },
}

_DEPENDS_ON_ENTRY = {
    "type": "object",
    "properties": {
        "condition": {
            "enum": [
                "service_started",
                "service_healthy",
                "service_completed_successfully",
            ],
        },
    },
}

_SERVICE = {
    "type": "object",
    "properties": {
        "image": {"type": "string"},
        "build": {
            "anyOf": [
                {"type": "string"},
                {
                    "type": "object",
                    "properties": {
                        "context": {"type": "string"},
                        "dockerfile": {"type": "string"},
                    },
                },
            ],
        },
        "command": _STRING_OR_LIST,
        "entrypoint": _STRING_OR_LIST,
        "environment": {
            "anyOf": [
                {"type": "array", "items": {"type": "string"}},
                {
                    "type": "object",
                    "additionalProperties": {
                        "type": ["string", "number", "boolean", "null"],
                    },
                },
            ],
        },
        "env_file": {
            "anyOf": [
                {"type": "string"},
                {
                    "type": "array",
                    "items": {
                        "anyOf": [
                            {"type": "string"},
                            {
                                "type": "object",
                                "required": ["path"],
                                "properties": {
                                    "path": {"type": "string"},
                                    "required": {"type": "boolean"},
                                },
                            },
                        ],
                    },
                },
            ],
        },
        "ports": {
            "type": "array",
            "items": {
                "anyOf": [
                    {"type": "string"},
                    {"type": "integer"},
                    _PORT_OBJECT,
                ],
            },
        },
        "volumes": {
            "type": "array",
            "items": {
                "anyOf": [
                    {"type": "string"},
                    _VOLUME_OBJECT,
                ],
            },
        },
        "depends_on": {
            "anyOf": [
                {"type": "array", "items": {"type": "string"}},
                {"type": "object", "additionalProperties": _DEPENDS_ON_ENTRY},
            ],
        },
        "labels": {
            "anyOf": [
                {"type": "array", "items": {"type": "string"}},
                {
                    "type": "object",
                    "additionalProperties": {"type": ["string", "number", "boolean"]},
                },
            ],
        },
        "networks": _STRING_LIST_OR_MAP,
        "restart": {"type": "string"},
        "healthcheck": _HEALTHCHECK,
        "deploy": _DEPLOY,
        "working_dir": {"type": "string"},
        "user": {"type": ["string", "integer"]},
        "privileged": {"type": "boolean"},
        "cap_add": {"type": "array", "items": {"type": "string"}},
        "cap_drop": {"type": "array", "items": {"type": "string"}},
        "tmpfs": _STRING_OR_LIST,
        "extra_hosts": {"type": "array", "items": {"type": "string"}},
    },
}

_TOP_LEVEL_RESOURCE = {
    "anyOf": [
        {"type": "null"},
        {
            "type": "object",
            "properties": {
                "driver": {"type": "string"},
                "external": {"type": "boolean"},
                "name": {"type": "string"},
            },
        },
    ],
}

COMPOSE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Docker Compose subset",
    "type": "object",
    "required": ["services"],
    "properties": {
        "version": {"type": ["string", "number"]},
        "services": {
            "type": "object",
            "additionalProperties": _SERVICE,
        },
        "volumes": {
            "type": "object",
            "additionalProperties": _TOP_LEVEL_RESOURCE,
        },
        "networks": {
            "type": "object",
            "additionalProperties": _TOP_LEVEL_RESOURCE,
        },
    },
}

_RESOURCE_DEFAULTS = {
    "type": "object",
    "properties": {
        "cpuRequest": {"type": "string"},
        "cpuLimit": {"type": "string"},
        "memoryRequest": {"type": "string"},
        "memoryLimit": {"type": "string"},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "compose2k8s configuration",
    "type": "object",
    "properties": {
        "services": {"type": "array", "items": {"type": "string"}},
        "workloads": {
            "type": "object",
            "additionalProperties": {"enum": ["Deployment", "StatefulSet"]},
        },
        "exposures": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["type"],
                "properties": {
                    "type": {"enum": ["ClusterIP", "NodePort", "LoadBalancer", "Ingress"]},
                    "nodePort": {"type": "integer", "minimum": 30000, "maximum": 32767},
                },
            },
        },
        "ingress": {
            "type": "object",
            "properties": {
                "mode": {"enum": ["ingress", "gateway-api"]},
                "domain": {"type": "string"},
                "tls": {"type": "boolean"},
                "certManager": {"type": "boolean"},
                "controller": {"enum": ["nginx", "traefik", "higress", "none"]},
                "gatewayClass": {"type": "string"},
                "routes": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["service", "path", "port"],
                        "properties": {
                            "service": {"type": "string"},
                            "path": {"type": "string"},
                            "port": {"type": "integer"},
                        },
                    },
                },
            },
        },
        "secrets": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": {"enum": ["configmap", "secret"]},
            },
        },
        "storage": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["volume"],
                "properties": {
                    "volume": {"type": "string"},
                    "size": {"type": "string"},
                    "accessMode": {"enum": ["ReadWriteOnce", "ReadWriteMany", "ReadOnlyMany"]},
                    "storageClass": {"type": "string"},
                },
            },
        },
        "initContainers": {"enum": ["wait-for-port", "none"]},
        "resources": {
            "type": "object",
            "additionalProperties": _RESOURCE_DEFAULTS,
        },
        "deploy": {
            "type": "object",
            "properties": {
                "namespace": {"type": "string"},
                "imagePullPolicy": {"enum": ["Always", "IfNotPresent", "Never"]},
                "imagePullSecrets": {"type": "array", "items": {"type": "string"}},
                "registry": {"type": "string"},
                "format": {"enum": ["plain", "single-file"]},
                "outputDir": {"type": "string"},
                "migrationScripts": {"type": "boolean"},
                "podSecurityStandard": {"enum": ["none", "baseline", "restricted"]},
                "resources": _RESOURCE_DEFAULTS,
            },
        },
    },
}


def _collect_errors(schema: Dict[str, Any], data: Any) -> List[str]:
    validator = jsonschema.Draft7Validator(schema)
    errors = []
    found = sorted(
        validator.iter_errors(data),
        key=lambda e: [str(p) for p in e.absolute_path],
    )
    for error in found:
        path = ".".join(str(p) for p in error.absolute_path)
        errors.append(f"{path}: {error.message}" if path else error.message)
    return errors


def validate_compose(data: Any) -> List[str]:
    """
    Validate an interpolated compose document.

    Returns list of validation errors (empty if valid), one per
    offending field path.
    """
    return _collect_errors(COMPOSE_SCHEMA, data)


def validate_config(data: Any) -> List[str]:
    """Validate a configuration file document. Returns list of errors."""
    return _collect_errors(CONFIG_SCHEMA, data)
