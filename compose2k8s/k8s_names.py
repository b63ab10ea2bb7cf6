"""
Kubernetes naming and labelling helpers.
"""

import re
from typing import Dict

MANAGED_BY = "compose2k8s"

NAME_LABEL = "app.kubernetes.io/name"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"


def to_k8s_name(name: str) -> str:
    """
    Convert a compose name to a valid K8s resource name.

    Lowercase, ``_`` and ``.`` become ``-``, max 63 chars, must start and
    end alphanumeric.
    """
    result = name.lower()
    result = re.sub(r"[_.]", "-", result)
    result = re.sub(r"[^a-z0-9-]", "", result)
    result = re.sub(r"-+", "-", result)
    result = result.strip("-")

    if len(result) > 63:
        result = result[:63].rstrip("-")

    if not result:
        return "unnamed"

    # Must start with alphanumeric
    if not re.match(r"^[a-z0-9]", result):
        result = "x" + result

    return result


def standard_labels(service_name: str) -> Dict[str, str]:
    """Labels applied to every object generated for a service."""
    return {
        NAME_LABEL: to_k8s_name(service_name),
        MANAGED_BY_LABEL: MANAGED_BY,
    }


def selector_labels(service_name: str) -> Dict[str, str]:
    """Labels used to match a service's pods."""
    return {
        NAME_LABEL: to_k8s_name(service_name),
    }
