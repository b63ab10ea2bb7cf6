"""
Exception types for compose2k8s.

Only hard failures are raised. Everything recoverable is reported as a
warning string alongside the result.
"""

from typing import List, Optional


class Compose2K8sError(Exception):
    """Base class for conversion failures."""


class ComposeParseError(Compose2K8sError, ValueError):
    """Compose file could not be read as a YAML object."""


class ComposeValidationError(ComposeParseError):
    """Compose document violates the supported schema."""

    def __init__(self, source: str, errors: List[str]):
        self.source = source
        self.errors = list(errors)
        details = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"Invalid compose file structure in {source}:\n{details}")


class PortSpecError(ComposeParseError):
    """Port mapping is malformed or out of range."""


class ConfigError(Compose2K8sError, ValueError):
    """Configuration file failed validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = message + ":\n" + "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(message)
