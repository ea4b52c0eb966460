"""
Error kinds raised while bootstrapping the provisioner.

Every startup error is terminal: the CLI logs it once and exits with the
``exit_code`` of its kind.
"""
from typing import Optional, Sequence


class ProvisionerError(Exception):
    """Base class for all provisioner errors."""
    exit_code = 1


class ControlPlaneConnectionError(ProvisionerError):
    """Credentials could not be loaded or the API server could not be reached."""
    exit_code = 3


class ConfigNotFound(ControlPlaneConnectionError):
    """The kubeconfig file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"kubeconfig '{path}' does not exist")


class ControlPlaneIncompatible(ProvisionerError):
    """The version probe against the API server failed."""
    exit_code = 4


class MissingRequiredConfig(ProvisionerError):
    """A required setting is still empty after every source was tried."""
    exit_code = 5

    def __init__(self, field: str, sources: Optional[Sequence[str]] = None, detail: Optional[str] = None):
        self.field = field
        self.sources = list(sources or [])
        message = f"invalid empty flag '{field}'"
        if self.sources:
            message += f" (tried: {', '.join(self.sources)})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class InvalidPolicyConfig(ProvisionerError):
    """The policy config could not be parsed or failed validation."""
    exit_code = 5


class ProvisioningError(ProvisionerError):
    """A single provision or delete operation failed."""
