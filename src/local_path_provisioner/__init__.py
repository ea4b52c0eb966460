__version__ = "0.0.1"

from .exceptions import (
    ConfigNotFound,
    ControlPlaneConnectionError,
    ControlPlaneIncompatible,
    InvalidPolicyConfig,
    MissingRequiredConfig,
    ProvisionerError,
    ProvisioningError,
)

__all__ = [
    "__version__",
    "ProvisionerError",
    "ControlPlaneConnectionError",
    "ConfigNotFound",
    "ControlPlaneIncompatible",
    "MissingRequiredConfig",
    "InvalidPolicyConfig",
    "ProvisioningError",
]
