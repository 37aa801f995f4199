"""Configuration and policy core for a certificate authority."""

from .lib.cert import Cert
from .lib.config import CAConfig
from .lib.exceptions import CAPolicyError, ConfigurationError, NotFoundError
from .lib.key_material import (
    EngineDescriptor,
    EngineLoader,
    HardwareEngine,
    KeyMaterialResolver,
    KeyMaterialSource,
)
from .lib.pool import CAConfigPool
from .lib.profile import CertProfile

__all__ = [
    "CAConfig",
    "CAConfigPool",
    "CAPolicyError",
    "Cert",
    "CertProfile",
    "ConfigurationError",
    "EngineDescriptor",
    "EngineLoader",
    "HardwareEngine",
    "KeyMaterialResolver",
    "KeyMaterialSource",
    "NotFoundError",
]
