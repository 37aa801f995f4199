"""Key material resolution for CA, OCSP and CRL signing identities.

An identity comes from exactly one of three sources:

    - a certificate file plus an optional (possibly encrypted) key file
    - a PKCS#12 bundle holding both
    - a certificate file plus a key held by a hardware engine

Contradictory descriptions are rejected by EXCLUSION_RULES before any file is
read or any engine is touched.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from .cert import Cert, deserialize_certificate, deserialize_private_key, read_file
from .exceptions import ConfigurationError
from .logging_config import LOGGER


def _optional_str(conf: Mapping[str, Any], key: str, field: str | None = None) -> str | None:
    value = conf.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(f"{field or key} must be a string, got {type(value).__name__}")
    return value


class HardwareEngine(Protocol):
    """A loaded hardware engine able to hand out private keys by name."""

    def load_private_key(self, key_name: str) -> PrivateKeyTypes: ...


class EngineLoader(Protocol):
    """Loads a hardware engine from its shared object path and engine id."""

    def load(self, so_path: str, engine_id: str) -> HardwareEngine: ...


@dataclass(frozen=True)
class EngineDescriptor:
    """Where to find a hardware-held key."""

    so_path: str | None
    id: str | None
    key_name: str | None = None

    @classmethod
    def from_dict(cls, conf: Any, key_name: str | None = None) -> "EngineDescriptor":
        """Build from an ``engine`` mapping. Keys are matched case-insensitively."""
        if not isinstance(conf, Mapping):
            return cls(so_path=None, id=None, key_name=key_name)
        lowered = {str(k).lower(): v for k, v in conf.items()}
        return cls(
            so_path=_optional_str(lowered, "so_path", "engine so_path"),
            id=_optional_str(lowered, "id", "engine id"),
            key_name=key_name,
        )


@dataclass(frozen=True)
class KeyMaterialSource:
    """Declarative description of where an identity's cert and key live."""

    cert_path: str | None = None
    key_path: str | None = None
    password: str | None = None
    pkcs12_path: str | None = None
    pkcs12_password: str | None = None
    engine: EngineDescriptor | None = None

    @classmethod
    def from_dict(cls, conf: Any) -> "KeyMaterialSource":
        """Build from a ``ca_cert``/``ocsp_cert``/``crl_cert`` document entry."""
        if not isinstance(conf, Mapping):
            raise ConfigurationError("key material must be a mapping")
        engine = None
        if conf.get("engine") is not None:
            engine = EngineDescriptor.from_dict(conf["engine"], _optional_str(conf, "key_name"))
        password = _optional_str(conf, "password")
        return cls(
            cert_path=_optional_str(conf, "cert"),
            key_path=_optional_str(conf, "key"),
            password=password,
            pkcs12_path=_optional_str(conf, "pkcs12"),
            pkcs12_password=password,
            engine=engine,
        )


EXCLUSION_RULES: tuple[tuple[str, Callable[[KeyMaterialSource], bool]], ...] = (
    (
        "You can't specify both pkcs12 and key",
        lambda s: s.pkcs12_path is not None and s.key_path is not None,
    ),
    (
        "You can't specify both pkcs12 and cert",
        lambda s: s.pkcs12_path is not None and s.cert_path is not None,
    ),
    (
        "You can't specify both engine and pkcs12",
        lambda s: s.engine is not None and s.pkcs12_path is not None,
    ),
    (
        "You can't specify both key and engine",
        lambda s: s.engine is not None and s.key_path is not None,
    ),
    (
        "You must supply a key_name with an engine",
        lambda s: s.engine is not None and not s.engine.key_name,
    ),
    (
        "You must supply an engine with both so_path and id",
        lambda s: s.engine is not None and not (s.engine.so_path and s.engine.id),
    ),
)


def validate_source(source: KeyMaterialSource) -> None:
    """Raise ConfigurationError for the first violated rule in EXCLUSION_RULES."""
    for message, violated in EXCLUSION_RULES:
        if violated(source):
            raise ConfigurationError(message)


def source_kind(source: KeyMaterialSource) -> str:
    """Name the branch that supplies the identity: pkcs12, engine, key or cert."""
    validate_source(source)
    if source.pkcs12_path is not None:
        return "pkcs12"
    if source.engine is not None:
        return "engine"
    if source.key_path is not None:
        return "key"
    return "cert"


class KeyMaterialResolver:
    """Turns a KeyMaterialSource into a loaded Cert."""

    def __init__(self, engine_loader: EngineLoader | None = None) -> None:
        """Initialize resolver.

        Args:
            engine_loader: Capability used for engine-backed keys. Without one,
                engine sources fail to resolve.
        """
        self.engine_loader = engine_loader

    def resolve(self, source: KeyMaterialSource, root_path: Path | str | None = None) -> Cert:
        """Load the identity described by source.

        Args:
            source: Key material description
            root_path: Base directory for relative paths

        Returns:
            Cert with the certificate and, unless only a cert was given, the key

        Raises:
            ConfigurationError: On contradictory sources or undecodable material
            FileNotFoundError: If a referenced file does not exist
        """
        kind = source_kind(source)
        root = Path(root_path) if root_path is not None else Path()

        if kind == "pkcs12":
            cert = self._load_pkcs12(root / source.pkcs12_path, source.pkcs12_password)
        elif kind == "engine":
            cert = self._load_engine(source, root)
        elif kind == "key":
            certificate = self._load_certificate(source, root)
            key_path = root / source.key_path
            cert = Cert(certificate=certificate, key=_load_key(key_path, source.password))
        else:
            cert = Cert(certificate=self._load_certificate(source, root))

        LOGGER.info("Resolved %s identity for %s", kind, cert.subject.rfc4514_string())
        return cert

    @staticmethod
    def _load_certificate(source: KeyMaterialSource, root: Path) -> x509.Certificate:
        if source.cert_path is None:
            raise ConfigurationError("You must supply a cert")
        path = root / source.cert_path
        try:
            return deserialize_certificate(read_file(path, "cert"))
        except ValueError as e:
            raise ConfigurationError(f"unable to load certificate from {path}") from e

    @staticmethod
    def _load_pkcs12(path: Path, password: str | None) -> Cert:
        try:
            return Cert.from_pkcs12(read_file(path, "pkcs12 bundle"), password)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"unable to load pkcs12 bundle from {path}") from e

    def _load_engine(self, source: KeyMaterialSource, root: Path) -> Cert:
        if self.engine_loader is None:
            raise ConfigurationError("No hardware engine loader is configured")
        certificate = self._load_certificate(source, root)
        descriptor = source.engine
        engine = self.engine_loader.load(descriptor.so_path, descriptor.id)
        key = engine.load_private_key(descriptor.key_name)
        return Cert(certificate=certificate, key=key, key_in_hardware=True)


def _load_key(path: Path, password: str | None) -> PrivateKeyTypes:
    try:
        return deserialize_private_key(read_file(path, "key"), password)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"unable to load private key from {path}") from e
