"""CA configuration: signing identities, CRL/OCSP parameters and profiles."""

from collections.abc import Mapping, Sequence
from pathlib import Path
from types import MappingProxyType
from typing import Any

from cryptography import x509

from .cert import Cert, load_certificate_chain, read_file
from .digests import DEFAULT_MD, normalize_md
from .document import PATH_PLACEHOLDER, dump_yaml, identity_stub, parse_yaml, read_yaml
from .exceptions import ConfigurationError, NotFoundError
from .key_material import EngineLoader, KeyMaterialResolver, KeyMaterialSource
from .logging_config import LOGGER
from .profile import CertProfile

DEFAULT_VALIDITY_HOURS = 168
DEFAULT_START_SKEW_SECONDS = 3600


def _check_cert(name: str, value: Any) -> None:
    if not isinstance(value, Cert):
        raise ConfigurationError(f"{name}, if provided, must be of type Cert")
    if not value.has_private_key:
        raise ConfigurationError(f"{name} must contain a private key, not just a certificate")


def _check_profile(name: str, profile: Any) -> None:
    if not isinstance(profile, CertProfile):
        raise TypeError(f"profile '{name}' must be a CertProfile, got {type(profile).__name__}")


def _int_or_default(name: str, value: Any, default: int, minimum: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(f"{name} must be an integer >= {minimum}")
    return value


def _path_value(conf: Mapping[str, Any], key: str, alias: str | None = None) -> str | None:
    value = conf.get(key)
    if value is None and alias is not None:
        value = conf.get(alias)
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(f"{key} must be a string, got {type(value).__name__}")
    return value


class CAConfig:
    """One CA's identity, delegate signers, CRL/OCSP timing and profiles.

    ocsp_cert and crl_cert fall back to ca_cert when no delegate is set. The
    CA identity may lack a private key (inspection-only use). A delegate may not.
    """

    def __init__(
        self,
        ca_cert: Cert | None = None,
        ocsp_cert: Cert | None = None,
        crl_cert: Cert | None = None,
        ocsp_chain: Sequence[x509.Certificate] | None = None,
        ocsp_validity_hours: int | None = None,
        ocsp_start_skew_seconds: int | None = None,
        crl_validity_hours: int | None = None,
        crl_start_skew_seconds: int | None = None,
        crl_md: str | None = None,
        crl_list_file: str | None = None,
        crl_number_file: str | None = None,
        profiles: Mapping[str, CertProfile] | None = None,
    ) -> None:
        if ca_cert is None:
            raise ConfigurationError("Config object requires that you pass ca_cert")
        if not isinstance(ca_cert, Cert):
            raise ConfigurationError("ca_cert must be of type Cert")
        if ocsp_cert is not None:
            _check_cert("ocsp_cert", ocsp_cert)
        if crl_cert is not None:
            _check_cert("crl_cert", crl_cert)
        for name, profile in (profiles or {}).items():
            _check_profile(name, profile)

        self._ca_cert = ca_cert
        self._ocsp_cert = ocsp_cert
        self._crl_cert = crl_cert
        self.ocsp_chain = list(ocsp_chain) if ocsp_chain is not None else None
        self.ocsp_validity_hours = _int_or_default(
            "ocsp_validity_hours", ocsp_validity_hours, DEFAULT_VALIDITY_HOURS, 1
        )
        self.ocsp_start_skew_seconds = _int_or_default(
            "ocsp_start_skew_seconds", ocsp_start_skew_seconds, DEFAULT_START_SKEW_SECONDS, 0
        )
        self.crl_validity_hours = _int_or_default(
            "crl_validity_hours", crl_validity_hours, DEFAULT_VALIDITY_HOURS, 1
        )
        self.crl_start_skew_seconds = _int_or_default(
            "crl_start_skew_seconds", crl_start_skew_seconds, DEFAULT_START_SKEW_SECONDS, 0
        )
        self.crl_md = normalize_md(crl_md if crl_md is not None else DEFAULT_MD)
        self.crl_list_file = crl_list_file
        self.crl_number_file = crl_number_file
        self._profiles: dict[str, CertProfile] = dict(profiles or {})

    @property
    def ca_cert(self) -> Cert:
        return self._ca_cert

    @property
    def ocsp_cert(self) -> Cert:
        """The OCSP signing identity, defaulting to the CA identity."""
        return self._ocsp_cert if self._ocsp_cert is not None else self._ca_cert

    @property
    def crl_cert(self) -> Cert:
        """The CRL signing identity, defaulting to the CA identity."""
        return self._crl_cert if self._crl_cert is not None else self._ca_cert

    @property
    def profiles(self) -> Mapping[str, CertProfile]:
        return MappingProxyType(self._profiles)

    def profile(self, name: str) -> CertProfile:
        """Return the named profile.

        Raises:
            NotFoundError: If no profile is registered under name
        """
        try:
            return self._profiles[name]
        except KeyError:
            raise NotFoundError(f"unknown profile '{name}'") from None

    def set_profile(self, name: str, profile: CertProfile) -> None:
        """Register profile under name, replacing any existing entry."""
        _check_profile(name, profile)
        self._profiles[name] = profile

    def num_profiles(self) -> int:
        return len(self._profiles)

    @classmethod
    def load(
        cls,
        name: str,
        document: Any,
        ca_root_path: Path | str | None = None,
        engine_loader: EngineLoader | None = None,
    ) -> "CAConfig":
        """Load the CA stored under name in a parsed configuration document.

        Args:
            name: Key of the CA entry in document
            document: Parsed configuration document
            ca_root_path: Base directory for relative paths (default: cwd)
            engine_loader: Capability for engine-backed keys

        Raises:
            ConfigurationError: If the document or entry is missing or malformed
        """
        if not document:
            raise ConfigurationError("config not found")
        if not isinstance(document, Mapping):
            raise ConfigurationError("config must be a mapping")
        return cls.load_from_dict(document.get(name), ca_root_path, engine_loader)

    @classmethod
    def load_from_dict(
        cls,
        conf: Any,
        ca_root_path: Path | str | None = None,
        engine_loader: EngineLoader | None = None,
    ) -> "CAConfig":
        """Load a single CA entry (the mapping under the CA's name)."""
        if conf is None:
            raise ConfigurationError("config not found")
        if not isinstance(conf, Mapping):
            raise ConfigurationError("config must be a mapping")

        root = Path(ca_root_path) if ca_root_path is not None else Path.cwd()
        if not root.is_dir():
            raise ConfigurationError(f"ca_root_path is not a directory: {root}")

        resolver = KeyMaterialResolver(engine_loader)

        def identity(key: str) -> Cert | None:
            if conf.get(key) is None:
                return None
            return resolver.resolve(KeyMaterialSource.from_dict(conf[key]), root)

        ocsp_chain = None
        chain_path = _path_value(conf, "ocsp_chain")
        if chain_path is not None:
            path = root / chain_path
            try:
                ocsp_chain = load_certificate_chain(read_file(path, "ocsp chain"))
            except ValueError as e:
                raise ConfigurationError(f"unable to load ocsp chain from {path}") from e

        crl_list_file = _path_value(conf, "crl_list_file", "crl_list")
        crl_number_file = _path_value(conf, "crl_number_file", "crl_number")

        profiles_conf = conf.get("profiles") or {}
        if not isinstance(profiles_conf, Mapping):
            raise ConfigurationError("profiles must be a mapping")

        config = cls(
            ca_cert=identity("ca_cert"),
            ocsp_cert=identity("ocsp_cert"),
            crl_cert=identity("crl_cert"),
            ocsp_chain=ocsp_chain,
            ocsp_validity_hours=conf.get("ocsp_validity_hours"),
            ocsp_start_skew_seconds=conf.get("ocsp_start_skew_seconds"),
            crl_validity_hours=conf.get("crl_validity_hours"),
            crl_start_skew_seconds=conf.get("crl_start_skew_seconds"),
            crl_md=conf.get("crl_md"),
            crl_list_file=str(root / crl_list_file) if crl_list_file is not None else None,
            crl_number_file=str(root / crl_number_file) if crl_number_file is not None else None,
            profiles={
                profile_name: CertProfile.from_dict(profile_conf)
                for profile_name, profile_conf in profiles_conf.items()
            },
        )
        LOGGER.info(
            "Loaded CA config for %s with %d profile(s)",
            config.ca_cert.subject.rfc4514_string(),
            config.num_profiles(),
        )
        return config

    @classmethod
    def from_yaml(
        cls,
        name: str,
        yaml_data: str | bytes,
        ca_root_path: Path | str | None = None,
        engine_loader: EngineLoader | None = None,
    ) -> "CAConfig":
        return cls.load(name, parse_yaml(yaml_data), ca_root_path, engine_loader)

    @classmethod
    def load_yaml(
        cls,
        name: str,
        yaml_file: Path | str,
        ca_root_path: Path | str | None = None,
        engine_loader: EngineLoader | None = None,
    ) -> "CAConfig":
        return cls.load(name, read_yaml(yaml_file), ca_root_path, engine_loader)

    def serialize(self) -> dict[str, Any]:
        """Render the config in document form with key material redacted.

        The result is a provisioning template: identities and the OCSP chain
        become placeholders, operational paths and numbers are kept.
        """
        data: dict[str, Any] = {"ca_cert": identity_stub(self._ca_cert)}
        if self._ocsp_cert is not None:
            data["ocsp_cert"] = identity_stub(self._ocsp_cert)
        if self._crl_cert is not None:
            data["crl_cert"] = identity_stub(self._crl_cert)
        if self.ocsp_chain is not None:
            data["ocsp_chain"] = PATH_PLACEHOLDER
        data["ocsp_start_skew_seconds"] = self.ocsp_start_skew_seconds
        data["ocsp_validity_hours"] = self.ocsp_validity_hours
        data["crl_start_skew_seconds"] = self.crl_start_skew_seconds
        data["crl_validity_hours"] = self.crl_validity_hours
        if self.crl_list_file is not None:
            data["crl_list_file"] = self.crl_list_file
        if self.crl_number_file is not None:
            data["crl_number_file"] = self.crl_number_file
        data["crl_md"] = self.crl_md
        if self._profiles:
            data["profiles"] = {name: profile.to_dict() for name, profile in self._profiles.items()}
        return data

    def to_yaml(self) -> str:
        return dump_yaml(self.serialize())
