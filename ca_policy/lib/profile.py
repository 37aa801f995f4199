"""Certificate profiles: named, immutable issuance policy templates."""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from .digests import DEFAULT_MD, hash_algorithm, normalize_md
from .exceptions import ConfigurationError
from .extensions import (
    AuthorityInfoAccess,
    BasicConstraints,
    CRLDistributionPoints,
    ExtendedKeyUsage,
    InhibitAnyPolicy,
    KeyUsage,
    NameConstraints,
    OCSPNoCheck,
    PolicyConstraints,
    SubjectItemPolicy,
)

# Profile document keys holding an X.509 extension policy, in output order.
EXTENSION_RECORDS: dict[str, type] = {
    "basic_constraints": BasicConstraints,
    "key_usage": KeyUsage,
    "extended_key_usage": ExtendedKeyUsage,
    "inhibit_any_policy": InhibitAnyPolicy,
    "policy_constraints": PolicyConstraints,
    "name_constraints": NameConstraints,
    "ocsp_no_check": OCSPNoCheck,
    "authority_info_access": AuthorityInfoAccess,
    "crl_distribution_points": CRLDistributionPoints,
}

PROFILE_KEYS = frozenset(EXTENSION_RECORDS) | {"subject_item_policy", "default_md", "allowed_mds"}


@dataclass(frozen=True)
class CertProfile:
    """Issuance policy for one kind of certificate.

    allowed_mds, when set, keeps document order and must contain default_md.
    Unset extension records mean the profile does not constrain them.
    """

    default_md: str = DEFAULT_MD
    allowed_mds: tuple[str, ...] | None = None
    basic_constraints: BasicConstraints | None = None
    key_usage: KeyUsage | None = None
    extended_key_usage: ExtendedKeyUsage | None = None
    subject_item_policy: SubjectItemPolicy | None = None
    authority_info_access: AuthorityInfoAccess | None = None
    crl_distribution_points: CRLDistributionPoints | None = None
    ocsp_no_check: OCSPNoCheck | None = None
    policy_constraints: PolicyConstraints | None = None
    inhibit_any_policy: InhibitAnyPolicy | None = None
    name_constraints: NameConstraints | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_md", normalize_md(self.default_md))
        if self.allowed_mds is not None:
            if isinstance(self.allowed_mds, str):
                raise ConfigurationError("allowed_mds must be a list")
            allowed = tuple(normalize_md(md) for md in self.allowed_mds)
            if not allowed:
                raise ConfigurationError("allowed_mds must not be empty")
            if self.default_md not in allowed:
                raise ConfigurationError(
                    f"default_md '{self.default_md}' must be one of allowed_mds"
                )
            object.__setattr__(self, "allowed_mds", allowed)

        record_types = dict(EXTENSION_RECORDS, subject_item_policy=SubjectItemPolicy)
        for f in fields(self):
            expected = record_types.get(f.name)
            value = getattr(self, f.name)
            if expected is not None and value is not None and not isinstance(value, expected):
                raise TypeError(
                    f"{f.name} must be a {expected.__name__}, got {type(value).__name__}"
                )

    @classmethod
    def from_dict(cls, conf: Any) -> "CertProfile":
        """Build a profile from a decoded ``profiles.<name>`` document entry."""
        if conf is None:
            return cls()
        if not isinstance(conf, Mapping):
            raise ConfigurationError("profile must be a mapping")
        unknown = set(conf) - PROFILE_KEYS
        if unknown:
            raise ConfigurationError(
                f"unknown profile option(s): {', '.join(sorted(map(str, unknown)))}"
            )

        kwargs: dict[str, Any] = {}
        for key, record in EXTENSION_RECORDS.items():
            if conf.get(key) is not None:
                kwargs[key] = record.from_dict(conf[key])
        if conf.get("subject_item_policy") is not None:
            kwargs["subject_item_policy"] = SubjectItemPolicy.from_dict(conf["subject_item_policy"])
        if conf.get("default_md") is not None:
            kwargs["default_md"] = conf["default_md"]
        if conf.get("allowed_mds") is not None:
            if not isinstance(conf["allowed_mds"], list):
                raise ConfigurationError("allowed_mds must be a list")
            kwargs["allowed_mds"] = conf["allowed_mds"]
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for key in EXTENSION_RECORDS:
            record = getattr(self, key)
            if record is not None:
                data[key] = record.to_dict()
        if self.subject_item_policy is not None:
            data["subject_item_policy"] = self.subject_item_policy.to_dict()
        data["default_md"] = self.default_md
        if self.allowed_mds is not None:
            data["allowed_mds"] = list(self.allowed_mds)
        return data

    def extensions(self) -> list[tuple[x509.ExtensionType, bool]]:
        """Return (extension value, critical) pairs for every constrained extension."""
        result = []
        for key in EXTENSION_RECORDS:
            record = getattr(self, key)
            if record is not None:
                result.append((record.extension_type, record.critical))
        return result

    def validate_md(self, name: str | None = None) -> str:
        """Return the digest to sign with.

        Args:
            name: Requested digest, or None for the profile default

        Raises:
            ValueError: If name is unknown or not in allowed_mds
        """
        if name is None:
            return self.default_md
        md = normalize_md(name)
        if self.allowed_mds is not None and md not in self.allowed_mds:
            raise ValueError(
                f"message digest '{md}' is not allowed; permitted: {', '.join(self.allowed_mds)}"
            )
        return md

    def signing_hash(self, name: str | None = None) -> hashes.HashAlgorithm:
        """Return the cryptography hash instance for validate_md(name)."""
        return hash_algorithm(self.validate_md(name))
