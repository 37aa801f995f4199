"""X.509 extension policy records used by certificate profiles.

Each record is an immutable value parsed from a profile document fragment. It
can be written back with ``to_dict`` and turned into the matching
``cryptography.x509`` extension value through ``extension_type``, ready for
``x509.CertificateBuilder.add_extension``.
"""

import ipaddress
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cryptography import x509
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtendedKeyUsageOID, NameOID

from .exceptions import ConfigurationError

KEY_USAGE_NAMES = {
    "digitalSignature": "digital_signature",
    "nonRepudiation": "content_commitment",
    "keyEncipherment": "key_encipherment",
    "dataEncipherment": "data_encipherment",
    "keyAgreement": "key_agreement",
    "keyCertSign": "key_cert_sign",
    "cRLSign": "crl_sign",
    "encipherOnly": "encipher_only",
    "decipherOnly": "decipher_only",
}

EXTENDED_KEY_USAGE_NAMES = {
    "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
    "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "codeSigning": ExtendedKeyUsageOID.CODE_SIGNING,
    "emailProtection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "timeStamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "OCSPSigning": ExtendedKeyUsageOID.OCSP_SIGNING,
    "anyExtendedKeyUsage": ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE,
}

SUBJECT_ITEMS = {
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "CN": NameOID.COMMON_NAME,
    "emailAddress": NameOID.EMAIL_ADDRESS,
    "serialNumber": NameOID.SERIAL_NUMBER,
    "DC": NameOID.DOMAIN_COMPONENT,
    "street": NameOID.STREET_ADDRESS,
    "postalCode": NameOID.POSTAL_CODE,
    "title": NameOID.TITLE,
    "GN": NameOID.GIVEN_NAME,
    "SN": NameOID.SURNAME,
}

DOTTED_OID = re.compile(r"^\d+(\.\d+)+$")


def _mapping(name: str, conf: Any, allowed: Iterable[str]) -> Mapping[str, Any]:
    if not isinstance(conf, Mapping):
        raise ConfigurationError(f"{name} must be a mapping")
    unknown = set(conf) - set(allowed)
    if unknown:
        names = ", ".join(sorted(map(str, unknown)))
        raise ConfigurationError(f"{name} has unknown option(s): {names}")
    return conf


def _flag(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a boolean")
    return value


def _non_negative(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(f"{name} must be a non-negative integer")
    return value


def _strings(name: str, values: Any) -> tuple[str, ...]:
    if isinstance(values, str) or not isinstance(values, Iterable):
        raise ConfigurationError(f"{name} must be a list")
    values = tuple(values)
    if not all(isinstance(v, str) for v in values):
        raise ConfigurationError(f"{name} entries must be strings")
    return values


@dataclass(frozen=True)
class BasicConstraints:
    """Whether the subject is a CA, and how deep a chain may grow beneath it."""

    ca: bool
    critical: bool = True
    path_length: int | None = None

    def __post_init__(self) -> None:
        _flag("basic_constraints ca", self.ca)
        _flag("basic_constraints critical", self.critical)
        if self.path_length is not None:
            if not self.ca:
                raise ConfigurationError("path_length is only allowed when ca is true")
            _non_negative("basic_constraints path_length", self.path_length)

    @classmethod
    def from_dict(cls, conf: Any) -> "BasicConstraints":
        """Build from the ``basic_constraints`` profile entry."""
        conf = _mapping("basic_constraints", conf, ("ca", "critical", "path_length"))
        if "ca" not in conf:
            raise ConfigurationError("basic_constraints requires a ca flag")
        return cls(
            ca=conf["ca"],
            critical=conf.get("critical", True),
            path_length=conf.get("path_length"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        data: dict[str, Any] = {"ca": self.ca, "critical": self.critical}
        if self.path_length is not None:
            data["path_length"] = self.path_length
        return data

    @property
    def extension_type(self) -> x509.BasicConstraints:
        """The matching ``x509.BasicConstraints`` value."""
        return x509.BasicConstraints(ca=self.ca, path_length=self.path_length)


@dataclass(frozen=True)
class KeyUsage:
    """Named key usage bits the issued key may be used for."""

    value: tuple[str, ...]
    critical: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _strings("key_usage value", self.value))
        _flag("key_usage critical", self.critical)
        if not self.value:
            raise ConfigurationError("key_usage value must not be empty")
        unknown = [v for v in self.value if v not in KEY_USAGE_NAMES]
        if unknown:
            raise ConfigurationError(f"unknown key usage(s): {', '.join(unknown)}")
        if {"encipherOnly", "decipherOnly"} & set(self.value) and "keyAgreement" not in self.value:
            raise ConfigurationError("encipherOnly and decipherOnly require keyAgreement")

    @classmethod
    def from_dict(cls, conf: Any) -> "KeyUsage":
        """Build from the ``key_usage`` profile entry."""
        conf = _mapping("key_usage", conf, ("value", "critical"))
        return cls(value=conf.get("value", ()), critical=conf.get("critical", False))

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        return {"value": list(self.value), "critical": self.critical}

    @property
    def extension_type(self) -> x509.KeyUsage:
        """The matching ``x509.KeyUsage`` value."""
        flags = dict.fromkeys(KEY_USAGE_NAMES.values(), False)
        for name in self.value:
            flags[KEY_USAGE_NAMES[name]] = True
        return x509.KeyUsage(**flags)


@dataclass(frozen=True)
class ExtendedKeyUsage:
    """Extended key usages by short name or dotted OID."""

    value: tuple[str, ...]
    critical: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _strings("extended_key_usage value", self.value))
        _flag("extended_key_usage critical", self.critical)
        if not self.value:
            raise ConfigurationError("extended_key_usage value must not be empty")
        unknown = [
            v for v in self.value if v not in EXTENDED_KEY_USAGE_NAMES and not DOTTED_OID.match(v)
        ]
        if unknown:
            raise ConfigurationError(f"unknown extended key usage(s): {', '.join(unknown)}")

    @classmethod
    def from_dict(cls, conf: Any) -> "ExtendedKeyUsage":
        """Build from the ``extended_key_usage`` profile entry."""
        conf = _mapping("extended_key_usage", conf, ("value", "critical"))
        return cls(value=conf.get("value", ()), critical=conf.get("critical", False))

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        return {"value": list(self.value), "critical": self.critical}

    @property
    def extension_type(self) -> x509.ExtendedKeyUsage:
        """The matching ``x509.ExtendedKeyUsage`` value."""
        return x509.ExtendedKeyUsage(
            [EXTENDED_KEY_USAGE_NAMES.get(v) or x509.ObjectIdentifier(v) for v in self.value]
        )


@dataclass(frozen=True)
class SubjectItemPolicy:
    """Which subject attributes an issued certificate must or may carry."""

    required: frozenset[str] = field(default_factory=frozenset)
    optional: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        required = frozenset(_strings("subject_item_policy required", self.required))
        optional = frozenset(_strings("subject_item_policy optional", self.optional))
        unknown = (required | optional) - set(SUBJECT_ITEMS)
        if unknown:
            raise ConfigurationError(f"unknown subject item(s): {', '.join(sorted(unknown))}")
        both = required & optional
        if both:
            raise ConfigurationError(
                f"subject item(s) both required and optional: {', '.join(sorted(both))}"
            )
        object.__setattr__(self, "required", required)
        object.__setattr__(self, "optional", optional)

    @classmethod
    def from_dict(cls, conf: Any) -> "SubjectItemPolicy":
        conf = _mapping("subject_item_policy", conf, ("required", "optional"))
        return cls(required=conf.get("required") or (), optional=conf.get("optional") or ())

    def to_dict(self) -> dict[str, Any]:
        return {"required": sorted(self.required), "optional": sorted(self.optional)}

    def validate_subject(self, subject: x509.Name) -> x509.Name:
        """Check a requested subject against the policy.

        Returns:
            The subject reduced to the required and optional items, in order

        Raises:
            ValueError: If a required item is missing
        """
        items_by_oid = {oid: item for item, oid in SUBJECT_ITEMS.items()}
        present = {items_by_oid.get(attr.oid) for attr in subject}
        missing = self.required - present
        if missing:
            raise ValueError(f"This profile requires you supply {', '.join(sorted(missing))}")
        permitted = self.required | self.optional
        return x509.Name([attr for attr in subject if items_by_oid.get(attr.oid) in permitted])


@dataclass(frozen=True)
class AuthorityInfoAccess:
    """OCSP responder and CA issuer locations."""

    ocsp_uris: tuple[str, ...] = ()
    ca_issuers_uris: tuple[str, ...] = ()
    critical: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "ocsp_uris", _strings("ocsp uris", self.ocsp_uris))
        object.__setattr__(
            self, "ca_issuers_uris", _strings("ca_issuers uris", self.ca_issuers_uris)
        )
        _flag("authority_info_access critical", self.critical)
        if not self.ocsp_uris and not self.ca_issuers_uris:
            raise ConfigurationError("authority_info_access requires ocsp or ca_issuers uris")

    @classmethod
    def from_dict(cls, conf: Any) -> "AuthorityInfoAccess":
        """Build from the ``authority_info_access`` profile entry."""
        conf = _mapping("authority_info_access", conf, ("ocsp", "ca_issuers", "critical"))
        ocsp = _mapping("authority_info_access ocsp", conf.get("ocsp") or {}, ("uris",))
        ca_issuers = _mapping(
            "authority_info_access ca_issuers", conf.get("ca_issuers") or {}, ("uris",)
        )
        return cls(
            ocsp_uris=ocsp.get("uris") or (),
            ca_issuers_uris=ca_issuers.get("uris") or (),
            critical=conf.get("critical", False),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        data: dict[str, Any] = {}
        if self.ocsp_uris:
            data["ocsp"] = {"uris": list(self.ocsp_uris)}
        if self.ca_issuers_uris:
            data["ca_issuers"] = {"uris": list(self.ca_issuers_uris)}
        data["critical"] = self.critical
        return data

    @property
    def extension_type(self) -> x509.AuthorityInformationAccess:
        """The matching ``x509.AuthorityInformationAccess`` value."""
        descriptions = [
            x509.AccessDescription(
                AuthorityInformationAccessOID.OCSP, x509.UniformResourceIdentifier(uri)
            )
            for uri in self.ocsp_uris
        ]
        descriptions += [
            x509.AccessDescription(
                AuthorityInformationAccessOID.CA_ISSUERS, x509.UniformResourceIdentifier(uri)
            )
            for uri in self.ca_issuers_uris
        ]
        return x509.AuthorityInformationAccess(descriptions)


@dataclass(frozen=True)
class CRLDistributionPoints:
    """URIs where relying parties fetch the CRL."""

    uris: tuple[str, ...]
    critical: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "uris", _strings("crl_distribution_points uris", self.uris))
        _flag("crl_distribution_points critical", self.critical)
        if not self.uris:
            raise ConfigurationError("crl_distribution_points requires at least one uri")

    @classmethod
    def from_dict(cls, conf: Any) -> "CRLDistributionPoints":
        """Build from the ``crl_distribution_points`` profile entry."""
        conf = _mapping("crl_distribution_points", conf, ("uris", "critical"))
        return cls(uris=conf.get("uris") or (), critical=conf.get("critical", False))

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        return {"uris": list(self.uris), "critical": self.critical}

    @property
    def extension_type(self) -> x509.CRLDistributionPoints:
        """The matching ``x509.CRLDistributionPoints`` value."""
        return x509.CRLDistributionPoints(
            [
                x509.DistributionPoint(
                    full_name=[x509.UniformResourceIdentifier(uri)],
                    relative_name=None,
                    reasons=None,
                    crl_issuer=None,
                )
                for uri in self.uris
            ]
        )


@dataclass(frozen=True)
class PolicyConstraints:
    """Skip counts for explicit policy and policy mapping."""

    require_explicit_policy: int | None = None
    inhibit_policy_mapping: int | None = None
    critical: bool = True

    def __post_init__(self) -> None:
        if self.require_explicit_policy is None and self.inhibit_policy_mapping is None:
            raise ConfigurationError(
                "policy_constraints requires require_explicit_policy or inhibit_policy_mapping"
            )
        if self.require_explicit_policy is not None:
            _non_negative("require_explicit_policy", self.require_explicit_policy)
        if self.inhibit_policy_mapping is not None:
            _non_negative("inhibit_policy_mapping", self.inhibit_policy_mapping)
        _flag("policy_constraints critical", self.critical)

    @classmethod
    def from_dict(cls, conf: Any) -> "PolicyConstraints":
        """Build from the ``policy_constraints`` profile entry."""
        conf = _mapping(
            "policy_constraints",
            conf,
            ("require_explicit_policy", "inhibit_policy_mapping", "critical"),
        )
        return cls(
            require_explicit_policy=conf.get("require_explicit_policy"),
            inhibit_policy_mapping=conf.get("inhibit_policy_mapping"),
            critical=conf.get("critical", True),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        data: dict[str, Any] = {}
        if self.require_explicit_policy is not None:
            data["require_explicit_policy"] = self.require_explicit_policy
        if self.inhibit_policy_mapping is not None:
            data["inhibit_policy_mapping"] = self.inhibit_policy_mapping
        data["critical"] = self.critical
        return data

    @property
    def extension_type(self) -> x509.PolicyConstraints:
        """The matching ``x509.PolicyConstraints`` value."""
        return x509.PolicyConstraints(
            require_explicit_policy=self.require_explicit_policy,
            inhibit_policy_mapping=self.inhibit_policy_mapping,
        )


@dataclass(frozen=True)
class InhibitAnyPolicy:
    """Number of certificates after which anyPolicy stops matching."""

    value: int
    critical: bool = True

    def __post_init__(self) -> None:
        _non_negative("inhibit_any_policy value", self.value)
        _flag("inhibit_any_policy critical", self.critical)

    @classmethod
    def from_dict(cls, conf: Any) -> "InhibitAnyPolicy":
        """Build from the ``inhibit_any_policy`` profile entry."""
        conf = _mapping("inhibit_any_policy", conf, ("value", "critical"))
        if "value" not in conf:
            raise ConfigurationError("inhibit_any_policy requires a value")
        return cls(value=conf["value"], critical=conf.get("critical", True))

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        return {"value": self.value, "critical": self.critical}

    @property
    def extension_type(self) -> x509.InhibitAnyPolicy:
        """The matching ``x509.InhibitAnyPolicy`` value."""
        return x509.InhibitAnyPolicy(skip_certs=self.value)


@dataclass(frozen=True)
class GeneralName:
    """A typed name used in name constraints: DNS, email, URI, IP or dirName."""

    type: str
    value: str

    def __post_init__(self) -> None:
        if self.type not in GENERAL_NAME_TYPES:
            raise ConfigurationError(
                f"unknown general name type {self.type!r}; "
                f"permitted: {', '.join(GENERAL_NAME_TYPES)}"
            )
        if not isinstance(self.value, str) or not self.value:
            raise ConfigurationError(f"{self.type} name value must be a non-empty string")
        try:
            self.to_x509()
        except ValueError as e:
            raise ConfigurationError(f"invalid {self.type} name {self.value!r}") from e

    @classmethod
    def from_dict(cls, conf: Any) -> "GeneralName":
        conf = _mapping("general name", conf, ("type", "value"))
        return cls(type=conf.get("type"), value=conf.get("value"))

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "value": self.value}

    def to_x509(self) -> x509.GeneralName:
        return GENERAL_NAME_TYPES[self.type](self.value)


GENERAL_NAME_TYPES = {
    "DNS": x509.DNSName,
    "email": x509.RFC822Name,
    "URI": x509.UniformResourceIdentifier,
    "IP": lambda value: x509.IPAddress(ipaddress.ip_network(value)),
    "dirName": lambda value: x509.DirectoryName(x509.Name.from_rfc4514_string(value)),
}


@dataclass(frozen=True)
class NameConstraints:
    """Permitted and excluded name subtrees for a CA."""

    permitted: tuple[GeneralName, ...] = ()
    excluded: tuple[GeneralName, ...] = ()
    critical: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "permitted", tuple(self.permitted))
        object.__setattr__(self, "excluded", tuple(self.excluded))
        if not all(isinstance(n, GeneralName) for n in self.permitted + self.excluded):
            raise TypeError("name constraints entries must be GeneralName instances")
        if not self.permitted and not self.excluded:
            raise ConfigurationError("name_constraints requires permitted or excluded names")
        _flag("name_constraints critical", self.critical)

    @classmethod
    def from_dict(cls, conf: Any) -> "NameConstraints":
        """Build from the ``name_constraints`` profile entry."""
        conf = _mapping("name_constraints", conf, ("permitted", "excluded", "critical"))
        names: dict[str, tuple[GeneralName, ...]] = {}
        for key in ("permitted", "excluded"):
            entries = conf.get(key) or []
            if not isinstance(entries, list):
                raise ConfigurationError(f"name_constraints {key} must be a list")
            names[key] = tuple(GeneralName.from_dict(entry) for entry in entries)
        return cls(critical=conf.get("critical", True), **names)

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        data: dict[str, Any] = {}
        if self.permitted:
            data["permitted"] = [n.to_dict() for n in self.permitted]
        if self.excluded:
            data["excluded"] = [n.to_dict() for n in self.excluded]
        data["critical"] = self.critical
        return data

    @property
    def extension_type(self) -> x509.NameConstraints:
        """The matching ``x509.NameConstraints`` value."""
        return x509.NameConstraints(
            permitted_subtrees=[n.to_x509() for n in self.permitted] or None,
            excluded_subtrees=[n.to_x509() for n in self.excluded] or None,
        )


@dataclass(frozen=True)
class OCSPNoCheck:
    """Marks an OCSP responder certificate as exempt from revocation checks."""

    critical: bool = False

    def __post_init__(self) -> None:
        _flag("ocsp_no_check critical", self.critical)

    @classmethod
    def from_dict(cls, conf: Any) -> "OCSPNoCheck | None":
        """Accepts the bare ``true`` marker or a mapping. False or null means absent."""
        if conf is None or conf is False:
            return None
        if conf is True:
            return cls()
        conf = _mapping("ocsp_no_check", conf, ("critical",))
        return cls(critical=conf.get("critical", False))

    def to_dict(self) -> dict[str, Any]:
        """Return the profile document form."""
        return {"critical": self.critical}

    @property
    def extension_type(self) -> x509.OCSPNoCheck:
        """The matching ``x509.OCSPNoCheck`` value."""
        return x509.OCSPNoCheck()
