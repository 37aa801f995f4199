"""Certificate value type and helpers for PEM, DER and PKCS#12 material."""

import re
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12

PEM_BLOCK = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----.+?-----END \1-----", re.DOTALL)


def read_file(path: Path, what: str) -> bytes:
    """Read a key material file.

    Raises:
        FileNotFoundError: If path is not a regular file
    """
    if not path.is_file():
        raise FileNotFoundError(f"{what} not found: {path}")
    return path.read_bytes()


def pem_blocks(data: bytes) -> list[tuple[str, bytes]]:
    """Split PEM data into (label, block) pairs, in file order."""
    return [(m.group(1).decode("ascii"), m.group(0)) for m in PEM_BLOCK.finditer(data)]


def _password_bytes(password: str | bytes | None) -> bytes | None:
    if password is None or isinstance(password, bytes):
        return password
    return password.encode("utf-8")


def deserialize_certificate(data: bytes) -> x509.Certificate:
    """Deserialize the first certificate found in PEM data, or a DER certificate."""
    if b"-----BEGIN" not in data:
        return x509.load_der_x509_certificate(data)
    return x509.load_pem_x509_certificate(data)


def deserialize_private_key(
    data: bytes, password: str | bytes | None = None
) -> PrivateKeyTypes:
    """Deserialize the first private key found in PEM data, or a DER key.

    cryptography only parses the first PEM block, so combined files are
    scanned for the key block here.
    """
    if b"-----BEGIN" not in data:
        return serialization.load_der_private_key(data, password=_password_bytes(password))
    for label, block in pem_blocks(data):
        if label.endswith("PRIVATE KEY"):
            return serialization.load_pem_private_key(block, password=_password_bytes(password))
    raise ValueError("no private key found in PEM data")


def load_certificate_chain(data: bytes) -> list[x509.Certificate]:
    """Load every certificate of a PEM bundle, preserving bundle order.

    Raises:
        ValueError: If the bundle holds no certificate
    """
    return x509.load_pem_x509_certificates(data)


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def serialize_private_key(key: PrivateKeyTypes) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@dataclass(frozen=True)
class Cert:
    """A certificate with its optional private key.

    key_in_hardware marks keys held by a hardware engine. Such keys can sign
    but never be exported.
    """

    certificate: x509.Certificate
    key: PrivateKeyTypes | None = None
    key_in_hardware: bool = False

    @property
    def has_private_key(self) -> bool:
        return self.key is not None

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject

    def to_pem(self) -> bytes:
        return serialize_certificate(self.certificate)

    def to_der(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.DER)

    def key_to_pem(self) -> bytes:
        """Export the private key as unencrypted PKCS8 PEM.

        Raises:
            ValueError: If there is no key, or the key lives in hardware
        """
        if self.key is None:
            raise ValueError("certificate has no private key")
        if self.key_in_hardware:
            raise ValueError("private key is held in a hardware engine and cannot be exported")
        return serialize_private_key(self.key)

    @classmethod
    def from_pem(cls, data: bytes, password: str | bytes | None = None) -> "Cert":
        """Build from PEM or DER data. A private key block in the same PEM is picked up."""
        certificate = deserialize_certificate(data)
        key = None
        if any(label.endswith("PRIVATE KEY") for label, _ in pem_blocks(data)):
            key = deserialize_private_key(data, password)
        return cls(certificate=certificate, key=key)

    @classmethod
    def from_files(
        cls,
        cert_path: Path | str,
        key_path: Path | str | None = None,
        password: str | bytes | None = None,
    ) -> "Cert":
        """Load a certificate file and, optionally, its private key file.

        Raises:
            FileNotFoundError: If either file is missing
        """
        certificate = deserialize_certificate(read_file(Path(cert_path), "cert"))
        key = None
        if key_path is not None:
            key = deserialize_private_key(read_file(Path(key_path), "key"), password)
        return cls(certificate=certificate, key=key)

    @classmethod
    def from_pkcs12(cls, data: bytes, password: str | bytes | None = None) -> "Cert":
        """Build from a PKCS#12 bundle.

        Raises:
            ValueError: If the bundle cannot be decrypted or holds no certificate
        """
        key, certificate, _ = pkcs12.load_key_and_certificates(data, _password_bytes(password))
        if certificate is None:
            raise ValueError("PKCS#12 bundle does not contain a certificate")
        return cls(certificate=certificate, key=key)
