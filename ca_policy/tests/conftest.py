"""Test fixtures for ca_policy tests."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from ca_policy.lib.cert import Cert, serialize_certificate, serialize_private_key

KEY_PASSWORD = "r509"


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "GB"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def _build_cert(
    subject: x509.Name,
    key: RSAPrivateKey,
    issuer: x509.Name,
    issuer_key: RSAPrivateKey,
    ca: bool,
) -> x509.Certificate:
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def ca_key() -> RSAPrivateKey:
    """Generate RSA private key for the test CA."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ocsp_key() -> RSAPrivateKey:
    """Generate RSA private key for the OCSP delegate."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def crl_key() -> RSAPrivateKey:
    """Generate RSA private key for the CRL delegate."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ca_certificate(ca_key: RSAPrivateKey) -> x509.Certificate:
    """Generate self-signed test CA certificate."""
    return _build_cert(_name("Test CA"), ca_key, _name("Test CA"), ca_key, ca=True)


@pytest.fixture(scope="session")
def ocsp_certificate(ocsp_key: RSAPrivateKey, ca_key: RSAPrivateKey) -> x509.Certificate:
    """Generate OCSP delegate certificate signed by the test CA."""
    return _build_cert(_name("Test OCSP Signer"), ocsp_key, _name("Test CA"), ca_key, ca=False)


@pytest.fixture(scope="session")
def crl_certificate(crl_key: RSAPrivateKey, ca_key: RSAPrivateKey) -> x509.Certificate:
    """Generate CRL delegate certificate signed by the test CA."""
    return _build_cert(_name("Test CRL Signer"), crl_key, _name("Test CA"), ca_key, ca=False)


@pytest.fixture(scope="session")
def ca_root(
    tmp_path_factory: pytest.TempPathFactory,
    ca_key: RSAPrivateKey,
    ca_certificate: x509.Certificate,
    ocsp_key: RSAPrivateKey,
    ocsp_certificate: x509.Certificate,
    crl_key: RSAPrivateKey,
    crl_certificate: x509.Certificate,
) -> Path:
    """Write key material to disk and return the directory.

    Creates:
        {root}/test_ca.cer, test_ca.key, test_ca_encrypted.key, test_ca.p12, test_ca.der
        {root}/test_ca_combined.pem (certificate followed by key)
        {root}/ocsp.cer, ocsp.key, crl.cer, crl.key
        {root}/ocsp_chain.pem (CA then OCSP certificate)
    """
    root = tmp_path_factory.mktemp("ca-root")
    password = KEY_PASSWORD.encode()

    (root / "test_ca.cer").write_bytes(serialize_certificate(ca_certificate))
    (root / "test_ca.key").write_bytes(serialize_private_key(ca_key))
    (root / "test_ca_encrypted.key").write_bytes(
        ca_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(password),
        )
    )
    (root / "test_ca.p12").write_bytes(
        pkcs12.serialize_key_and_certificates(
            name=b"test-ca",
            key=ca_key,
            cert=ca_certificate,
            cas=None,
            encryption_algorithm=serialization.BestAvailableEncryption(password),
        )
    )
    (root / "test_ca.der").write_bytes(ca_certificate.public_bytes(serialization.Encoding.DER))
    (root / "test_ca_combined.pem").write_bytes(
        serialize_certificate(ca_certificate) + serialize_private_key(ca_key)
    )
    (root / "ocsp.cer").write_bytes(serialize_certificate(ocsp_certificate))
    (root / "ocsp.key").write_bytes(serialize_private_key(ocsp_key))
    (root / "crl.cer").write_bytes(serialize_certificate(crl_certificate))
    (root / "crl.key").write_bytes(serialize_private_key(crl_key))
    (root / "ocsp_chain.pem").write_bytes(
        serialize_certificate(ca_certificate) + serialize_certificate(ocsp_certificate)
    )
    return root


@pytest.fixture
def ca_identity(ca_certificate: x509.Certificate, ca_key: RSAPrivateKey) -> Cert:
    """Return the test CA certificate with its private key."""
    return Cert(certificate=ca_certificate, key=ca_key)


@pytest.fixture
def ocsp_identity(ocsp_certificate: x509.Certificate, ocsp_key: RSAPrivateKey) -> Cert:
    """Return the OCSP delegate certificate with its private key."""
    return Cert(certificate=ocsp_certificate, key=ocsp_key)


@pytest.fixture
def crl_identity(crl_certificate: x509.Certificate, crl_key: RSAPrivateKey) -> Cert:
    """Return the CRL delegate certificate with its private key."""
    return Cert(certificate=crl_certificate, key=crl_key)


@pytest.fixture
def engine_loader(ca_key: RSAPrivateKey) -> MagicMock:
    """Return a fake engine loader whose engine hands out the CA key."""
    loader = MagicMock()
    loader.load.return_value.load_private_key.return_value = ca_key
    return loader


@pytest.fixture
def ca_document() -> dict:
    """Return a parsed configuration document with one fully populated CA."""
    return {
        "test_ca": {
            "ca_cert": {"cert": "test_ca.cer", "key": "test_ca.key"},
            "ocsp_cert": {"cert": "ocsp.cer", "key": "ocsp.key"},
            "crl_cert": {"cert": "crl.cer", "key": "crl.key"},
            "ocsp_chain": "ocsp_chain.pem",
            "ocsp_validity_hours": 48,
            "ocsp_start_skew_seconds": 120,
            "crl_validity_hours": 72,
            "crl_start_skew_seconds": 30,
            "crl_md": "SHA512",
            "crl_list_file": "list_crl.txt",
            "crl_number_file": "crl_number.txt",
            "profiles": {
                "server": {
                    "basic_constraints": {"ca": False},
                    "key_usage": {"value": ["digitalSignature", "keyEncipherment"]},
                    "extended_key_usage": {"value": ["serverAuth"]},
                    "subject_item_policy": {"required": ["CN"], "optional": ["O", "C"]},
                    "default_md": "SHA512",
                    "allowed_mds": ["SHA512", "SHA1"],
                },
                "subroot": {
                    "basic_constraints": {"ca": True, "path_length": 0},
                    "key_usage": {"value": ["keyCertSign", "cRLSign"], "critical": True},
                },
            },
        },
        "minimal_ca": {
            "ca_cert": {"cert": "test_ca.cer", "key": "test_ca.key"},
        },
    }


CA_DOCUMENT_YAML = """\
test_ca:
  ca_cert:
    cert: test_ca.cer
    key: test_ca.key
  crl_list: list_crl.txt
  crl_number: crl_number.txt
  profiles:
    server:
      basic_constraints:
        ca: false
      extended_key_usage:
        value:
          - serverAuth
          - clientAuth
pkcs12_ca:
  ca_cert:
    pkcs12: test_ca.p12
    password: r509
engine_ca:
  ca_cert:
    cert: test_ca.cer
    engine:
      SO_PATH: /usr/lib/engines/pkcs11.so
      ID: pkcs11
    key_name: ca_key
engine_no_key_name_ca:
  ca_cert:
    cert: test_ca.cer
    engine:
      so_path: /usr/lib/engines/pkcs11.so
      id: pkcs11
"""


@pytest.fixture
def ca_yaml_file(tmp_path: Path) -> Path:
    """Write the YAML fixture document and return its path."""
    path = tmp_path / "config_test.yaml"
    path.write_text(CA_DOCUMENT_YAML)
    return path
