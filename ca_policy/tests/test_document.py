"""Tests for document module."""

from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from ca_policy.lib.cert import Cert
from ca_policy.lib.document import dump_yaml, identity_stub, parse_yaml, read_yaml


class TestYamlHelpers:
    """Tests for YAML parsing and dumping."""

    def test_dump_keeps_key_order(self) -> None:
        """dump_yaml keeps insertion order and uses block style."""
        text = dump_yaml({"b": 1, "a": {"list": ["x", "y"]}})
        assert text == "b: 1\na:\n  list:\n  - x\n  - y\n"

    def test_parse_round_trip(self) -> None:
        """parse_yaml reads what dump_yaml writes."""
        document = {"ca": {"ocsp_validity_hours": 168, "crl_md": "SHA256"}}
        assert parse_yaml(dump_yaml(document)) == document

    def test_read_yaml(self, tmp_path: Path) -> None:
        """read_yaml parses a file."""
        path = tmp_path / "doc.yaml"
        path.write_text("ca:\n  crl_md: SHA1\n")
        assert read_yaml(path) == {"ca": {"crl_md": "SHA1"}}

    def test_parse_empty(self) -> None:
        """An empty document parses to None."""
        assert parse_yaml("") is None


class TestIdentityStub:
    """Tests for identity_stub."""

    def test_certificate_only(self, ca_certificate: x509.Certificate) -> None:
        assert identity_stub(Cert(certificate=ca_certificate)) == {"cert": "<add_path>"}

    def test_software_key(self, ca_certificate: x509.Certificate, ca_key: RSAPrivateKey) -> None:
        assert identity_stub(Cert(certificate=ca_certificate, key=ca_key)) == {
            "cert": "<add_path>",
            "key": "<add_path>",
        }

    def test_hardware_key(self, ca_certificate: x509.Certificate, ca_key: RSAPrivateKey) -> None:
        cert = Cert(certificate=ca_certificate, key=ca_key, key_in_hardware=True)
        assert identity_stub(cert) == {
            "cert": "<add_path>",
            "engine": {"so_path": "<add_path>", "id": "<add_name>"},
        }
