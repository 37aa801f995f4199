"""Message digest names accepted in profiles and CRL settings."""

from cryptography.hazmat.primitives import hashes

from .exceptions import ConfigurationError

DEFAULT_MD = "SHA256"

KNOWN_MDS: dict[str, type[hashes.HashAlgorithm]] = {
    "SHA1": hashes.SHA1,
    "SHA224": hashes.SHA224,
    "SHA256": hashes.SHA256,
    "SHA384": hashes.SHA384,
    "SHA512": hashes.SHA512,
    "MD5": hashes.MD5,
}


def normalize_md(name: object) -> str:
    """Return the canonical upper-case digest name.

    Raises:
        ConfigurationError: If name is not a known digest
    """
    if not isinstance(name, str) or name.upper() not in KNOWN_MDS:
        raise ConfigurationError(
            f"unknown message digest {name!r}; permitted: {', '.join(KNOWN_MDS)}"
        )
    return name.upper()


def hash_algorithm(name: str) -> hashes.HashAlgorithm:
    """Return a cryptography hash instance for a digest name."""
    return KNOWN_MDS[normalize_md(name)]()
