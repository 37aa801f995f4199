"""Configuration document helpers: YAML I/O and redacted identity stubs."""

from pathlib import Path
from typing import Any

import yaml

from .cert import Cert

PATH_PLACEHOLDER = "<add_path>"
NAME_PLACEHOLDER = "<add_name>"


def parse_yaml(yaml_data: str | bytes) -> Any:
    """Parse a YAML document into plain dicts, lists and scalars."""
    return yaml.safe_load(yaml_data)


def read_yaml(path: Path | str) -> Any:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If path does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"config file not found: {path}")
    return parse_yaml(path.read_text())


def dump_yaml(document: Any) -> str:
    """Render a document as block-style YAML, keeping key order."""
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)


def identity_stub(cert: Cert) -> dict[str, Any]:
    """Describe where an identity's material would live, without any of it.

    Paths become PATH_PLACEHOLDER and the engine id NAME_PLACEHOLDER.
    Passwords are never emitted.
    """
    stub: dict[str, Any] = {"cert": PATH_PLACEHOLDER}
    if cert.has_private_key:
        if cert.key_in_hardware:
            stub["engine"] = {"so_path": PATH_PLACEHOLDER, "id": NAME_PLACEHOLDER}
        else:
            stub["key"] = PATH_PLACEHOLDER
    return stub
