"""Named registry of independently configured CAs."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .config import CAConfig
from .document import dump_yaml, parse_yaml, read_yaml
from .exceptions import ConfigurationError
from .key_material import EngineLoader
from .logging_config import LOGGER


class CAConfigPool:
    """Read-only mapping of CA name to CAConfig, in insertion order."""

    def __init__(self, configs: Mapping[str, CAConfig]) -> None:
        self._configs: dict[str, CAConfig] = dict(configs)

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __len__(self) -> int:
        return len(self._configs)

    def lookup(self, name: str) -> CAConfig | None:
        """Return the config registered under name, or None."""
        return self._configs.get(name)

    def all(self) -> list[CAConfig]:
        return list(self._configs.values())

    def names(self) -> set[str]:
        return set(self._configs)

    @classmethod
    def load(
        cls,
        top_level_key: str,
        document: Any,
        ca_root_path: Path | str | None = None,
        engine_loader: EngineLoader | None = None,
    ) -> "CAConfigPool":
        """Load every CA under document[top_level_key].

        All entries share ca_root_path and engine_loader. Any failing entry
        fails the whole load.

        Raises:
            ConfigurationError: If the key is missing or does not hold a mapping
        """
        if not isinstance(document, Mapping) or top_level_key not in document:
            raise ConfigurationError(f"'{top_level_key}' not found in document")
        entries = document[top_level_key]
        if not isinstance(entries, Mapping):
            raise ConfigurationError(f"'{top_level_key}' must map CA names to configs")

        configs = {
            name: CAConfig.load_from_dict(conf, ca_root_path, engine_loader)
            for name, conf in entries.items()
        }
        LOGGER.info("Loaded %d CA config(s) from '%s'", len(configs), top_level_key)
        return cls(configs)

    @classmethod
    def from_yaml(
        cls,
        top_level_key: str,
        yaml_data: str | bytes,
        ca_root_path: Path | str | None = None,
        engine_loader: EngineLoader | None = None,
    ) -> "CAConfigPool":
        return cls.load(top_level_key, parse_yaml(yaml_data), ca_root_path, engine_loader)

    @classmethod
    def load_yaml(
        cls,
        top_level_key: str,
        yaml_file: Path | str,
        ca_root_path: Path | str | None = None,
        engine_loader: EngineLoader | None = None,
    ) -> "CAConfigPool":
        return cls.load(top_level_key, read_yaml(yaml_file), ca_root_path, engine_loader)

    def serialize(self) -> dict[str, Any]:
        return {name: config.serialize() for name, config in self._configs.items()}

    def to_yaml(self) -> str:
        return dump_yaml(self.serialize())
