"""Configuration file handling for phpvm.

The configuration lives in ``<base>/config.json``::

    {
      "installDir": "/home/user/.local/share/phpvm/versions",
      "activeVersion": "8.2.0",
      "downloadCache": "/home/user/.local/share/phpvm/cache",
      "providers": [
        {"name": "official",
         "url": "https://windows.php.net/downloads/releases/",
         "verifyChecksum": true}
      ]
    }

A hand-written ``config.yaml`` with the same keys is accepted in its place.
When neither file exists, defaults are written to ``config.json``.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from phpvm.core.directory import get_base_directory, get_config_path
from phpvm.core.exceptions import ConfigError
from phpvm.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_URL = "https://windows.php.net/downloads/releases/"


@dataclass
class ProviderConfig:
    """A download source for PHP builds."""

    name: str
    url: str
    verify_checksum: bool = True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "url": self.url,
            "verifyChecksum": self.verify_checksum,
        }


@dataclass
class Config:
    """phpvm user configuration."""

    install_dir: Path
    download_cache: Path
    active_version: Optional[str] = None
    providers: List[ProviderConfig] = field(default_factory=list)
    path: Optional[Path] = None

    @classmethod
    def default(cls, base_dir: Optional[Path] = None) -> "Config":
        base = base_dir or get_base_directory()
        return cls(
            install_dir=base / "versions",
            download_cache=base / "cache",
            active_version=None,
            providers=[
                ProviderConfig(
                    name="official", url=DEFAULT_PROVIDER_URL, verify_checksum=True
                )
            ],
            path=get_config_path(base),
        )

    @classmethod
    def load(cls, base_dir: Optional[Path] = None) -> "Config":
        """
        Load configuration, creating the default file on first run.

        Args:
            base_dir: phpvm base directory (default: get_base_directory())

        Returns:
            Loaded configuration

        Raises:
            ConfigError: If the file exists but is invalid
        """
        base = base_dir or get_base_directory()
        json_path = get_config_path(base)
        yaml_path = json_path.with_suffix(".yaml")

        if json_path.exists():
            data = _read_json(json_path)
            source = json_path
        elif yaml_path.exists():
            data = _read_yaml(yaml_path)
            source = yaml_path
        else:
            logger.debug(f"Config file not found, writing defaults: {json_path}")
            config = cls.default(base)
            config.save()
            return config

        config = _parse_and_validate(data, base)
        config.path = source
        logger.debug(f"Loaded config from {source}")
        return config

    def save(self) -> None:
        """
        Save configuration to disk atomically.

        A YAML-sourced config is written back as YAML, otherwise as JSON.
        """
        path = self.path or get_config_path()
        if path.suffix in (".yaml", ".yml"):
            content = yaml.safe_dump(
                self.to_dict(), default_flow_style=False, sort_keys=False
            )
        else:
            content = json.dumps(self.to_dict(), indent=2)
        atomic_write(path, content)
        self.path = path
        logger.debug(f"Saved config to {path}")

    def to_dict(self) -> dict:
        return {
            "installDir": str(self.install_dir),
            "activeVersion": self.active_version,
            "downloadCache": str(self.download_cache),
            "providers": [p.to_dict() for p in self.providers],
        }


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e


def _parse_and_validate(data: Any, base_dir: Path) -> Config:
    """Build a Config from parsed file content, filling missing keys with defaults."""
    if data is None:
        raise ConfigError("Configuration file is empty")
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    defaults = Config.default(base_dir)

    install_dir = data.get("installDir")
    download_cache = data.get("downloadCache")
    active_version = data.get("activeVersion")
    if active_version is not None and not isinstance(active_version, str):
        raise ConfigError("'activeVersion' must be a string or null")

    providers_data = data.get("providers")
    if providers_data is None:
        providers = defaults.providers
    elif not isinstance(providers_data, list):
        raise ConfigError("'providers' must be a list")
    else:
        providers = [_parse_provider(p, i) for i, p in enumerate(providers_data)]

    return Config(
        install_dir=Path(install_dir).expanduser()
        if install_dir
        else defaults.install_dir,
        download_cache=Path(download_cache).expanduser()
        if download_cache
        else defaults.download_cache,
        active_version=active_version,
        providers=providers,
    )


def _parse_provider(data: Dict[str, Any], index: int) -> ProviderConfig:
    if not isinstance(data, dict):
        raise ConfigError(f"providers[{index}] must be a mapping")
    for key in ("name", "url"):
        if not data.get(key):
            raise ConfigError(f"providers[{index}] is missing '{key}'")
    return ProviderConfig(
        name=str(data["name"]),
        url=str(data["url"]),
        verify_checksum=bool(data.get("verifyChecksum", True)),
    )
