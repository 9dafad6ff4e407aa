"""Typed configuration loading and access.

Configuration is optional. It is read from the file given with --config, or
from `oht.toml` in the working directory if that exists. Command-line options
always win over values from the file.

Example oht.toml:

    [ocm]
    binary = "/usr/local/bin/ocm"

    [bundle]
    component_name_prefix = "example.org/"
    provider_name = "example"

    [unbundle]
    values_file = "localized-values.yaml"
    git_location_file = "git-location.json"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_table

__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_GIT_LOCATION_FILE",
    "DEFAULT_OCM_BINARY",
    "DEFAULT_VALUES_FILE",
    "BundleConfig",
    "Config",
    "ConfigError",
    "OcmConfig",
    "UnbundleConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILE_NAME = "oht.toml"
DEFAULT_OCM_BINARY = "ocm"
DEFAULT_VALUES_FILE = "localized-values.yaml"
DEFAULT_GIT_LOCATION_FILE = "git-location.json"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class OcmConfig:
    """How to invoke the ocm binary."""

    binary: str = DEFAULT_OCM_BINARY


@dataclass(frozen=True, slots=True)
class BundleConfig:
    """Defaults for the required options of `oht bundle`."""

    component_name_prefix: str | None = None
    provider_name: str | None = None


@dataclass(frozen=True, slots=True)
class UnbundleConfig:
    """File names that `oht unbundle` writes into the target directory."""

    values_file: str = DEFAULT_VALUES_FILE
    git_location_file: str = DEFAULT_GIT_LOCATION_FILE


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    ocm: OcmConfig = field(default_factory=OcmConfig)
    bundle: BundleConfig = field(default_factory=BundleConfig)
    unbundle: UnbundleConfig = field(default_factory=UnbundleConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        ocm: StrDict = get_table(data, "ocm") or {}
        bundle: StrDict = get_table(data, "bundle") or {}
        unbundle: StrDict = get_table(data, "unbundle") or {}

        values_file = get_str(unbundle, "values_file") or DEFAULT_VALUES_FILE
        git_location_file = get_str(unbundle, "git_location_file") or DEFAULT_GIT_LOCATION_FILE
        for key, name in (("values_file", values_file), ("git_location_file", git_location_file)):
            if Path(name).name != name:
                raise ValueError(f"unbundle.{key} must be a plain file name, got {name!r}")

        return cls(
            ocm=OcmConfig(binary=get_str(ocm, "binary") or DEFAULT_OCM_BINARY),
            bundle=BundleConfig(
                component_name_prefix=get_str(bundle, "component_name_prefix"),
                provider_name=get_str(bundle, "provider_name"),
            ),
            unbundle=UnbundleConfig(
                values_file=values_file,
                git_location_file=git_location_file,
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to the config file

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like load_config, but a missing file yields the default config.

    A file that exists but cannot be parsed is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
