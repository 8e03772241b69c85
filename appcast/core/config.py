"""Typed release configuration.

The generator ships with defaults for the iSoul project. An optional
``appcast.toml`` next to the bundle overrides any of them:

    [app]
    bundle = "iSoul.app"
    owner = "arranger1044"
    repo = "iSoul"

    [files]
    signing_key = "dsa_priv.pem"
    template = "appcast.xml"

    [stable]
    feed_url = "http://arranger1044.github.com/iSoul/appcast.xml"
    output = "../appcast.xml"

    [nightly]
    output = "../appcast-nightly.xml"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_table

__all__ = [
    "CONFIG_FILENAME",
    "AppConfig",
    "ChannelConfig",
    "Config",
    "ConfigError",
    "FilesConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "appcast.toml"

DEFAULT_BUNDLE = "iSoul.app"
DEFAULT_OWNER = "arranger1044"
DEFAULT_REPO = "iSoul"
DEFAULT_SIGNING_KEY = "dsa_priv.pem"
DEFAULT_TEMPLATE = "appcast.xml"

STABLE_FEED_NAME = "appcast.xml"
NIGHTLY_FEED_NAME = "appcast-nightly.xml"


def default_feed_url(owner: str, repo: str, feed_name: str) -> str:
    """GitHub Pages location the feed is published to."""
    return f"http://{owner}.github.com/{repo}/{feed_name}"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class AppConfig:
    bundle: str = DEFAULT_BUNDLE
    owner: str = DEFAULT_OWNER
    repo: str = DEFAULT_REPO


@dataclass(frozen=True, slots=True)
class FilesConfig:
    """Input files, relative to the working directory."""

    signing_key: str = DEFAULT_SIGNING_KEY
    template: str = DEFAULT_TEMPLATE


@dataclass(frozen=True, slots=True)
class ChannelConfig:
    """Where one release channel's feed lives and is written.

    ``feed_url`` of None means the GitHub Pages default for the owner/repo.
    """

    output: str
    feed_url: str | None = None


def _stable_channel() -> ChannelConfig:
    return ChannelConfig(output=f"../{STABLE_FEED_NAME}")


def _nightly_channel() -> ChannelConfig:
    return ChannelConfig(output=f"../{NIGHTLY_FEED_NAME}")


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    app: AppConfig = field(default_factory=AppConfig)
    files: FilesConfig = field(default_factory=FilesConfig)
    stable: ChannelConfig = field(default_factory=_stable_channel)
    nightly: ChannelConfig = field(default_factory=_nightly_channel)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        app: StrDict = get_table(data, "app") or {}
        files: StrDict = get_table(data, "files") or {}
        stable: StrDict = get_table(data, "stable") or {}
        nightly: StrDict = get_table(data, "nightly") or {}

        return cls(
            app=AppConfig(
                bundle=get_str(app, "bundle") or DEFAULT_BUNDLE,
                owner=get_str(app, "owner") or DEFAULT_OWNER,
                repo=get_str(app, "repo") or DEFAULT_REPO,
            ),
            files=FilesConfig(
                signing_key=get_str(files, "signing_key") or DEFAULT_SIGNING_KEY,
                template=get_str(files, "template") or DEFAULT_TEMPLATE,
            ),
            stable=ChannelConfig(
                output=get_str(stable, "output") or f"../{STABLE_FEED_NAME}",
                feed_url=get_str(stable, "feed_url"),
            ),
            nightly=ChannelConfig(
                output=get_str(nightly, "output") or f"../{NIGHTLY_FEED_NAME}",
                feed_url=get_str(nightly, "feed_url"),
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling import and parse errors."""
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
        path: Path to appcast.toml

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
    """Load config from file, or the defaults if the file doesn't exist.

    A file that exists but cannot be parsed is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
