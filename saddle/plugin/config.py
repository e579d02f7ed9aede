"""
Plugin Configuration Files.

This module creates and loads configuration files inside a plugin's data
folder. It is meant for configuration only: files a plugin edits while running
should be managed by the plugin itself.

Key features:
- Format chosen from the file extension (JSON, TOML, YAML)
- Missing files created from a verbatim default or from the encoded target
- Decoding always runs, so the target is filled the same way on every start
- Paths confined to the plugin's data folder
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from saddle.plugin import formats, values
from saddle.plugin.errors import (
    ConfigDecodeError,
    ConfigEncodeError,
    ConfigIOError,
    ConfigPathError,
)

if TYPE_CHECKING:
    from saddle.plugin.plugin import Plugin


@dataclass
class Config:
    """
    Specification of a plugin configuration file.

    Attributes:
        path: File path relative to the plugin data folder, e.g. "bar.json"
            for ./plugins/foo/bar.json. Must not be absolute. The extension
            selects the format.
        value: Object the file is decoded into, usually a dataclass instance
            or a dict. When no default is given its current content is
            encoded to create the file.
        default: Verbatim content for the file when it does not exist yet.
            The written content is decoded into value as well.
    """

    path: str | os.PathLike
    value: Any
    default: str = ""


def resolve(plugin: "Plugin", path: str | os.PathLike) -> Path:
    """
    Resolve a config path inside the plugin data folder.

    Raises:
        ConfigPathError: If the path is absolute or leaves the data folder
    """
    if os.path.isabs(path):
        raise ConfigPathError(
            f"plugin config file paths should not be absolute, got '{path}'"
        )

    folder = plugin.data_folder()
    resolved = Path(os.path.normpath(folder / path))
    # Make sure that the plugin does not try to make configuration files elsewhere.
    if resolved == folder or not resolved.is_relative_to(folder):
        raise ConfigPathError(
            f"plugin config files should be in the plugin data folder, got '{path}'"
        )
    return resolved


def load(plugin: "Plugin", config: Config) -> None:
    """
    Load a configuration file, creating it first if it does not exist.

    Args:
        plugin: Plugin owning the data folder the file lives in
        config: Specification of the file

    Raises:
        ConfigError: If the path, format, file I/O or decoding fails
    """
    path = resolve(plugin, config.path)
    fmt = formats.for_path(path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigIOError(
            f"could not create directory for config file '{path}': {e}"
        ) from e

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        text = _create(path, fmt, config)
        plugin.logger.info("Created config file", path=str(path), format=fmt.name)
    except UnicodeDecodeError as e:
        raise ConfigDecodeError(path, "decode", e) from e
    except OSError as e:
        raise ConfigIOError(f"could not open config '{path}': {e}") from e

    try:
        document = fmt.decode(text)
    except Exception as e:
        raise ConfigDecodeError(path, "decode", e) from e
    try:
        values.apply(config.value, document)
    except (TypeError, AttributeError) as e:
        raise ConfigDecodeError(path, "apply", e) from e


def load_all(plugin: "Plugin", *configs: Config) -> None:
    """
    Load several configuration files in order, stopping at the first error.
    """
    for config in configs:
        load(plugin, config)


def _create(path: Path, fmt: formats.Format, config: Config) -> str:
    if config.default:
        text = config.default
    else:
        try:
            text = fmt.encode(values.to_document(config.value))
        except Exception as e:
            raise ConfigEncodeError(
                f"could not encode default config '{path}': {e}"
            ) from e

    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ConfigIOError(f"could not write config '{path}': {e}") from e
    return text
