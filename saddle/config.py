"""
Server Configuration.

The server's main configuration lives in config.toml next to the working
directory. It holds saddle-specific settings such as the plugin folder and
console options, and is created with defaults on first start.
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from saddle.plugin import formats, values
from saddle.plugin.settings import Settings


class ServerConfigError(Exception):
    """Raised when the server config cannot be created or read."""

    pass


@dataclass
class ServerSettings:
    name: str = "Saddle Server"


@dataclass
class ConsoleSettings:
    """
    Console settings.

    Attributes:
        debug: Whether debug messages are logged
    """

    debug: bool = False


@dataclass
class ServerConfig:
    server: ServerSettings = field(default_factory=ServerSettings)
    plugins: Settings = field(default_factory=Settings)
    console: ConsoleSettings = field(default_factory=ConsoleSettings)


def read(path: str | Path = "config.toml") -> ServerConfig:
    """
    Read the server config, creating the file if it does not yet exist.

    Args:
        path: Path of the TOML config file

    Returns:
        The config, with defaults for every setting the file leaves out

    Raises:
        ServerConfigError: If the file cannot be written, read or decoded
    """
    path = Path(path)
    config = ServerConfig()

    if not path.exists():
        try:
            data = formats.TOML.encode(values.to_document(config))
        except Exception as e:
            raise ServerConfigError(f"failed encoding default config: {e}") from e
        try:
            path.write_text(data, encoding="utf-8")
        except OSError as e:
            raise ServerConfigError(f"failed creating config: {e}") from e
        return config

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ServerConfigError(f"error reading config: {e}") from e
    try:
        values.apply(config, formats.TOML.decode(text))
    except (tomllib.TOMLDecodeError, TypeError) as e:
        raise ServerConfigError(f"error decoding config: {e}") from e
    return config
