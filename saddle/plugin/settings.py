"""Plugin settings shared by all plugins of a server."""

from dataclasses import dataclass


@dataclass
class Settings:
    """
    Server-wide plugin settings.

    Attributes:
        folder: Directory holding every plugin data folder, relative to the
            working directory. Usually "plugins".
    """

    folder: str = "plugins"
