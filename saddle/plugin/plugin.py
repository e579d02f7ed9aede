"""
Plugin Handles.

This module defines what a plugin implementation looks like and the handle the
server gives every plugin to reach its logger, data folder and config files.
"""

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from saddle.plugin.errors import FatalPluginError

if TYPE_CHECKING:
    from saddle.plugin.config import Config
    from saddle.plugin.manager import Cancellation


@runtime_checkable
class Impl(Protocol):
    """
    A plugin implementation: a module extending the server.

    Attributes:
        name: Displayed name of the plugin, also used as its data folder name.
            It must be a valid folder name and stay the same while the server
            runs.
    """

    name: str

    def setup(self, plugin: "Plugin") -> None:
        """
        First stage of plugin initialization.

        Called synchronously before the server starts, in the order plugins
        were added. Define and load configuration files here. Raising aborts
        the server startup.
        """
        ...

    def run(self, cancellation: "Cancellation", plugin: "Plugin") -> None:
        """
        Second stage, called in a dedicated thread right after the server
        started.

        ``cancellation`` is raised when the server shuts down; wait on it to
        know when to stop. Returning means the plugin has stopped running.
        """
        ...


class Plugin:
    """
    Handle to a registered plugin.

    Created by the PluginManager when a plugin is added. The logger and data
    directory are assigned during setup and never change afterwards.
    """

    def __init__(self, impl: Impl):
        self._impl = impl
        self._logger: Any = None
        self._directory: Path | None = None
        self._directory_created = False
        self._directory_lock = threading.Lock()

    @property
    def impl(self) -> Impl:
        """The implementation this handle was created for."""
        return self._impl

    @property
    def name(self) -> str:
        return self._impl.name

    @property
    def logger(self) -> Any:
        """Logger bound with a ``plugin`` field naming this plugin."""
        return self._logger

    @property
    def directory_created(self) -> bool:
        return self._directory_created

    def _assign(self, logger: Any, directory: Path) -> None:
        self._logger = logger
        self._directory = directory

    def data_folder(self) -> Path:
        """
        Get the absolute path of the plugin's data folder.

        Configuration files and persistent plugin data belong here. The folder
        is created on the first call; if this is never called, no folder is
        created.

        Returns:
            Absolute path of the data folder

        Raises:
            FatalPluginError: If the folder cannot be created
        """
        if self._directory is None:
            raise FatalPluginError(
                f"Data folder of plugin '{self.name}' requested before setup."
            )
        if not self._directory_created:
            with self._directory_lock:
                if not self._directory_created:
                    try:
                        self._directory.mkdir(parents=True, exist_ok=True)
                    except OSError as e:
                        message = (
                            f"Unable to create data folder for plugin {self.name}: {e}"
                        )
                        self._logger.critical(message)
                        raise FatalPluginError(message) from e
                    self._directory_created = True
        return self._directory

    def with_configs(self, *configs: "Config") -> None:
        """
        Load (creating when missing) one or more configuration files.

        Files are handled in the order given; the first error is raised and
        the remaining files are skipped.
        """
        from saddle.plugin.config import load_all

        load_all(self, *configs)

    def __repr__(self) -> str:
        return f"Plugin({self.name!r})"
