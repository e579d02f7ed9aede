"""
Server bootstrap.

Ties the server config, logging and plugin lifecycle together around a server
engine. The engine itself is supplied by the caller through the Host protocol.
"""

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

from saddle import log
from saddle.config import ServerConfig, ServerConfigError, read
from saddle.plugin.errors import SetupError
from saddle.plugin.manager import Cancellation, PluginManager
from saddle.plugin.plugin import Impl


class Host(Protocol):
    """The server engine plugins are run alongside."""

    def start(self) -> None:
        """Start the server; raise if it cannot be started."""
        ...

    def serve(self) -> None:
        """Block while the server runs, return once it has closed."""
        ...


def run(
    host_factory: Callable[[ServerConfig], Host],
    plugins: Iterable[Impl] = (),
    config_path: str | Path = "config.toml",
) -> None:
    """
    Run a server with plugins until it closes.

    Plugins are set up before the server starts and run once it has started.
    When the server closes, the plugins are told to stop and the call returns
    once all of them have.

    Args:
        host_factory: Builds the server engine from the server config
        plugins: Plugin implementations to add, in setup order
        config_path: Path of the server config file

    Raises:
        SystemExit: If the config, the plugins or the server fail to start
    """
    log.configure()
    logger = log.get_logger("saddle")

    try:
        cfg = read(config_path)
    except ServerConfigError as e:
        logger.critical(f"Unable to load server config: {e}")
        raise SystemExit(1) from e
    if cfg.console.debug:
        log.configure(debug=True)

    manager = PluginManager(cfg.plugins, logger)
    for impl in plugins:
        manager.add(impl)
    try:
        run_plugins = manager.initialize()
    except SetupError as e:
        logger.critical(f"Error loading plugins: {e}")
        raise SystemExit(1) from e

    host = host_factory(cfg)
    try:
        host.start()
    except Exception as e:
        logger.critical(f"Could not start server: {e}")
        raise SystemExit(1) from e

    cancellation = Cancellation()
    group = run_plugins(cancellation)
    try:
        host.serve()
    finally:
        # When the server stops, tell all running plugins to stop as well.
        cancellation.cancel()
        logger.info("Waiting for plugins to stop...")
        group.wait()
    logger.info("All plugins stopped.")
