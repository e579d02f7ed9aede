"""
Plugin Manager.

This module provides plugin lifecycle management.

Key features:
- Plugin registry with a one-shot initialization guard
- Case-insensitive plugin name conflict detection
- Sequential setup stage in registration order
- Concurrent run stage, one thread per plugin
- Cooperative shutdown through a shared cancellation signal
"""

import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import structlog

from saddle.plugin.errors import FatalPluginError, SetupError
from saddle.plugin.plugin import Impl, Plugin
from saddle.plugin.settings import Settings


class ManagerState(Enum):
    """Plugin manager state enumeration."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    SETTING_UP = "setting_up"
    SETUP_FAILED = "setup_failed"
    READY = "ready"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class Cancellation:
    """
    One-shot shutdown signal shared by every running plugin.

    Raising it more than once has no further effect. Any number of threads may
    wait on it.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Raise the signal."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the signal is raised.

        Args:
            timeout: Maximum number of seconds to wait, None to wait forever

        Returns:
            True if the signal was raised
        """
        return self._event.wait(timeout)


class RunGroup:
    """
    Threads running the plugins' run stage.

    Returned by the function obtained from PluginManager.initialize(). Waiting
    on it blocks until every plugin has returned from its run stage.
    """

    def __init__(self, cancellation: Cancellation):
        self.cancellation = cancellation
        self._threads: dict[str, threading.Thread] = {}

    def _start(self, name: str, target: Callable[[], None]) -> None:
        thread = threading.Thread(target=target, name=f"plugin-{name}", daemon=True)
        self._threads[name] = thread
        thread.start()

    def running(self) -> list[str]:
        """
        Get the names of the plugins still in their run stage.

        Returns:
            Plugin names in registration order
        """
        return [name for name, thread in self._threads.items() if thread.is_alive()]

    def done(self) -> bool:
        return not self.running()

    def wait(self, timeout: float | None = None) -> bool:
        """
        Wait for all plugins to stop running.

        No timeout is imposed by default: shutdown takes as long as the slowest
        plugin needs to notice the cancellation.

        Args:
            timeout: Maximum number of seconds to wait in total, None to wait
                until every plugin has stopped

        Returns:
            True if every plugin has stopped
        """
        if timeout is None:
            for thread in self._threads.values():
                thread.join()
            return True

        deadline = time.monotonic() + timeout
        for thread in self._threads.values():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            thread.join(remaining)
        return self.done()


class PluginManager:
    """
    Plugin lifecycle manager.

    Holds the plugins added before the server starts and drives them through
    the setup and run stages. Plugins must be added before initialize() is
    called; a manager can only be initialized once.
    """

    def __init__(self, settings: Settings | None = None, logger: Any = None):
        """
        Initialize PluginManager.

        Args:
            settings: Plugin settings, defaults to Settings()
            logger: Base structlog logger plugin loggers are derived from
        """
        self.settings = settings or Settings()
        self.logger = logger or structlog.get_logger("saddle.plugin")
        self._plugins: list[Plugin] = []
        self._state = ManagerState.IDLE
        self._lock = threading.Lock()
        self._group: RunGroup | None = None

    @property
    def plugins(self) -> tuple[Plugin, ...]:
        return tuple(self._plugins)

    @property
    def state(self) -> ManagerState:
        """
        Current lifecycle state.

        Once running, the state follows the cancellation signal and the run
        threads: SHUTTING_DOWN after cancellation, STOPPED when every plugin
        has returned afterwards.
        """
        if self._state is ManagerState.RUNNING and self._group is not None:
            if self._group.cancellation.cancelled:
                if self._group.done():
                    return ManagerState.STOPPED
                return ManagerState.SHUTTING_DOWN
        return self._state

    def _fatal(self, message: str) -> FatalPluginError:
        self.logger.critical(message)
        return FatalPluginError(message)

    def add(self, impl: Impl) -> Plugin:
        """
        Add a plugin to be loaded by the server.

        Must be called during bootstrap, before initialize(). Not safe to call
        from several threads at once.

        Args:
            impl: Plugin implementation

        Returns:
            Handle created for the plugin

        Raises:
            FatalPluginError: If plugins have already been loaded
        """
        if self._state is not ManagerState.IDLE:
            raise self._fatal(
                "Attempted to add a plugin after plugins have already been loaded."
            )
        plugin = Plugin(impl)
        self._plugins.append(plugin)
        return plugin

    def initialize(self) -> Callable[[Cancellation], RunGroup]:
        """
        Load all plugins and run their setup stage.

        Must only be called once, by the server. Setup runs synchronously for
        every plugin in the order they were added, and stops at the first
        plugin that fails.

        Returns:
            Function starting the run stage, to be called once after the server
            has started

        Raises:
            FatalPluginError: If called twice or two plugins share a name
            SetupError: If a plugin fails its setup stage
        """
        with self._lock:
            if self._state is not ManagerState.IDLE:
                raise self._fatal("Attempting to load plugins twice.")
            self._state = ManagerState.INITIALIZING

        self.logger.info(f"Loading {len(self._plugins)} plugin(s)...")
        # Two plugins with the same name would share a data folder.
        names: set[str] = set()
        for plugin in self._plugins:
            key = plugin.name.lower()
            if key in names:
                raise self._fatal(
                    f"Found multiple plugins with the same name '{plugin.name}'."
                )
            names.add(key)

        self._state = ManagerState.SETTING_UP
        root = Path.cwd() / self.settings.folder
        for plugin in self._plugins:
            plugin._assign(self.logger.bind(plugin=plugin.name), root / plugin.name)
            try:
                plugin.impl.setup(plugin)
            except Exception as e:
                self._state = ManagerState.SETUP_FAILED
                raise SetupError(plugin.name, e) from e
            plugin.logger.debug("Plugin set up")

        self._state = ManagerState.READY
        return self._run

    def _run(self, cancellation: Cancellation) -> RunGroup:
        with self._lock:
            if self._state is not ManagerState.READY:
                raise self._fatal("Attempting to run plugins twice.")
            self._state = ManagerState.RUNNING

        group = RunGroup(cancellation)
        self._group = group
        for plugin in self._plugins:
            group._start(plugin.name, self._runner(plugin, cancellation))
        self.logger.info(f"Started {len(self._plugins)} plugin(s).")
        return group

    def _runner(self, plugin: Plugin, cancellation: Cancellation) -> Callable[[], None]:
        def run() -> None:
            try:
                plugin.impl.run(cancellation, plugin)
            except Exception:
                plugin.logger.exception("Plugin stopped with an error")
            else:
                plugin.logger.debug("Plugin stopped")

        return run
