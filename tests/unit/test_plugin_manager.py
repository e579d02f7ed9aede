"""
Tests for Plugin Manager.

This test suite covers:
1. Registration and the one-shot initialization guard
2. Case-insensitive name conflicts
3. Setup order and abort on failure
4. Data folder creation
5. Run stage threads and cooperative shutdown
6. Lifecycle state transitions
"""

import tempfile
import threading
from pathlib import Path

import pytest

from saddle.plugin import (
    Cancellation,
    FatalPluginError,
    Impl,
    ManagerState,
    Plugin,
    PluginManager,
    SetupError,
    Settings,
)


class RecordingImpl:
    """Plugin recording its setup calls and waiting for cancellation in run."""

    def __init__(self, name, calls=None, fail=False):
        self.name = name
        self.calls = calls if calls is not None else []
        self.fail = fail
        self.runs = 0
        self.release = threading.Event()
        self.observe_cancellation = True

    def setup(self, plugin):
        self.calls.append(self.name)
        if self.fail:
            raise ValueError(f"{self.name} is broken")

    def run(self, cancellation, plugin):
        self.runs += 1
        if self.observe_cancellation:
            cancellation.wait()
        else:
            self.release.wait()


def new_manager(tmpdir):
    return PluginManager(Settings(folder=str(Path(tmpdir) / "plugins")))


class TestRegistration:
    """Test adding plugins and the initialization guard."""

    def test_impl_protocol(self):
        """Plain classes with name, setup and run should satisfy Impl."""
        assert isinstance(RecordingImpl("a"), Impl)

    def test_add_keeps_registration_order(self):
        """Added plugins should be kept in the order they were added."""
        manager = PluginManager()
        for name in ["c", "a", "b"]:
            manager.add(RecordingImpl(name))

        assert [p.name for p in manager.plugins] == ["c", "a", "b"]
        assert manager.state is ManagerState.IDLE

    def test_add_after_initialize_is_fatal(self):
        """Adding a plugin after initialization should halt."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            manager.initialize()

            with pytest.raises(FatalPluginError, match="already been loaded"):
                manager.add(RecordingImpl("late"))

    def test_add_after_failed_initialize_is_fatal(self):
        """Adding should stay forbidden even when setup failed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            manager.add(RecordingImpl("broken", fail=True))
            with pytest.raises(SetupError):
                manager.initialize()

            with pytest.raises(FatalPluginError):
                manager.add(RecordingImpl("late"))

    def test_initialize_twice_is_fatal(self):
        """A second initialize() call should always halt."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            manager.add(RecordingImpl("a"))
            manager.initialize()

            with pytest.raises(FatalPluginError, match="twice"):
                manager.initialize()

    def test_initialize_twice_after_failure_is_fatal(self):
        """The second call should halt even if the first one failed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            manager.add(RecordingImpl("a", fail=True))
            with pytest.raises(SetupError):
                manager.initialize()

            with pytest.raises(FatalPluginError, match="twice"):
                manager.initialize()

    def test_concurrent_initialize_only_one_wins(self):
        """Only one of several concurrent initialize() calls should succeed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            results = {"ok": 0, "fatal": 0}
            lock = threading.Lock()

            def initialize():
                try:
                    manager.initialize()
                    outcome = "ok"
                except FatalPluginError:
                    outcome = "fatal"
                with lock:
                    results[outcome] += 1

            threads = [threading.Thread(target=initialize) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            assert results == {"ok": 1, "fatal": 7}

    def test_fatal_error_is_not_an_exception(self):
        """Fatal errors should bypass generic exception handlers."""
        assert issubclass(FatalPluginError, SystemExit)
        assert not issubclass(FatalPluginError, Exception)


class TestNameConflicts:
    """Test plugin name uniqueness."""

    def test_names_differing_in_case_are_rejected(self):
        """Names equal up to case should halt before any setup runs."""
        with tempfile.TemporaryDirectory() as tmpdir:
            calls = []
            manager = new_manager(tmpdir)
            manager.add(RecordingImpl("first", calls))
            manager.add(RecordingImpl("Foo", calls))
            manager.add(RecordingImpl("foo", calls))

            with pytest.raises(FatalPluginError, match="same name 'foo'"):
                manager.initialize()

            assert calls == []

    def test_distinct_names_are_accepted(self):
        """Different names should pass the check."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            manager.add(RecordingImpl("foo"))
            manager.add(RecordingImpl("foo-bar"))

            manager.initialize()
            assert manager.state is ManagerState.READY


class TestSetupStage:
    """Test the sequential setup stage."""

    def test_setup_runs_once_in_registration_order(self):
        """Every plugin should be set up once, in the order it was added."""
        with tempfile.TemporaryDirectory() as tmpdir:
            calls = []
            manager = new_manager(tmpdir)
            for name in ["d", "b", "a", "c"]:
                manager.add(RecordingImpl(name, calls))

            manager.initialize()

            assert calls == ["d", "b", "a", "c"]
            assert manager.state is ManagerState.READY

    def test_failing_setup_stops_later_plugins(self):
        """A failing setup should prevent setup of plugins added after it."""
        with tempfile.TemporaryDirectory() as tmpdir:
            calls = []
            manager = new_manager(tmpdir)
            manager.add(RecordingImpl("a", calls))
            manager.add(RecordingImpl("b", calls))
            manager.add(RecordingImpl("c", calls, fail=True))
            manager.add(RecordingImpl("d", calls))
            manager.add(RecordingImpl("e", calls))

            with pytest.raises(SetupError, match="could not set up plugin 'c'") as info:
                manager.initialize()

            assert calls == ["a", "b", "c"]
            assert info.value.plugin_name == "c"
            assert isinstance(info.value.__cause__, ValueError)
            assert manager.state is ManagerState.SETUP_FAILED

    def test_setup_assigns_logger_and_directory(self):
        """Handles should get a logger and a data directory during setup."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            seen = {}

            class Inspecting(RecordingImpl):
                def setup(self, plugin):
                    seen["logger"] = plugin.logger
                    seen["created"] = plugin.directory_created

            plugin = manager.add(Inspecting("inspect"))
            manager.initialize()

            assert seen["logger"] is not None
            assert seen["created"] is False
            assert not (Path(tmpdir) / "plugins" / "inspect").exists()
            assert plugin.data_folder() == Path(tmpdir) / "plugins" / "inspect"

    def test_relative_folder_uses_working_directory(self, monkeypatch):
        """A relative plugin folder should resolve against the working directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.chdir(tmpdir)
            manager = PluginManager(Settings(folder="plugins"))
            plugin = manager.add(RecordingImpl("rel"))
            manager.initialize()

            folder = plugin.data_folder()

            assert folder.is_absolute()
            assert folder == Path.cwd() / "plugins" / "rel"


class TestDataFolder:
    """Test lazy data folder creation."""

    def test_data_folder_created_on_first_call(self):
        """The folder should be created on first access only."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            plugin = manager.add(RecordingImpl("lazy"))
            manager.initialize()

            folder = plugin.data_folder()
            assert folder.is_dir()
            assert plugin.directory_created

            folder.rmdir()
            # Later calls are plain reads.
            assert plugin.data_folder() == folder
            assert not folder.exists()

    def test_data_folder_concurrent_first_calls(self):
        """Concurrent first calls should all return the created folder."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            plugin = manager.add(RecordingImpl("busy"))
            manager.initialize()

            results = []
            threads = [
                threading.Thread(target=lambda: results.append(plugin.data_folder()))
                for _ in range(8)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            assert len(set(results)) == 1
            assert results[0].is_dir()

    def test_data_folder_creation_failure_is_fatal(self):
        """Failing to create the folder should halt instead of returning a path."""
        with tempfile.TemporaryDirectory() as tmpdir:
            blocker = Path(tmpdir) / "plugins"
            blocker.write_text("not a directory")
            manager = new_manager(tmpdir)
            plugin = manager.add(RecordingImpl("blocked"))
            manager.initialize()

            with pytest.raises(FatalPluginError, match="Unable to create data folder"):
                plugin.data_folder()

    def test_data_folder_before_setup_is_fatal(self):
        """A handle without a directory should not hand out a path."""
        plugin = Plugin(RecordingImpl("early"))

        with pytest.raises(FatalPluginError):
            plugin.data_folder()


class TestRunStage:
    """Test the concurrent run stage and shutdown."""

    def test_run_starts_one_thread_per_plugin(self):
        """Each plugin should run once in its own thread."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            impls = [RecordingImpl(name) for name in ["a", "b", "c"]]
            for impl in impls:
                manager.add(impl)
            run = manager.initialize()

            cancellation = Cancellation()
            group = run(cancellation)
            assert manager.state is ManagerState.RUNNING
            assert not group.wait(timeout=0.1)
            assert group.running() == ["a", "b", "c"]

            cancellation.cancel()
            assert group.wait(timeout=5)
            assert [impl.runs for impl in impls] == [1, 1, 1]
            assert manager.state is ManagerState.STOPPED

    def test_shutdown_waits_for_slow_plugin(self):
        """Waiting should only finish once a plugin ignoring cancellation exits."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            a, b, c = RecordingImpl("a"), RecordingImpl("b"), RecordingImpl("c")
            b.observe_cancellation = False
            for impl in (a, b, c):
                manager.add(impl)
            run = manager.initialize()

            cancellation = Cancellation()
            group = run(cancellation)
            cancellation.cancel()

            assert not group.wait(timeout=0.5)
            assert group.running() == ["b"]
            assert manager.state is ManagerState.SHUTTING_DOWN

            b.release.set()
            assert group.wait(timeout=5)
            assert group.running() == []
            assert manager.state is ManagerState.STOPPED

    def test_cancel_twice_is_idempotent(self):
        """Raising the signal twice should behave like raising it once."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            impl = RecordingImpl("a")
            manager.add(impl)
            run = manager.initialize()

            cancellation = Cancellation()
            group = run(cancellation)
            cancellation.cancel()
            cancellation.cancel()

            assert cancellation.cancelled
            assert cancellation.wait(timeout=0)
            assert group.wait(timeout=5)
            assert impl.runs == 1
            assert manager.state is ManagerState.STOPPED

    def test_plugin_returning_early_is_stopped(self):
        """A plugin returning before cancellation should simply be stopped."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)

            class Quick(RecordingImpl):
                def run(self, cancellation, plugin):
                    self.runs += 1

            quick = Quick("quick")
            slow = RecordingImpl("slow")
            manager.add(quick)
            manager.add(slow)
            run = manager.initialize()

            cancellation = Cancellation()
            group = run(cancellation)
            assert not group.wait(timeout=0.2)
            assert group.running() == ["slow"]
            assert quick.runs == 1
            assert manager.state is ManagerState.RUNNING

            cancellation.cancel()
            assert group.wait(timeout=5)

    def test_plugin_raising_in_run_does_not_affect_others(self):
        """An error escaping run should only stop that plugin."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)

            class Crashing(RecordingImpl):
                def run(self, cancellation, plugin):
                    raise RuntimeError("boom")

            other = RecordingImpl("other")
            manager.add(Crashing("crashing"))
            manager.add(other)
            run = manager.initialize()

            cancellation = Cancellation()
            group = run(cancellation)
            assert not group.wait(timeout=0.2)
            assert group.running() == ["other"]

            cancellation.cancel()
            assert group.wait(timeout=5)
            assert other.runs == 1

    def test_run_twice_is_fatal(self):
        """The run function should only be usable once."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            run = manager.initialize()
            cancellation = Cancellation()
            run(cancellation)

            with pytest.raises(FatalPluginError, match="twice"):
                run(cancellation)

    def test_no_plugins(self):
        """Running without plugins should finish right away."""
        with tempfile.TemporaryDirectory() as tmpdir:
            manager = new_manager(tmpdir)
            run = manager.initialize()

            cancellation = Cancellation()
            group = run(cancellation)
            assert group.wait(timeout=1)
            cancellation.cancel()
            assert manager.state is ManagerState.STOPPED
