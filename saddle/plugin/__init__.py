"""
Saddle Plugin System - Plugin lifecycle management and configuration files.

This module handles:
- Plugin registration before server startup
- Sequential setup stage and concurrent run stage
- Coordinated shutdown through a cancellation signal
- Plugin configuration files (JSON, TOML, YAML) in sandboxed data folders
"""

from saddle.plugin.config import Config
from saddle.plugin.errors import (
    ConfigDecodeError,
    ConfigEncodeError,
    ConfigError,
    ConfigFormatError,
    ConfigIOError,
    ConfigPathError,
    FatalPluginError,
    PluginError,
    SetupError,
)
from saddle.plugin.manager import Cancellation, ManagerState, PluginManager, RunGroup
from saddle.plugin.plugin import Impl, Plugin
from saddle.plugin.settings import Settings

__all__ = [
    "Cancellation",
    "Config",
    "ConfigDecodeError",
    "ConfigEncodeError",
    "ConfigError",
    "ConfigFormatError",
    "ConfigIOError",
    "ConfigPathError",
    "FatalPluginError",
    "Impl",
    "ManagerState",
    "Plugin",
    "PluginError",
    "PluginManager",
    "RunGroup",
    "SetupError",
    "Settings",
]
