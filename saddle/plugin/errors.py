"""
Plugin Errors.

Fatal errors signal misuse of the plugin API by the embedding process and halt
it; everything deriving from PluginError is reported to the caller instead.
"""


class FatalPluginError(SystemExit):
    """
    Raised for programming errors that leave the plugin registry inconsistent.

    Derives from SystemExit so generic ``except Exception`` handlers do not
    swallow it, and an unhandled instance halts the process with its message.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class PluginError(Exception):
    """Base exception for recoverable plugin errors."""

    pass


class SetupError(PluginError):
    """Raised when a plugin fails its setup stage."""

    def __init__(self, plugin_name: str, cause: BaseException):
        super().__init__(f"could not set up plugin '{plugin_name}': {cause}")
        self.plugin_name = plugin_name


class ConfigError(PluginError):
    """Base exception for plugin configuration file errors."""

    pass


class ConfigPathError(ConfigError):
    """Raised when a config path is absolute or escapes the data folder."""

    pass


class ConfigFormatError(ConfigError):
    """Raised when a config file extension maps to no known format."""

    pass


class ConfigIOError(ConfigError):
    """Raised when a config file or its directory cannot be created, written or read."""

    pass


class ConfigEncodeError(ConfigError):
    """Raised when the default value of a config cannot be encoded."""

    pass


class ConfigDecodeError(ConfigError):
    """
    Raised when a config file cannot be decoded into its target value.

    Attributes:
        path: Path of the offending file
        stage: Either "decode" (parsing the text) or "apply" (binding the result)
    """

    def __init__(self, path, stage: str, cause: BaseException):
        super().__init__(f"could not {stage} config '{path}': {cause}")
        self.path = path
        self.stage = stage
