"""
Saddle - Plugin host for game servers.

Extends a server with plugins that are set up before the server starts and run
alongside it until it shuts down.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
