"""
Format plugins for ndconvert.

Each format is a pluggy plugin answering the hooks in
:mod:`ndconvert.formats.hookspecs`; :func:`get_global_plugin_manager`
registers the built-in formats and any installed through the
``ndconvert.formats`` entry point group.
"""

from .base import Destination, FormatPlugin, Source, hookimpl
from .memory import ArraySource, MemoryDestination
from .plugin_manager import (
    ENTRY_POINT_GROUP,
    get_global_plugin_manager,
    get_plugin_manager,
    register_builtin_formats,
)

__all__ = [
    "ArraySource",
    "Destination",
    "ENTRY_POINT_GROUP",
    "FormatPlugin",
    "MemoryDestination",
    "Source",
    "get_global_plugin_manager",
    "get_plugin_manager",
    "hookimpl",
    "register_builtin_formats",
]
