"""
Plugin manager for ndconvert format plugins.

This module provides the plugin manager that discovers and manages format
plugins using the pluggy framework. Third-party formats register through the
``ndconvert.formats`` entry point group.
"""

from __future__ import annotations

import pluggy

from . import hookspecs

ENTRY_POINT_GROUP = "ndconvert.formats"


def get_plugin_manager() -> pluggy.PluginManager:
    """
    Create an empty ndconvert plugin manager.

    Returns:
        PluginManager instance configured with the ndconvert hook specs
    """
    pm = pluggy.PluginManager("ndconvert")
    pm.add_hookspecs(hookspecs)
    return pm


def register_builtin_formats(pm: pluggy.PluginManager) -> pluggy.PluginManager:
    """Register the formats shipped with ndconvert on ``pm``."""
    from .nifti_format import NiftiFormat
    from .png_format import PngFormat
    from .tiff_format import TiffFormat
    from .zarr_format import ZarrFormat

    for plugin in (TiffFormat(), ZarrFormat(), NiftiFormat(), PngFormat()):
        pm.register(plugin, name=plugin.name)
    return pm


# Global plugin manager instance
_plugin_manager = None


def get_global_plugin_manager() -> pluggy.PluginManager:
    """
    Get the global plugin manager, with built-in and installed formats.

    Returns:
        Global PluginManager instance
    """
    global _plugin_manager
    if _plugin_manager is None:
        pm = register_builtin_formats(get_plugin_manager())
        pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        _plugin_manager = pm
    return _plugin_manager
