"""
Tests for pluggy-based plugin manager functionality.

This module tests that the plugin manager and hook system dispatch paths
to the right format plugin.
"""

import numpy as np
import pytest

from ndconvert.config import ReaderConfig
from ndconvert.formats import (
    ArraySource,
    FormatPlugin,
    get_global_plugin_manager,
    get_plugin_manager,
    register_builtin_formats,
)
from ndconvert.formats.tiff_format import TiffFormat


class NpyFormat(FormatPlugin):
    """Toy plugin reading .npy files, as a third-party format would."""

    name = "NumPy"
    suffixes = (".npy",)

    def create_source(self, path, config):
        array = np.load(path)
        return ArraySource(array, "ZYX"[3 - array.ndim :], path=path)


class TestPluggyPluginManager:
    """Test pluggy plugin manager functionality."""

    def test_plugin_manager_creation(self):
        """Test that we can create a plugin manager."""
        pm = get_plugin_manager()
        assert pm is not None
        assert pm.project_name == "ndconvert"

    def test_builtin_formats_registered(self):
        """Test the built-in formats answer the name hook."""
        pm = register_builtin_formats(get_plugin_manager())
        names = set(pm.hook.format_name())
        assert names == {"TIFF", "Zarr", "NIfTI", "PNG"}

    def test_suffix_hook(self):
        """Test every built-in reports its suffixes."""
        pm = register_builtin_formats(get_plugin_manager())
        suffixes = {s for group in pm.hook.format_suffixes() for s in group}
        assert {".tif", ".zarr", ".nii.gz", ".png"} <= suffixes

    def test_register_third_party_format(self, tmp_path):
        """Test a registered plugin is consulted for its suffix."""
        pm = get_plugin_manager()
        plugin = NpyFormat()
        pm.register(plugin)
        assert plugin in pm.get_plugins()

        path = tmp_path / "data.npy"
        np.save(path, np.zeros((2, 3, 4), dtype=np.uint8))
        source = pm.hook.open_source(path=str(path), config=ReaderConfig())
        assert source.get_metadata(0).axis_string == "ZYX"

        pm.unregister(plugin)

    def test_unknown_suffix_returns_none(self, tmp_path):
        """Test no plugin answering leaves the firstresult hook at None."""
        pm = register_builtin_formats(get_plugin_manager())
        assert pm.hook.open_source(path=str(tmp_path / "a.xyz"), config=ReaderConfig()) is None

    @pytest.mark.parametrize(
        "path,accepted",
        [
            ("a.tif", True),
            ("A.TIFF", True),
            ("a.ome.tif", True),
            ("a.btf", True),
            ("a.tif.zarr", False),
            ("a.png", False),
        ],
    )
    def test_accepts(self, path, accepted):
        """Test suffix matching is case insensitive."""
        assert TiffFormat().accepts(path) is accepted

    def test_global_manager_is_shared(self):
        """Test the global manager is created once."""
        assert get_global_plugin_manager() is get_global_plugin_manager()
