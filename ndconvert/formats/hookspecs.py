"""
Plugin hook specifications for ndconvert format plugins.

This module defines the hook specifications that format plugins implement
using the pluggy framework.
"""

from __future__ import annotations

from typing import List, Optional

import pluggy

hookspec = pluggy.HookspecMarker("ndconvert")


@hookspec
def format_name() -> str:
    """
    Return the human-readable name of the format (e.g. ``"TIFF"``).

    Returns:
        String name of the format
    """


@hookspec
def format_suffixes() -> List[str]:
    """
    Return the lowercase path suffixes the format handles.

    Returns:
        List of suffixes such as ``[".tif", ".tiff"]``
    """


@hookspec(firstresult=True)
def open_source(path: str, config) -> Optional[object]:
    """
    Open ``path`` for reading if the plugin understands it.

    Args:
        path: Path of the dataset
        config: :class:`ndconvert.config.ReaderConfig` for the read

    Returns:
        A :class:`ndconvert.formats.base.Source`, or None to let another
        plugin try
    """


@hookspec(firstresult=True)
def open_destination(path: str, metadata: List[object]) -> Optional[object]:
    """
    Prepare ``path`` for writing if the plugin understands it.

    Nothing should be written to disk before the first plane arrives.

    Args:
        path: Path of the destination
        metadata: One :class:`ndconvert.metadata.ImageMetadata` per image

    Returns:
        A :class:`ndconvert.formats.base.Destination`, or None to let
        another plugin try
    """
