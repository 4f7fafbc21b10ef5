"""
Opening sources and destinations through the format plugins.

These functions are the entry points used by the pipeline and the CLI:
they ask the registered plugins for a codec and apply the reader filters
requested by a :class:`~ndconvert.config.ReaderConfig`.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import ReaderConfig
from .errors import DatasetIOError, FormatError
from .filters import stitch_files, wrap_source
from .formats.base import Destination, FormatPlugin, Source
from .formats.plugin_manager import get_global_plugin_manager
from .logging import get_logger
from .metadata import ImageMetadata

logger = get_logger(__name__)


def _supported_suffixes() -> str:
    pm = get_global_plugin_manager()
    suffixes = sorted({s for group in pm.hook.format_suffixes() for s in group})
    return ", ".join(suffixes)


def _open_plain(path: str, config: ReaderConfig, location: Optional[str] = None) -> Source:
    pm = get_global_plugin_manager()
    if location is not None:
        # the name picks the format, the mapped file provides the bytes
        for plugin in pm.get_plugins():
            if isinstance(plugin, FormatPlugin) and plugin.accepts(path):
                source = plugin.create_source(location, config)
                if source is not None:
                    return source
        path = location
    source = pm.hook.open_source(path=path, config=config)
    if source is None:
        raise FormatError(
            f"No format can read {path} (supported: {_supported_suffixes()})"
        )
    return source


def open_source(
    path: Union[str, Path],
    config: Optional[ReaderConfig] = None,
    location: Optional[str] = None,
) -> Source:
    """
    Open a dataset for reading.

    Args:
        path: Dataset path; its suffix selects the format
        config: Reader options; defaults to :class:`ReaderConfig()`
        location: File on disk the name ``path`` is mapped to, if any

    Returns:
        A source, wrapped in the filters ``config`` asks for

    Raises:
        FormatError: If no plugin accepts the path or the codec rejects it
        DatasetIOError: If the file cannot be opened
    """
    config = config or ReaderConfig()
    path = str(path)
    if location is not None:
        logger.debug("Mapping %s to %s", path, location)
    if config.stitch and location is None:
        source = stitch_files(path, config, _open_plain)
    else:
        if config.stitch:
            logger.warning("File stitching is ignored for mapped file %s", path)
        source = _open_plain(path, config, location)
    try:
        return wrap_source(source, config)
    except Exception:
        source.close()
        raise


def open_destination(
    path: Union[str, Path], metadata: Union[ImageMetadata, Sequence[ImageMetadata]]
) -> Destination:
    """
    Create a destination for images described by ``metadata``.

    Nothing is written until the first plane arrives.

    Raises:
        FormatError: If no plugin can write the path or the images
    """
    if isinstance(metadata, ImageMetadata):
        metadata = [metadata]
    images: List[ImageMetadata] = list(metadata)
    pm = get_global_plugin_manager()
    destination = pm.hook.open_destination(path=str(path), metadata=images)
    if destination is None:
        raise FormatError(
            f"No format can write {path} (supported: {_supported_suffixes()})"
        )
    return destination


def exists(path: Union[str, Path]) -> bool:
    """
    Whether a dataset already exists at ``path``.

    Raises:
        DatasetIOError: If the file system cannot be queried
    """
    try:
        return Path(path).exists()
    except OSError as exc:
        raise DatasetIOError(f"Cannot query destination: {exc}") from exc
