"""
Base classes for dataset sources, destinations and format plugins.

Format plugins are registered with the pluggy plugin manager and answer the
hooks declared in :mod:`ndconvert.formats.hookspecs`. A plugin returns a
:class:`Source` or :class:`Destination` for the paths it understands and
None for everything else.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional, Sequence

import numpy as np
import pluggy

from ..config import ReaderConfig
from ..errors import DatasetIOError, FormatError, RangeError
from ..logging import get_logger
from ..metadata import ImageMetadata, Plane
from ..planes import Bounds

hookimpl = pluggy.HookimplMarker("ndconvert")

logger = get_logger(__name__)

THUMBNAIL_SIZE = 128


class Source(ABC):
    """
    A readable dataset made of one or more images.

    Subclasses fill ``self.images`` and implement :meth:`_read_plane`.
    """

    format_name = "unknown"

    def __init__(self, path: str):
        self.path = str(path)
        self.images: List[ImageMetadata] = []

    @property
    def image_count(self) -> int:
        return len(self.images)

    def get_metadata(self, image_index: int = 0) -> ImageMetadata:
        if not 0 <= image_index < len(self.images):
            raise FormatError(
                f"{self.path} has {len(self.images)} image(s), "
                f"no image #{image_index}"
            )
        return self.images[image_index]

    def open_plane(
        self,
        image_index: int,
        flat_index: int,
        bounds: Optional[Bounds] = None,
        plane: Optional[Plane] = None,
    ) -> Plane:
        """
        Read one plane, cropped to ``bounds``.

        Args:
            image_index: Image to read from
            flat_index: Flat index of the plane in storage order
            bounds: Planar crop; the whole plane when None
            plane: Plane returned by a previous call. Its buffer is reused
                when shape and dtype match; callers must not keep references
                to its data across calls.

        Returns:
            The plane, either ``plane`` refilled or a new object

        Raises:
            RangeError: If ``flat_index`` is not a plane of the image
            FormatError: If the codec cannot decode the plane
        """
        metadata = self.get_metadata(image_index)
        if not 0 <= flat_index < metadata.plane_count:
            raise RangeError(
                f"Plane index {flat_index} is outside [0, {metadata.plane_count}) "
                f"for {self.path}"
            )
        if bounds is None:
            bounds = Bounds.full(metadata.planar_lengths)

        data = np.asarray(self._read_plane(image_index, flat_index, bounds))
        if data.shape != bounds.shape:
            raise FormatError(
                f"{self.format_name} codec returned a plane of shape {data.shape}, "
                f"expected {bounds.shape}"
            )
        color_table = self._color_table(image_index, flat_index)

        if plane is not None and plane.data.shape == data.shape and plane.data.dtype == data.dtype:
            np.copyto(plane.data, data)
            plane.flat_index = flat_index
            plane.bounds = bounds
            plane.color_table = color_table
            return plane
        return Plane(
            data=np.array(data, copy=True, order="C"),
            flat_index=flat_index,
            bounds=bounds,
            color_table=color_table,
        )

    def open_thumb_plane(self, image_index: int, flat_index: int) -> Plane:
        """Read a plane subsampled so its longest planar side is at most 128."""
        metadata = self.get_metadata(image_index)
        plane = self.open_plane(image_index, flat_index)
        height, width = metadata.planar_lengths[:2]
        step = max(1, -(-max(height, width) // THUMBNAIL_SIZE))
        plane.data = np.ascontiguousarray(plane.data[::step, ::step])
        return plane

    @abstractmethod
    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        """Return the samples of one plane cropped to ``bounds``."""

    def _color_table(self, image_index: int, flat_index: int) -> Optional[np.ndarray]:
        return None

    def close(self) -> None:
        """Release the underlying file handles."""

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self) -> str:
        images = ", ".join(meta.describe() for meta in self.images)
        return f"{type(self).__name__}({self.path!r}, images=[{images}])"


class Destination(ABC):
    """
    A writable dataset.

    Planes must be written in increasing sequential order; destinations
    may rely on this to stream planes to disk.

    Attributes:
        OPTIONS: Names of the extended options this destination accepts
            through :meth:`set_option` (e.g. ``"bigtiff"``)
    """

    format_name = "unknown"
    OPTIONS: frozenset = frozenset()

    def __init__(self, path: str, metadata: Sequence[ImageMetadata]):
        self.path = str(path)
        self.images: List[ImageMetadata] = list(metadata)
        self.options: dict = {}
        self._next_plane = {}

    def get_metadata(self, image_index: int = 0) -> ImageMetadata:
        if not 0 <= image_index < len(self.images):
            raise FormatError(f"{self.path} has no image #{image_index}")
        return self.images[image_index]

    def supports(self, option: str) -> bool:
        """Whether the destination understands ``option``."""
        return option in self.OPTIONS

    def set_option(self, option: str, value: Any) -> None:
        """
        Set an extended format option before the first plane is written.

        Raises:
            FormatError: If the option is not supported
        """
        if not self.supports(option):
            raise FormatError(f"{self.format_name} does not support option '{option}'")
        self.options[option] = value

    def plane_capacity(self, image_index: int = 0) -> int:
        """Number of planes this destination can store for an image."""
        return self.get_metadata(image_index).plane_count

    def write_plane(self, image_index: int, sequential_no: int, plane: Plane) -> None:
        """
        Store one plane.

        Raises:
            FormatError: If the plane is out of order, beyond the capacity or
                has an unexpected shape
        """
        metadata = self.get_metadata(image_index)
        expected = self._next_plane.get(image_index, 0)
        if sequential_no != expected:
            raise FormatError(
                f"Planes must be written in order: expected #{expected}, "
                f"got #{sequential_no}"
            )
        if sequential_no >= self.plane_capacity(image_index):
            raise FormatError(
                f"{self.format_name} stores {self.plane_capacity(image_index)} "
                f"plane(s), cannot write plane #{sequential_no}"
            )
        if plane.data.shape != metadata.planar_lengths:
            raise FormatError(
                f"Plane shape {plane.data.shape} does not match "
                f"{metadata.planar_lengths}"
            )
        self._write_plane(image_index, sequential_no, plane)
        self._next_plane[image_index] = sequential_no + 1

    @abstractmethod
    def _write_plane(self, image_index: int, sequential_no: int, plane: Plane) -> None:
        """Store one validated plane."""

    def finish(self) -> None:
        """
        Save data held back until every plane has arrived.

        Called once after the last plane of a successful run. Destinations
        that stream planes to disk have nothing to do here.

        Raises:
            FormatError: If the data cannot be encoded
            DatasetIOError: If the data cannot be written
        """

    def abort(self) -> None:
        """Discard a partially written dataset after a failed run."""

    def close(self) -> None:
        """Release file handles. Never saves pending data."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self.finish()
            else:
                self.abort()
        finally:
            self.close()


class FormatPlugin:
    """
    Base class for format plugins.

    Subclasses set ``name`` and ``suffixes`` and override
    :meth:`create_source` and/or :meth:`create_destination`; the hook
    implementations dispatch on the path suffix.
    """

    name = "unknown"
    suffixes: tuple = ()

    def accepts(self, path: str) -> bool:
        lowered = str(path).lower().rstrip("/")
        return any(lowered.endswith(suffix) for suffix in self.suffixes)

    @hookimpl
    def format_name(self) -> str:
        return self.name

    @hookimpl
    def format_suffixes(self) -> List[str]:
        return list(self.suffixes)

    @hookimpl
    def open_source(self, path: str, config: ReaderConfig) -> Optional[Source]:
        if not self.accepts(path):
            return None
        return self.create_source(path, config)

    @hookimpl
    def open_destination(
        self, path: str, metadata: List[ImageMetadata]
    ) -> Optional[Destination]:
        if not self.accepts(path):
            return None
        return self.create_destination(path, metadata)

    def create_source(self, path: str, config: ReaderConfig) -> Optional[Source]:
        return None

    def create_destination(
        self, path: str, metadata: List[ImageMetadata]
    ) -> Optional[Destination]:
        return None


def require_existing(path: str) -> Path:
    """Return ``path`` as a Path, raising DatasetIOError if it does not exist."""
    p = Path(path)
    if not p.exists():
        raise DatasetIOError(f"No such file: {p}")
    return p


def preload_file(path: str, block_size: int = 8 * 1024 * 1024) -> bytes:
    """
    Read a whole file into memory in fixed-size blocks, logging progress.

    Args:
        path: File to read
        block_size: Bytes requested per read (8 MB by default)

    Returns:
        The file contents

    Raises:
        DatasetIOError: If the file is missing or shorter than its size
    """
    p = require_existing(path)
    size = p.stat().st_size
    logger.info("Caching %d bytes:", size)
    buffer = bytearray(size)
    view = memoryview(buffer)
    read = 0
    with open(p, "rb") as fh:
        while read < size:
            count = fh.readinto(view[read : read + block_size])
            if not count:
                raise DatasetIOError(f"Unexpected end of file while preloading {p}")
            read += count
            logger.info("\tRead %d bytes (%d%% complete)", read, 100 * read // size)
    return bytes(buffer)
