"""In-memory sources and destinations backed by numpy arrays."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from ..axes import raster_to_position
from ..errors import FormatError
from ..metadata import ImageMetadata, Plane
from ..planes import Bounds
from .base import Destination, Source


class ArraySource(Source):
    """
    Source serving the planes of a numpy array.

    Args:
        array: Samples in slowest-first axis order
        axes: Axis letters, one per array dimension (e.g. ``"ZYX"``)
        color_table: Optional lookup table; marks the image as indexed
        path: Name reported in messages
        planar_axis_count: Override the planar axis count inferred from
            ``axes``

    Attributes:
        reads: Flat indices read so far, in call order
    """

    format_name = "Memory"

    def __init__(
        self,
        array: np.ndarray,
        axes: str,
        color_table: Optional[np.ndarray] = None,
        path: str = "<memory>",
        planar_axis_count: Optional[int] = None,
    ):
        super().__init__(path)
        self.array = np.asarray(array)
        self.color_table = color_table
        self.reads: List[int] = []
        self.closed = False
        self.images = [
            ImageMetadata.from_array_info(
                self.array.shape,
                axes,
                self.array.dtype,
                planar_axis_count=planar_axis_count,
                indexed=color_table is not None,
                name=path,
            )
        ]

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        self.reads.append(flat_index)
        metadata = self.images[image_index]
        position = raster_to_position(metadata.non_planar_lengths, flat_index)
        return self.array[tuple(position)][bounds.slices]

    def _color_table(self, image_index: int, flat_index: int) -> Optional[np.ndarray]:
        return self.color_table

    def close(self) -> None:
        self.closed = True


class MemoryDestination(Destination):
    """
    Destination keeping copies of the planes written to it.

    Args:
        metadata: Image metadata, or a list of it
        capacity: Planes stored per image; every plane of the image when None
        path: Name reported in messages

    Attributes:
        planes: Written planes per image, keyed by sequential number
        writes: Sequential numbers written so far, in call order
        finished: Whether the run completed
        aborted: Whether the run failed; the planes are dropped
    """

    format_name = "Memory"
    OPTIONS = frozenset({"bigtiff", "compression"})

    def __init__(
        self,
        metadata: Union[ImageMetadata, Sequence[ImageMetadata]],
        capacity: Optional[int] = None,
        path: str = "<memory>",
    ):
        if isinstance(metadata, ImageMetadata):
            metadata = [metadata]
        super().__init__(path, metadata)
        self.capacity = capacity
        self.planes: Dict[int, Dict[int, np.ndarray]] = {}
        self.writes: List[int] = []
        self.finished = False
        self.aborted = False
        self.closed = False

    def plane_capacity(self, image_index: int = 0) -> int:
        if self.capacity is None:
            return super().plane_capacity(image_index)
        return self.capacity

    def _write_plane(self, image_index: int, sequential_no: int, plane: Plane) -> None:
        if self.closed:
            raise FormatError(f"{self.path} is closed")
        self.writes.append(sequential_no)
        self.planes.setdefault(image_index, {})[sequential_no] = plane.data.copy()

    def to_array(self, image_index: int = 0) -> np.ndarray:
        """Stack the written planes into an array shaped like the image."""
        metadata = self.get_metadata(image_index)
        result = np.zeros(metadata.shape, dtype=metadata.dtype)
        for sequential_no, data in self.planes.get(image_index, {}).items():
            position = raster_to_position(metadata.non_planar_lengths, sequential_no)
            result[tuple(position)] = data
        return result

    def finish(self) -> None:
        self.finished = True

    def abort(self) -> None:
        self.aborted = True
        self.planes.clear()

    def close(self) -> None:
        self.closed = True
