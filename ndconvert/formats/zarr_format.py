"""Zarr array and OME-Zarr (NGFF) support through zarr."""

from __future__ import annotations

import shutil
from typing import Any, List, Optional, Sequence

import numpy as np
import zarr

from ..axes import raster_to_position
from ..config import ReaderConfig
from ..errors import DatasetIOError, FormatError
from ..logging import get_logger
from ..metadata import ImageMetadata, Plane
from ..planes import Bounds
from .base import Destination, FormatPlugin, Source, require_existing

logger = get_logger(__name__)

DEFAULT_AXES = "TCZYX"


def _axes_from_names(names: Sequence[Any]) -> str:
    letters = []
    for name in names:
        if isinstance(name, dict):
            name = name.get("name", "q")
        letters.append(str(name)[:1].upper() or "Q")
    return "".join(letters)


def _multiscales(attrs) -> Optional[list]:
    if "multiscales" in attrs:
        return attrs["multiscales"]
    ome = attrs.get("ome")
    if isinstance(ome, dict):
        return ome.get("multiscales")
    return None


class ZarrSource(Source):
    """
    Reads a plain Zarr array or the full resolution level of an OME-Zarr group.

    Axis letters come from, in order: NGFF ``multiscales`` axes, an ``axes``
    attribute, xarray's ``_ARRAY_DIMENSIONS``, or the trailing letters of
    ``TCZYX``.
    """

    format_name = "Zarr"

    def __init__(self, path: str, config: Optional[ReaderConfig] = None):
        super().__init__(path)
        require_existing(path)
        try:
            node = zarr.open(str(path), mode="r")
        except (ValueError, KeyError) as exc:
            raise FormatError(f"Cannot read {path} as Zarr: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot open {path}: {exc}") from exc

        axes = None
        if isinstance(node, zarr.Array):
            self._array = node
            axes = node.attrs.get("axes") or node.attrs.get("_ARRAY_DIMENSIONS")
        else:
            multiscales = _multiscales(node.attrs)
            if not multiscales:
                raise FormatError(f"{path} is a Zarr group without NGFF multiscales")
            first = multiscales[0]
            self._array = node[first["datasets"][0]["path"]]
            axes = first.get("axes")

        shape = self._array.shape
        if axes:
            axis_string = axes if isinstance(axes, str) else _axes_from_names(axes)
        else:
            if len(shape) > len(DEFAULT_AXES):
                raise FormatError(f"Cannot guess axes for a {len(shape)}-D array in {path}")
            axis_string = DEFAULT_AXES[len(DEFAULT_AXES) - len(shape) :]

        self.images = [
            ImageMetadata.from_array_info(
                shape, axis_string, self._array.dtype, name=str(path)
            )
        ]

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        metadata = self.images[image_index]
        position = raster_to_position(metadata.non_planar_lengths, flat_index)
        try:
            return np.asarray(self._array[tuple(position) + bounds.slices])
        except (ValueError, KeyError) as exc:
            raise FormatError(f"Cannot read plane {flat_index} of {self.path}: {exc}") from exc


class ZarrDestination(Destination):
    """
    Writes a single image as a Zarr array chunked one plane per chunk.

    Planes are stored as they arrive; an aborted run removes the store.
    """

    format_name = "Zarr"

    def __init__(self, path: str, metadata: List[ImageMetadata]):
        super().__init__(path, metadata)
        if len(self.images) != 1:
            raise FormatError(f"Zarr destination stores one image, got {len(self.images)}")
        self._array = None

    def _open(self) -> None:
        metadata = self.images[0]
        chunks = (1,) * len(metadata.non_planar_axes) + metadata.planar_lengths
        try:
            self._array = zarr.open_array(
                store=self.path,
                mode="w",
                shape=metadata.shape,
                chunks=chunks,
                dtype=metadata.dtype.newbyteorder("="),
            )
            self._array.attrs["axes"] = metadata.axis_string
        except ValueError as exc:
            raise FormatError(f"Cannot create {self.path}: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot create {self.path}: {exc}") from exc

    def _write_plane(self, image_index: int, sequential_no: int, plane: Plane) -> None:
        if self._array is None:
            self._open()
        metadata = self.images[0]
        position = raster_to_position(metadata.non_planar_lengths, sequential_no)
        self._array[tuple(position)] = plane.data

    def abort(self) -> None:
        if self._array is None:
            return
        self._array = None
        shutil.rmtree(self.path)
        logger.debug("Removed partial %s", self.path)

    def close(self) -> None:
        self._array = None


class ZarrFormat(FormatPlugin):
    """Format plugin for Zarr arrays and OME-Zarr groups."""

    name = "Zarr"
    suffixes = (".ome.zarr", ".zarr")

    def create_source(self, path: str, config: ReaderConfig) -> ZarrSource:
        return ZarrSource(path, config)

    def create_destination(
        self, path: str, metadata: List[ImageMetadata]
    ) -> ZarrDestination:
        return ZarrDestination(path, metadata)
