"""TIFF, OME-TIFF and BigTIFF support through tifffile."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import tifffile

from ..axes import raster_to_position
from ..config import ReaderConfig
from ..errors import DatasetIOError, FormatError
from ..logging import get_logger
from ..metadata import ImageMetadata, Plane
from ..planes import Bounds
from .base import (
    Destination,
    FormatPlugin,
    Source,
    preload_file,
    require_existing,
)

logger = get_logger(__name__)


class TiffSource(Source):
    """
    Reads every series of a TIFF file as one image.

    Planes are read page by page when the series stores one plane per page;
    other layouts (e.g. ImageJ hyperstacks in a single strip) are decoded
    once and cached.
    """

    format_name = "TIFF"

    def __init__(self, path: str, config: Optional[ReaderConfig] = None):
        super().__init__(path)
        config = config or ReaderConfig()
        p = require_existing(path)
        # group=False stops tifffile from pulling in the other files of a
        # multi-file OME dataset
        flags = {} if config.group else {"is_ome": False}
        try:
            if config.preload:
                self._tif = tifffile.TiffFile(
                    io.BytesIO(preload_file(str(p))), name=p.name, **flags
                )
            else:
                self._tif = tifffile.TiffFile(str(p), **flags)
        except tifffile.TiffFileError as exc:
            raise FormatError(f"Cannot read {path} as TIFF: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot open {path}: {exc}") from exc

        self._arrays: Dict[int, np.ndarray] = {}
        try:
            self.images = [self._series_metadata(s) for s in self._tif.series]
        except FormatError:
            self._tif.close()
            raise
        if not self.images:
            self._tif.close()
            raise FormatError(f"{path} contains no image series")

    def _series_metadata(self, series) -> ImageMetadata:
        if len(series.shape) < 2:
            raise FormatError(
                f"Series {series.index} of {self.path} has shape {series.shape}; "
                "at least two axes are needed"
            )
        photometric = getattr(series.keyframe, "photometric", None)
        return ImageMetadata.from_array_info(
            series.shape,
            series.axes,
            series.dtype,
            little_endian=self._tif.byteorder == "<",
            indexed=photometric == tifffile.PHOTOMETRIC.PALETTE,
            name=series.name or "",
        )

    def _series_array(self, image_index: int) -> np.ndarray:
        if image_index not in self._arrays:
            logger.debug("Decoding series %d of %s into memory", image_index, self.path)
            self._arrays[image_index] = self._tif.series[image_index].asarray()
        return self._arrays[image_index]

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        metadata = self.images[image_index]
        series = self._tif.series[image_index]
        try:
            data = None
            if len(series.pages) == metadata.plane_count:
                page_data = self._tif.asarray(key=flat_index, series=image_index)
                if page_data.size == int(np.prod(metadata.planar_lengths)):
                    data = page_data.reshape(metadata.planar_lengths)
            if data is None:
                array = self._series_array(image_index)
                position = raster_to_position(metadata.non_planar_lengths, flat_index)
                data = array[tuple(position)]
        except (tifffile.TiffFileError, ValueError) as exc:
            raise FormatError(
                f"Cannot decode plane {flat_index} of {self.path}: {exc}"
            ) from exc
        return data[bounds.slices]

    def _color_table(self, image_index: int, flat_index: int) -> Optional[np.ndarray]:
        if not self.images[image_index].indexed:
            return None
        return self._tif.series[image_index].keyframe.colormap

    def close(self) -> None:
        self._arrays.clear()
        self._tif.close()


class TiffDestination(Destination):
    """
    Writes a single image as a shaped TIFF (axes stored in the description).

    Uncompressed planes stream into a ``tifffile.memmap`` as they arrive.
    With compression the planes are collected in memory and encoded by
    :meth:`finish`. An aborted run leaves no file behind.
    """

    format_name = "TIFF"
    OPTIONS = frozenset({"bigtiff", "compression"})

    def __init__(self, path: str, metadata: List[ImageMetadata]):
        super().__init__(path, metadata)
        if len(self.images) != 1:
            raise FormatError(
                f"TIFF destination stores one image, got {len(self.images)}"
            )
        samples = self.images[0].interleaved_samples()
        if samples not in (1, 3, 4):
            raise FormatError(
                f"TIFF cannot store {samples} interleaved samples per pixel; "
                "separate them into planes first"
            )
        self._photometric = "rgb" if samples > 1 else "minisblack"
        self._target: Optional[np.ndarray] = None

    def _write_kwargs(self) -> dict:
        return dict(
            metadata={"axes": self.images[0].axis_string},
            photometric=self._photometric,
            bigtiff=bool(self.options.get("bigtiff", False)),
        )

    def _open(self) -> None:
        metadata = self.images[0]
        dtype = metadata.dtype.newbyteorder("=")
        try:
            if self.options.get("compression"):
                self._target = np.zeros(metadata.shape, dtype=dtype)
            else:
                self._target = tifffile.memmap(
                    self.path, shape=metadata.shape, dtype=dtype, **self._write_kwargs()
                )
        except ValueError as exc:
            raise FormatError(f"Cannot create {self.path}: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot create {self.path}: {exc}") from exc
        logger.debug("Opened %s for %s", self.path, metadata.describe())

    def _write_plane(self, image_index: int, sequential_no: int, plane: Plane) -> None:
        if self._target is None:
            self._open()
        metadata = self.images[0]
        position = raster_to_position(metadata.non_planar_lengths, sequential_no)
        self._target[tuple(position)] = plane.data

    def finish(self) -> None:
        if self._target is None:
            return
        target, self._target = self._target, None
        compression = self.options.get("compression")
        try:
            if compression:
                tifffile.imwrite(
                    self.path, target, compression=compression, **self._write_kwargs()
                )
            else:
                target.flush()
        except (ValueError, KeyError) as exc:
            raise FormatError(f"Cannot write {self.path}: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot write {self.path}: {exc}") from exc

    def abort(self) -> None:
        if self._target is None:
            return
        streamed = not self.options.get("compression")
        self._target = None
        if streamed:
            # the memmap already created the file
            Path(self.path).unlink(missing_ok=True)
            logger.debug("Removed partial %s", self.path)

    def close(self) -> None:
        self._target = None


class TiffFormat(FormatPlugin):
    """Format plugin for TIFF files."""

    name = "TIFF"
    suffixes = (".ome.tiff", ".ome.tif", ".tiff", ".tif", ".btf", ".tf8")

    def create_source(self, path: str, config: ReaderConfig) -> TiffSource:
        return TiffSource(path, config)

    def create_destination(
        self, path: str, metadata: List[ImageMetadata]
    ) -> TiffDestination:
        return TiffDestination(path, metadata)
