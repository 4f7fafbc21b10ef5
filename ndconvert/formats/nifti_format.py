"""NIfTI-1 support through nibabel."""

from __future__ import annotations

from typing import List, Optional

import nibabel as nib
import numpy as np
from nibabel.filebasedimages import ImageFileError
from nibabel.spatialimages import HeaderDataError

from ..axes import raster_to_position
from ..config import ReaderConfig
from ..errors import DatasetIOError, FormatError
from ..logging import get_logger
from ..metadata import ImageMetadata, Plane
from ..planes import Bounds
from .base import Destination, FormatPlugin, Source, require_existing

logger = get_logger(__name__)

# NIfTI dimension order, fastest first; dim 5 holds vector components
NIFTI_AXES = "XYZTCQQ"
MAX_DIMS = len(NIFTI_AXES)


class NiftiSource(Source):
    """
    Reads the voxel array of a NIfTI file.

    NIfTI stores ``x`` fastest, so the axes are reversed to the slowest-first
    order used everywhere else (``TZYX`` for a 4-D series). Intensity scaling
    in the header is applied; scaled images are read as doubles.
    """

    format_name = "NIfTI"

    def __init__(self, path: str, config: Optional[ReaderConfig] = None):
        super().__init__(path)
        require_existing(path)
        try:
            self._img = nib.load(str(path))
        except (ImageFileError, HeaderDataError) as exc:
            raise FormatError(f"Cannot read {path} as NIfTI: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot open {path}: {exc}") from exc

        shape = self._img.shape
        if len(shape) < 2:
            raise FormatError(f"{path} has {len(shape)} dimension(s); at least two are needed")
        axes = NIFTI_AXES[: len(shape)][::-1]

        header = self._img.header
        slope, inter = header.get_slope_inter()
        if (slope is None or slope == 1.0) and (inter is None or inter == 0.0):
            dtype = header.get_data_dtype()
        else:
            dtype = np.dtype(np.float64)
        self.images = [
            ImageMetadata.from_array_info(
                shape[::-1],
                axes,
                dtype,
                little_endian=header.endianness == "<" if dtype.itemsize > 1 else True,
                name=str(path),
            )
        ]

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        metadata = self.images[image_index]
        position = raster_to_position(metadata.non_planar_lengths, flat_index)
        y_slice, x_slice = bounds.slices
        try:
            data = self._img.dataobj[(x_slice, y_slice) + tuple(reversed(position))]
        except (HeaderDataError, ValueError) as exc:
            raise FormatError(f"Cannot read plane {flat_index} of {self.path}: {exc}") from exc
        return np.asarray(data).T.astype(metadata.dtype, copy=False)

    def close(self) -> None:
        self._img.uncache()


class NiftiDestination(Destination):
    """
    Writes a single image as NIfTI-1 with an identity affine.

    Planes are collected in memory and the file is saved by :meth:`finish`;
    an aborted run drops them without touching the disk.
    """

    format_name = "NIfTI"

    def __init__(self, path: str, metadata: List[ImageMetadata]):
        super().__init__(path, metadata)
        if len(self.images) != 1:
            raise FormatError(f"NIfTI destination stores one image, got {len(self.images)}")
        image = self.images[0]
        if image.interleaved_samples() > 1:
            raise FormatError(
                "NIfTI cannot store interleaved samples; separate them into planes first"
            )
        if len(image.axes) > MAX_DIMS:
            raise FormatError(
                f"NIfTI stores at most {MAX_DIMS} dimensions, image has {len(image.axes)}"
            )
        self._buffer: Optional[np.ndarray] = None

    def _write_plane(self, image_index: int, sequential_no: int, plane: Plane) -> None:
        metadata = self.images[0]
        if self._buffer is None:
            self._buffer = np.zeros(metadata.shape, dtype=metadata.dtype.newbyteorder("="))
        position = raster_to_position(metadata.non_planar_lengths, sequential_no)
        self._buffer[tuple(position)] = plane.data

    def finish(self) -> None:
        if self._buffer is None:
            return
        buffer, self._buffer = self._buffer, None
        try:
            nifti_img = nib.Nifti1Image(buffer.T, np.eye(4))
            nib.save(nifti_img, self.path)
        except (HeaderDataError, ImageFileError) as exc:
            raise FormatError(f"Cannot write {self.path}: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot write {self.path}: {exc}") from exc
        logger.debug("Saved %s", self.path)

    def abort(self) -> None:
        self._buffer = None

    def close(self) -> None:
        self._buffer = None


class NiftiFormat(FormatPlugin):
    """Format plugin for NIfTI-1 files."""

    name = "NIfTI"
    suffixes = (".nii", ".nii.gz")

    def create_source(self, path: str, config: ReaderConfig) -> NiftiSource:
        return NiftiSource(path, config)

    def create_destination(
        self, path: str, metadata: List[ImageMetadata]
    ) -> NiftiDestination:
        return NiftiDestination(path, metadata)
