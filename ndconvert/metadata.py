"""Dataset metadata and plane containers.

An :class:`ImageMetadata` describes one image of a dataset: its axes in
native storage order (slowest first), its pixel type and byte order. The
trailing ``planar_axis_count`` axes are packed inside a single plane; the
remaining axes select which plane to fetch.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np
from attrs import define, evolve, field

from .enums import AxisType
from .errors import FormatError
from .pixels import PixelType, encode


@define(frozen=True)
class AxisDescriptor:
    """
    One axis of a dataset.

    Attributes:
        type: Semantic identity of the axis
        length: Number of samples along the axis
        label: One-letter axis label as written by the format (e.g. ``"Q"``)
    """

    type: AxisType
    length: int
    label: str = ""

    def __attrs_post_init__(self):
        if self.length < 0:
            raise FormatError(f"Axis {self.label or self.type.name} has negative length")
        if not self.label:
            object.__setattr__(self, "label", self.type.label)

    def with_length(self, length: int) -> "AxisDescriptor":
        return evolve(self, length=length)


def axes_from_string(axes: str, shape: Sequence[int]) -> Tuple[AxisDescriptor, ...]:
    """Build axis descriptors from a tifffile style axes string and a shape.

    Raises:
        FormatError: If the axes string and shape differ in length
    """
    if len(axes) != len(shape):
        raise FormatError(f"Axes '{axes}' do not match shape {tuple(shape)}")
    return tuple(
        AxisDescriptor(AxisType.from_label(label), int(length), label.upper())
        for label, length in zip(axes, shape)
    )


def default_planar_axis_count(axes: Sequence[AxisDescriptor]) -> int:
    """Number of trailing axes packed in one plane.

    ``...YXS`` keeps interleaved samples inside the plane; otherwise the last
    two axes form the plane.
    """
    types = [axis.type for axis in axes]
    if len(types) >= 3 and types[-3:] == [AxisType.Y, AxisType.X, AxisType.SAMPLE]:
        return 3
    return min(2, len(types))


@define
class ImageMetadata:
    """
    Axis layout and pixel format of one image in a dataset.

    Attributes:
        axes: Axis descriptors in native storage order, slowest first
        pixel_type: Sample type of every plane
        little_endian: Byte order of the stored samples
        planar_axis_count: Number of trailing axes packed inside a plane
        indexed: Whether samples are indices into a color table
        name: Optional image name
    """

    axes: Tuple[AxisDescriptor, ...] = field(converter=tuple)
    pixel_type: PixelType
    little_endian: bool = True
    planar_axis_count: Optional[int] = None
    indexed: bool = False
    name: str = ""

    def __attrs_post_init__(self):
        if self.planar_axis_count is None:
            self.planar_axis_count = default_planar_axis_count(self.axes)
        if not 1 <= self.planar_axis_count <= len(self.axes):
            raise FormatError(
                f"Image with axes '{self.axis_string}' cannot have "
                f"{self.planar_axis_count} planar axes"
            )

    @classmethod
    def from_array_info(
        cls,
        shape: Sequence[int],
        axes: str,
        dtype,
        little_endian: Optional[bool] = None,
        **kwargs,
    ) -> "ImageMetadata":
        """Build metadata from a numpy shape, an axes string and a dtype.

        When ``little_endian`` is None it is taken from the dtype (native
        order for single-byte and native-order dtypes).
        """
        dtype = np.dtype(dtype)
        if little_endian is None:
            little_endian = _dtype_is_little_endian(dtype)
        return cls(
            axes=axes_from_string(axes, shape),
            pixel_type=PixelType.from_dtype(dtype),
            little_endian=little_endian,
            **kwargs,
        )

    @property
    def planar_axes(self) -> Tuple[AxisDescriptor, ...]:
        return self.axes[len(self.axes) - self.planar_axis_count :]

    @property
    def non_planar_axes(self) -> Tuple[AxisDescriptor, ...]:
        return self.axes[: len(self.axes) - self.planar_axis_count]

    @property
    def planar_lengths(self) -> Tuple[int, ...]:
        return tuple(axis.length for axis in self.planar_axes)

    @property
    def non_planar_lengths(self) -> Tuple[int, ...]:
        return tuple(axis.length for axis in self.non_planar_axes)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(axis.length for axis in self.axes)

    @property
    def plane_count(self) -> int:
        """Number of planes (product of the non-planar lengths, 1 if none)."""
        return math.prod(self.non_planar_lengths)

    @property
    def axis_string(self) -> str:
        return "".join(axis.label for axis in self.axes)

    @property
    def dtype(self) -> np.dtype:
        return self.pixel_type.dtype(self.little_endian)

    def axis_length(self, axis_type: AxisType) -> int:
        """Length of the first axis of ``axis_type``, 1 if the image has none."""
        for axis in self.axes:
            if axis.type is axis_type:
                return axis.length
        return 1

    def interleaved_samples(self) -> int:
        """Number of samples packed in each pixel, 1 when not interleaved."""
        planar = self.planar_axes
        if planar and planar[-1].type is AxisType.SAMPLE and len(planar) > 2:
            return planar[-1].length
        return 1

    def restricted(
        self, planar_lengths: Sequence[int], non_planar_lengths: Sequence[int]
    ) -> "ImageMetadata":
        """Copy of this metadata with new planar and non-planar lengths.

        Used to describe a destination holding a cropped, plane-restricted
        copy of this image.
        """
        if len(planar_lengths) != len(self.planar_axes) or len(
            non_planar_lengths
        ) != len(self.non_planar_axes):
            raise FormatError("Restricted lengths do not match the image axes")
        axes = [
            axis.with_length(int(length))
            for axis, length in zip(
                self.axes, tuple(non_planar_lengths) + tuple(planar_lengths)
            )
        ]
        return evolve(self, axes=tuple(axes))

    def describe(self) -> str:
        """Short human-readable summary, e.g. ``ZCYX (4, 2, 256, 256) UINT16``."""
        return f"{self.axis_string} {self.shape} {self.pixel_type.name}"


@define
class Plane:
    """
    Pixels of one (possibly cropped) plane.

    The pipeline recycles a Plane between iterations; ``data`` is overwritten
    in place when the next plane has the same shape and dtype.

    Attributes:
        data: Samples shaped like the cropped planar axes
        flat_index: Flat index of the plane in its source
        bounds: Planar bounds the plane was cropped to, if any
        color_table: Lookup table (shape ``(components, entries)``) for
            indexed planes, None otherwise
    """

    data: np.ndarray
    flat_index: int = 0
    bounds: Optional[object] = None
    color_table: Optional[np.ndarray] = None

    @property
    def pixel_type(self) -> PixelType:
        return PixelType.from_dtype(self.data.dtype)

    def to_bytes(self, little_endian: bool) -> bytes:
        """Plane samples as raw bytes in the requested byte order."""
        return encode(self.data, little_endian)


def _dtype_is_little_endian(dtype: np.dtype) -> bool:
    if dtype.byteorder == ">":
        return False
    if dtype.byteorder == "<":
        return True
    return np.little_endian
