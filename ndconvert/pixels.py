"""Pixel buffer codec.

Converts raw plane bytes to typed numpy arrays and back, honoring sample
width, signedness, float-ness and byte order, and prepares arrays for display.

The functions in this module are exact for every integer type: decoding and
re-encoding a buffer with the same parameters returns the original bytes.
``normalize`` is the only lossy operation and is meant for the display path
only, never for format conversion.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple

import numpy as np

from .errors import FormatError
from .logging import get_logger

logger = get_logger(__name__)

SUPPORTED_WIDTHS = (1, 2, 4, 8)
FLOAT_WIDTHS = (4, 8)


class PixelType(Enum):
    """Pixel types understood by the codec.

    Each member stores ``(bytes_per_pixel, is_signed, is_float)``.
    """

    INT8 = (1, True, False)
    UINT8 = (1, False, False)
    INT16 = (2, True, False)
    UINT16 = (2, False, False)
    INT32 = (4, True, False)
    UINT32 = (4, False, False)
    FLOAT = (4, True, True)
    DOUBLE = (8, True, True)
    INT64 = (8, True, False)
    UINT64 = (8, False, False)

    @property
    def bytes_per_pixel(self) -> int:
        return self.value[0]

    @property
    def is_signed(self) -> bool:
        return self.value[1]

    @property
    def is_float(self) -> bool:
        return self.value[2]

    def dtype(self, little_endian: bool = True) -> np.dtype:
        """numpy dtype for this pixel type in the given byte order."""
        return make_dtype(
            self.bytes_per_pixel, self.is_float, little_endian, signed=self.is_signed
        )

    def unsigned(self) -> "PixelType":
        """Unsigned counterpart of a signed integer type, else the type itself."""
        if self.is_float or not self.is_signed:
            return self
        return PixelType((self.bytes_per_pixel, False, False))

    @classmethod
    def from_dtype(cls, dtype) -> "PixelType":
        """Map a numpy dtype to a pixel type.

        Raises:
            FormatError: If the dtype has no pixel type (complex, bool, ...)
        """
        dtype = np.dtype(dtype)
        if dtype.kind == "f" and dtype.itemsize in FLOAT_WIDTHS:
            return cls((dtype.itemsize, True, True))
        if dtype.kind in "iu" and dtype.itemsize in SUPPORTED_WIDTHS:
            return cls((dtype.itemsize, dtype.kind == "i", False))
        raise FormatError(f"Unsupported pixel data type: {dtype}")


def make_dtype(
    bytes_per_pixel: int, is_float: bool, little_endian: bool, signed: bool = True
) -> np.dtype:
    """
    Build the numpy dtype for a sample layout.

    Args:
        bytes_per_pixel: Sample width in bytes (1, 2, 4 or 8)
        is_float: Whether samples are IEEE floating point (4 or 8 bytes only)
        little_endian: Byte order of the samples
        signed: Signedness of integer samples; ignored for floats

    Returns:
        The matching numpy dtype with an explicit byte order

    Raises:
        FormatError: If the width/float combination is not supported
    """
    if bytes_per_pixel not in SUPPORTED_WIDTHS:
        raise FormatError(f"Unsupported sample width: {bytes_per_pixel} bytes")
    if is_float and bytes_per_pixel not in FLOAT_WIDTHS:
        raise FormatError(
            f"Floating point samples must be 4 or 8 bytes, got {bytes_per_pixel}"
        )
    kind = "f" if is_float else ("i" if signed else "u")
    order = "<" if little_endian else ">"
    if bytes_per_pixel == 1:
        order = "|"
    return np.dtype(f"{order}{kind}{bytes_per_pixel}")


def decode(
    data: bytes,
    bytes_per_pixel: int,
    is_float: bool,
    little_endian: bool,
    signed: bool = True,
) -> np.ndarray:
    """
    Convert a raw byte buffer to a typed one-dimensional array.

    Args:
        data: Raw sample bytes
        bytes_per_pixel: Sample width in bytes
        is_float: Whether samples are floating point
        little_endian: Byte order of ``data``
        signed: Signedness of integer samples

    Returns:
        A writable array whose dtype carries the buffer's byte order

    Raises:
        FormatError: If the width is unsupported or the buffer length is not a
            multiple of the sample width

    Examples:
        >>> decode(b"\\x01\\x00\\x02\\x00", 2, False, True).tolist()
        [1, 2]
        >>> decode(b"\\x01\\x00\\x02\\x00", 2, False, False).tolist()
        [256, 512]
    """
    dtype = make_dtype(bytes_per_pixel, is_float, little_endian, signed=signed)
    if len(data) % bytes_per_pixel:
        raise FormatError(
            f"Buffer of {len(data)} bytes is not a multiple of the "
            f"{bytes_per_pixel}-byte sample width"
        )
    return np.frombuffer(data, dtype=dtype).copy()


def encode(array: np.ndarray, little_endian: bool) -> bytes:
    """
    Convert a typed array to raw bytes in the requested byte order.

    Args:
        array: Samples to encode (any shape, C order is used)
        little_endian: Byte order of the result

    Returns:
        The encoded bytes
    """
    array = np.asarray(array)
    target = array.dtype.newbyteorder("<" if little_endian else ">")
    return np.ascontiguousarray(array, dtype=target).tobytes()


def normalize(
    array: np.ndarray, out_range: Tuple[float, float] = (0.0, 1.0)
) -> np.ndarray:
    """
    Linearly rescale floating point samples into a displayable range.

    NaNs are ignored when looking for the extrema and stay NaN. A constant
    input maps to the lower end of ``out_range``. The dtype is preserved.

    Args:
        array: Floating point samples
        out_range: Target (low, high) range, [0, 1] by default

    Returns:
        A new array with values in ``out_range``

    Raises:
        ValueError: If ``array`` is not floating point
    """
    array = np.asarray(array)
    if array.dtype.kind != "f":
        raise ValueError(f"Only floating point samples can be normalized, got {array.dtype}")

    low, high = out_range
    if array.size == 0 or np.all(np.isnan(array)):
        return array.copy()

    vmin = np.nanmin(array)
    vmax = np.nanmax(array)
    if vmax == vmin:
        result = np.full_like(array, low)
        result[np.isnan(array)] = np.nan
        return result

    scale = (high - low) / (float(vmax) - float(vmin))
    result = (array.astype(np.float64) - float(vmin)) * scale + low
    return result.astype(array.dtype)


def display_pixel_type(pixel_type: PixelType) -> PixelType:
    """Pixel type a plane of ``pixel_type`` is shown with.

    Signed integers are shifted into their unsigned counterpart; 64-bit
    integers are shown as doubles.
    """
    if pixel_type in (PixelType.INT64, PixelType.UINT64):
        return PixelType.DOUBLE
    return pixel_type.unsigned()


def to_display_array(array: np.ndarray) -> np.ndarray:
    """
    Convert samples to the type they are displayed with.

    Signed integers are offset by the type's minimum so that the full range
    maps onto the unsigned type of the same width, preserving order.

    Args:
        array: Decoded samples in any byte order

    Returns:
        A native byte order array of the display pixel type
    """
    array = np.asarray(array)
    source = PixelType.from_dtype(array.dtype)
    target = display_pixel_type(source)
    native = array.astype(array.dtype.newbyteorder("="), copy=False)

    if target is source:
        return native
    if target.is_float:
        return native.astype(np.float64)

    offset = np.iinfo(native.dtype).min
    shifted = native.astype(np.int64) - offset
    return shifted.astype(target.dtype(little_endian=True).newbyteorder("="))


def is_pixel_type_mismatch(display: PixelType, source: PixelType) -> bool:
    """True when ``display`` is neither ``source`` nor its unsigned counterpart."""
    return display is not source and display is not source.unsigned()
