"""Axis range resolution and raster (flat plane index) encoding.

Positions and lengths are ordered the way the dataset stores its axes,
slowest-varying first, so the last non-planar axis (the one adjacent to the
planar axes) varies fastest. This matches numpy's C order and the page order
of TIFF, Zarr and NIfTI files.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from .errors import RangeError


def resolve_range(
    values: Sequence[int], axis_lengths: Sequence[int]
) -> Tuple[List[int], List[int]]:
    """
    Split alternating offset/length values into per-axis offsets and lengths.

    Pairs are read in axis order. Axes without a pair default to offset 0 and
    the full axis length, so a caller can restrict a prefix of the axes and
    leave the rest untouched. Values are not validated here; see
    :class:`ndconvert.planes.PlaneEnumerator` for where bad ranges fail.

    Args:
        values: Flat sequence ``[offset0, length0, offset1, length1, ...]``
        axis_lengths: Full length of every axis in the group

    Returns:
        Tuple of (offsets, lengths), each with one entry per axis

    Examples:
        >>> resolve_range([2, 3], [10, 4])
        ([2, 0], [3, 4])
        >>> resolve_range([1], [10, 4])
        ([1, 0], [10, 4])
    """
    offsets = []
    lengths = []
    for i, axis_length in enumerate(axis_lengths):
        offsets.append(int(values[2 * i]) if 2 * i < len(values) else 0)
        lengths.append(
            int(values[2 * i + 1]) if 2 * i + 1 < len(values) else int(axis_length)
        )
    return offsets, lengths


def position_to_raster(lengths: Sequence[int], position: Sequence[int]) -> int:
    """
    Mixed-radix encode a position against the full axis lengths.

    Args:
        lengths: Full (unrestricted) length of each axis, slowest first
        position: Coordinate on each axis

    Returns:
        The flat index of ``position``; 0 when there are no axes

    Raises:
        RangeError: If the sequences differ in size or a coordinate is out of
            bounds

    Examples:
        >>> position_to_raster([3, 4], [1, 2])
        6
    """
    if len(lengths) != len(position):
        raise RangeError(
            f"Position {list(position)} does not match axis lengths {list(lengths)}"
        )
    raster = 0
    for length, coordinate in zip(lengths, position):
        if not 0 <= coordinate < length:
            raise RangeError(
                f"Coordinate {coordinate} is outside an axis of length {length}"
            )
        raster = raster * length + coordinate
    return raster


def raster_to_position(lengths: Sequence[int], raster: int) -> List[int]:
    """
    Inverse of :func:`position_to_raster`.

    Raises:
        RangeError: If ``raster`` is not a valid flat index for ``lengths``

    Examples:
        >>> raster_to_position([3, 4], 6)
        [1, 2]
    """
    total = 1
    for length in lengths:
        total *= length
    if not 0 <= raster < total:
        raise RangeError(f"Plane index {raster} is outside [0, {total})")

    position = [0] * len(lengths)
    for i in range(len(lengths) - 1, -1, -1):
        raster, position[i] = divmod(raster, lengths[i])
    return position
