"""Plane enumeration over the non-planar axes of an image.

A :class:`PlaneEnumerator` walks every position inside a (possibly
restricted) box of non-planar coordinates, innermost axis first, and yields
one :class:`PlaneTask` per plane with the plane's flat index in the source
and its sequential number in the destination.
"""

from __future__ import annotations

import math
from typing import Iterator, List, Sequence, Tuple

from attrs import define, field

from .axes import position_to_raster, resolve_range
from .errors import FormatError, RangeError
from .logging import get_logger
from .metadata import ImageMetadata

logger = get_logger(__name__)


@define(frozen=True)
class Bounds:
    """
    Inclusive bounding box over the planar axes.

    Attributes:
        min: First index kept on each planar axis
        max: Last index kept on each planar axis
    """

    min: Tuple[int, ...] = field(converter=tuple)
    max: Tuple[int, ...] = field(converter=tuple)

    @classmethod
    def from_offsets(cls, offsets: Sequence[int], lengths: Sequence[int]) -> "Bounds":
        return cls(
            tuple(offsets), tuple(o + n - 1 for o, n in zip(offsets, lengths))
        )

    @classmethod
    def full(cls, lengths: Sequence[int]) -> "Bounds":
        return cls.from_offsets([0] * len(lengths), lengths)

    @property
    def offsets(self) -> Tuple[int, ...]:
        return self.min

    @property
    def lengths(self) -> Tuple[int, ...]:
        return tuple(hi - lo + 1 for lo, hi in zip(self.min, self.max))

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.lengths

    @property
    def slices(self) -> Tuple[slice, ...]:
        """numpy index selecting the box from a full plane."""
        return tuple(slice(lo, hi + 1) for lo, hi in zip(self.min, self.max))

    def __str__(self) -> str:
        return "[" + ", ".join(f"{lo}..{hi}" for lo, hi in zip(self.min, self.max)) + "]"


@define(frozen=True)
class PlaneTask:
    """
    One plane to visit.

    Attributes:
        flat_index: Address of the plane in the source's storage order
        sequential_no: 0-based position in the destination's write order
        bounds: Planar crop applied to the plane
    """

    flat_index: int
    sequential_no: int
    bounds: Bounds


def _check_range(
    kind: str,
    axis_lengths: Sequence[int],
    offsets: Sequence[int],
    lengths: Sequence[int],
) -> None:
    if not len(axis_lengths) == len(offsets) == len(lengths):
        raise RangeError(
            f"{kind} has {len(offsets)} offsets and {len(lengths)} lengths "
            f"for {len(axis_lengths)} axes"
        )
    for i, (axis_length, offset, length) in enumerate(
        zip(axis_lengths, offsets, lengths)
    ):
        if offset < 0 or length < 1:
            raise RangeError(
                f"{kind} on axis {i}: offset {offset} and length {length} "
                "must be a non-negative offset and a positive length"
            )
        if offset + length > axis_length:
            raise RangeError(
                f"{kind} on axis {i}: offset {offset} + length {length} "
                f"exceeds axis length {axis_length}"
            )


class PlaneEnumerator:
    """
    Read-once iterator over the planes selected by a plane range.

    The innermost (last) non-planar axis advances first; when it passes the
    end of its range it resets to its offset and carries into the next outer
    axis. Iteration ends when the outermost axis carries. With no non-planar
    axes exactly one task, at flat index 0, is produced.

    Flat indices are always encoded against the full axis lengths, so they
    address planes in the source regardless of the restriction.

    Args:
        axis_lengths: Full length of every non-planar axis, slowest first
        offsets: First coordinate visited on each non-planar axis
        lengths: Number of coordinates visited on each non-planar axis
        bounds: Planar crop shared by every task

    Raises:
        RangeError: If a range is negative, empty or exceeds its axis

    Examples:
        >>> tasks = PlaneEnumerator([2, 3], [0, 1], [2, 2], Bounds.full([4, 4]))
        >>> [t.flat_index for t in tasks]
        [1, 2, 4, 5]
    """

    def __init__(
        self,
        axis_lengths: Sequence[int],
        offsets: Sequence[int],
        lengths: Sequence[int],
        bounds: Bounds,
    ):
        self.axis_lengths = tuple(int(n) for n in axis_lengths)
        self.offsets = tuple(int(o) for o in offsets)
        self.lengths = tuple(int(n) for n in lengths)
        self.bounds = bounds
        _check_range("Plane range", self.axis_lengths, self.offsets, self.lengths)

        self._position: List[int] = list(self.offsets)
        self._sequential_no = 0
        self._done = False

    @classmethod
    def from_metadata(
        cls,
        metadata: ImageMetadata,
        crop: Sequence[int] = (),
        plane_range: Sequence[int] = (),
    ) -> "PlaneEnumerator":
        """
        Resolve a crop and a plane range against an image and enumerate it.

        Args:
            metadata: Image whose planes are enumerated
            crop: Alternating offset/length values over the planar axes
            plane_range: Alternating offset/length values over the non-planar
                axes

        Raises:
            FormatError: If an axis of the image has length 0
            RangeError: If either range is negative, empty or out of bounds
        """
        if 0 in metadata.shape:
            raise FormatError(f"Image {metadata.describe()} has no planes to enumerate")
        planar_offsets, planar_lengths = resolve_range(crop, metadata.planar_lengths)
        _check_range("Crop", metadata.planar_lengths, planar_offsets, planar_lengths)
        offsets, lengths = resolve_range(plane_range, metadata.non_planar_lengths)
        enumerator = cls(
            metadata.non_planar_lengths,
            offsets,
            lengths,
            Bounds.from_offsets(planar_offsets, planar_lengths),
        )
        logger.debug(
            "Enumerating %d planes of %s, bounds %s",
            enumerator.total,
            metadata.describe(),
            enumerator.bounds,
        )
        return enumerator

    @property
    def total(self) -> int:
        """Number of planes visited (product of the restricted lengths)."""
        return math.prod(self.lengths)

    @property
    def position(self) -> Tuple[int, ...]:
        """Current cursor position over the non-planar axes."""
        return tuple(self._position)

    def __len__(self) -> int:
        return self.total

    def __iter__(self) -> Iterator[PlaneTask]:
        return self

    def __next__(self) -> PlaneTask:
        if self._done:
            raise StopIteration
        task = PlaneTask(
            flat_index=position_to_raster(self.axis_lengths, self._position),
            sequential_no=self._sequential_no,
            bounds=self.bounds,
        )
        self._sequential_no += 1
        self._advance()
        return task

    def _advance(self) -> None:
        for i in range(len(self._position) - 1, -1, -1):
            self._position[i] += 1
            if self._position[i] < self.offsets[i] + self.lengths[i]:
                return
            self._position[i] = self.offsets[i]
        self._done = True

    def output_lengths(self) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        """(planar, non-planar) lengths of the box being enumerated."""
        return self.bounds.lengths, self.lengths
