"""
Reader filters.

A filter wraps a :class:`~ndconvert.formats.base.Source` and presents a
modified view of it: several files stitched into one dataset, palette
indices expanded to RGB, interleaved samples split into planes, or planes
stretched to 8 bits. Filters are themselves sources and can be stacked.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import tifffile
from attrs import evolve

from .axes import position_to_raster, raster_to_position
from .config import ReaderConfig
from .enums import AxisType
from .errors import FormatError
from .formats.base import Source
from .logging import get_logger
from .metadata import AxisDescriptor, ImageMetadata
from .pixels import PixelType
from .planes import Bounds

logger = get_logger(__name__)

_LAST_DIGITS = re.compile(r"(\d+)(?!.*\d)")


class ReaderFilter(Source):
    """Source delegating to a wrapped source; subclasses override what changes."""

    def __init__(self, parent: Source):
        super().__init__(parent.path)
        self.parent = parent
        self.format_name = parent.format_name
        self.images = list(parent.images)

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        return self.parent.open_plane(image_index, flat_index, bounds).data

    def _color_table(self, image_index: int, flat_index: int) -> Optional[np.ndarray]:
        return self.parent._color_table(image_index, flat_index)

    def close(self) -> None:
        self.parent.close()


def find_stitched_files(path: str) -> List[str]:
    """
    List the files that differ from ``path`` only in its last run of digits.

    Args:
        path: One member of the file set, e.g. ``scan_004.tif``

    Returns:
        Matching paths in natural order; ``[path]`` when the name has no digits
        or no sibling matches
    """
    p = Path(path)
    match = _LAST_DIGITS.search(p.name)
    if match is None or not p.parent.is_dir():
        return [str(p)]
    prefix, suffix = p.name[: match.start()], p.name[match.end() :]
    pattern = re.compile(re.escape(prefix) + r"\d+" + re.escape(suffix) + "$")
    parent = p.parent
    names = [child.name for child in parent.iterdir() if pattern.match(child.name)]
    if not names:
        return [str(p)]
    return [str(parent / name) for name in tifffile.natural_sorted(names)]


class FileStitcher(Source):
    """
    Combine several files with the same layout into one dataset.

    A new outermost ``SEQUENCE`` axis (label ``I``) selects the file; the
    planes of file ``k`` follow those of file ``k - 1``.

    Args:
        sources: Opened sources, one per file, in sequence order

    Raises:
        FormatError: If the files differ in image count, axes or pixel type
    """

    def __init__(self, sources: List[Source]):
        if not sources:
            raise FormatError("No files to stitch")
        first = sources[0]
        super().__init__(first.path)
        self.sources = sources
        self.format_name = first.format_name
        for other in sources[1:]:
            if other.image_count != first.image_count:
                raise FormatError(
                    f"Cannot stitch {other.path}: {other.image_count} image(s), "
                    f"expected {first.image_count}"
                )
            for a, b in zip(first.images, other.images):
                if (a.axes, a.pixel_type, a.planar_axis_count) != (
                    b.axes,
                    b.pixel_type,
                    b.planar_axis_count,
                ):
                    raise FormatError(
                        f"Cannot stitch {other.path}: {b.describe()} does not match "
                        f"{a.describe()}"
                    )
        sequence = AxisDescriptor(AxisType.SEQUENCE, len(sources), "I")
        self.images = [evolve(meta, axes=(sequence,) + meta.axes) for meta in first.images]
        logger.info("Stitching %d files starting with %s", len(sources), first.path)

    def _locate(self, image_index: int, flat_index: int) -> Tuple[Source, int]:
        per_file = self.sources[0].images[image_index].plane_count
        return self.sources[flat_index // per_file], flat_index % per_file

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        source, inner = self._locate(image_index, flat_index)
        return source.open_plane(image_index, inner, bounds).data

    def _color_table(self, image_index: int, flat_index: int) -> Optional[np.ndarray]:
        source, inner = self._locate(image_index, flat_index)
        return source._color_table(image_index, inner)

    def close(self) -> None:
        for source in self.sources:
            source.close()


class ChannelFiller(ReaderFilter):
    """
    Expand indexed planes through their color table.

    Indexed ``YX`` images become ``YXS`` images whose samples are the table
    components (3 for RGB) and whose pixel type is the table's type. Images
    without a color table are passed through unchanged.
    """

    def __init__(self, parent: Source):
        super().__init__(parent)
        self._expanded = set()
        for i, meta in enumerate(parent.images):
            if not meta.indexed or meta.interleaved_samples() > 1:
                continue
            lut = parent._color_table(i, 0)
            if lut is None:
                logger.warning("Image %d of %s is indexed but has no LUT", i, parent.path)
                continue
            lut = np.asarray(lut)
            samples = AxisDescriptor(AxisType.SAMPLE, lut.shape[0], "S")
            self.images[i] = evolve(
                meta,
                axes=meta.axes + (samples,),
                pixel_type=PixelType.from_dtype(lut.dtype),
                little_endian=True,
                planar_axis_count=meta.planar_axis_count + 1,
                indexed=False,
            )
            self._expanded.add(i)

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        if image_index not in self._expanded:
            return super()._read_plane(image_index, flat_index, bounds)
        inner = Bounds(bounds.min[:-1], bounds.max[:-1])
        plane = self.parent.open_plane(image_index, flat_index, inner)
        lut = np.asarray(plane.color_table)
        rgb = np.moveaxis(np.take(lut, plane.data, axis=1, mode="clip"), 0, -1)
        return rgb[..., bounds.min[-1] : bounds.max[-1] + 1]

    def _color_table(self, image_index: int, flat_index: int) -> Optional[np.ndarray]:
        if image_index in self._expanded:
            return None
        return super()._color_table(image_index, flat_index)


class PlaneSeparator(ReaderFilter):
    """
    Split interleaved samples into separate planes.

    The sample axis of a ``...YXS`` image moves in front of ``Y`` and becomes
    the innermost non-planar axis, so an RGB plane turns into three
    consecutive grayscale planes.
    """

    def __init__(self, parent: Source):
        super().__init__(parent)
        self._separated = set()
        for i, meta in enumerate(parent.images):
            if meta.interleaved_samples() <= 1:
                continue
            planar = meta.planar_axes
            self.images[i] = evolve(
                meta,
                axes=meta.non_planar_axes + (planar[-1],) + planar[:-1],
                planar_axis_count=meta.planar_axis_count - 1,
            )
            self._separated.add(i)

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        if image_index not in self._separated:
            return super()._read_plane(image_index, flat_index, bounds)
        position = raster_to_position(
            self.images[image_index].non_planar_lengths, flat_index
        )
        sample = position[-1]
        parent_meta = self.parent.images[image_index]
        parent_index = position_to_raster(parent_meta.non_planar_lengths, position[:-1])
        inner = Bounds(bounds.min + (sample,), bounds.max + (sample,))
        return self.parent.open_plane(image_index, parent_index, inner).data[..., 0]


class MinMaxFilter(ReaderFilter):
    """
    Stretch every plane from its own minimum and maximum to 8 bits.

    Attributes:
        min_max: ``(minimum, maximum)`` of each plane read, keyed by
            ``(image_index, flat_index)``
    """

    def __init__(self, parent: Source):
        super().__init__(parent)
        self.min_max: Dict[Tuple[int, int], Tuple[float, float]] = {}
        self.images = [
            evolve(meta, pixel_type=PixelType.UINT8, little_endian=True, indexed=False)
            for meta in parent.images
        ]

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        data = self.parent.open_plane(image_index, flat_index).data.astype(np.float64)
        finite = data[np.isfinite(data)]
        if finite.size:
            vmin, vmax = float(finite.min()), float(finite.max())
        else:
            vmin = vmax = 0.0
        self.min_max[(image_index, flat_index)] = (vmin, vmax)
        if vmax > vmin:
            scaled = (data - vmin) * (255.0 / (vmax - vmin))
        else:
            scaled = np.zeros_like(data)
        scaled = np.nan_to_num(scaled, nan=0.0, posinf=255.0, neginf=0.0)
        return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)[bounds.slices]

    def _color_table(self, image_index: int, flat_index: int) -> Optional[np.ndarray]:
        return None


def stitch_files(
    path: str, config: ReaderConfig, opener: Callable[[str, ReaderConfig], Source]
) -> Source:
    """
    Open ``path`` and its numbered siblings as one stitched source.

    A single matching file is returned as a plain source.
    """
    paths = find_stitched_files(path)
    if len(paths) == 1:
        return opener(paths[0], config)
    sources: List[Source] = []
    try:
        for member in paths:
            sources.append(opener(member, config))
        return FileStitcher(sources)
    except Exception:
        for source in sources:
            source.close()
        raise


def wrap_source(source: Source, config: ReaderConfig) -> Source:
    """Apply the expand, separate and autoscale filters requested by ``config``."""
    if config.expand:
        source = ChannelFiller(source)
    if config.separate:
        source = PlaneSeparator(source)
    if config.autoscale:
        source = MinMaxFilter(source)
    return source
