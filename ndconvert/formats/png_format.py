"""PNG support through Pillow."""

from __future__ import annotations

import io
from typing import List, Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..config import ReaderConfig
from ..errors import DatasetIOError, FormatError
from ..logging import get_logger
from ..metadata import ImageMetadata, Plane
from ..planes import Bounds
from .base import Destination, FormatPlugin, Source, preload_file, require_existing

logger = get_logger(__name__)

PNG_SAMPLES = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}


class PngSource(Source):
    """
    Reads a PNG image as a single plane.

    Palette images keep their indices and expose the palette as a color
    table of shape ``(3, entries)``.
    """

    format_name = "PNG"

    def __init__(self, path: str, config: Optional[ReaderConfig] = None):
        super().__init__(path)
        config = config or ReaderConfig()
        p = require_existing(path)
        target = io.BytesIO(preload_file(str(p))) if config.preload else p
        try:
            with Image.open(target) as img:
                img.load()
                if img.mode == "1":
                    img = img.convert("L")
                self._lut = None
                if img.mode == "P":
                    palette = img.getpalette() or []
                    self._lut = np.array(palette, dtype=np.uint8).reshape(-1, 3).T
                self._data = np.asarray(img)
        except UnidentifiedImageError as exc:
            raise FormatError(f"Cannot read {path} as PNG: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot open {path}: {exc}") from exc

        axes = "YX" if self._data.ndim == 2 else "YXS"
        self.images = [
            ImageMetadata.from_array_info(
                self._data.shape, axes, self._data.dtype, indexed=self._lut is not None,
                name=p.name,
            )
        ]

    def _read_plane(self, image_index: int, flat_index: int, bounds: Bounds) -> np.ndarray:
        return self._data[bounds.slices]

    def _color_table(self, image_index: int, flat_index: int) -> Optional[np.ndarray]:
        return self._lut


class PngDestination(Destination):
    """
    Writes the first plane of an image as a PNG file.

    Only 8-bit images (gray, gray+alpha, RGB, RGBA) and 16-bit grayscale are
    accepted. A PNG holds exactly one plane; further planes are not stored.
    """

    format_name = "PNG"

    def __init__(self, path: str, metadata: List[ImageMetadata]):
        super().__init__(path, metadata)
        image = self.images[0]
        samples = image.interleaved_samples()
        if len(image.planar_axes) > 3 or samples not in PNG_SAMPLES:
            raise FormatError(f"PNG cannot store planes shaped {image.planar_lengths}")
        dtype = image.dtype
        if dtype.kind != "u" or dtype.itemsize > 2:
            raise FormatError(f"PNG cannot store {image.pixel_type.name} samples")
        if dtype.itemsize == 2 and samples != 1:
            raise FormatError("PNG stores 16-bit samples for grayscale images only")

    def plane_capacity(self, image_index: int = 0) -> int:
        return 1

    def _write_plane(self, image_index: int, sequential_no: int, plane: Plane) -> None:
        data = np.ascontiguousarray(plane.data, dtype=plane.data.dtype.newbyteorder("="))
        try:
            Image.fromarray(data).save(self.path, format="PNG")
        except (ValueError, TypeError) as exc:
            raise FormatError(f"Cannot write {self.path}: {exc}") from exc
        except OSError as exc:
            raise DatasetIOError(f"Cannot write {self.path}: {exc}") from exc


class PngFormat(FormatPlugin):
    """Format plugin for PNG images."""

    name = "PNG"
    suffixes = (".png",)

    def create_source(self, path: str, config: ReaderConfig) -> PngSource:
        return PngSource(path, config)

    def create_destination(self, path: str, metadata: List[ImageMetadata]) -> PngDestination:
        return PngDestination(path, metadata)
