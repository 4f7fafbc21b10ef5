"""
Display path for ``ndconvert show``.

Planes are read through :func:`ndconvert.pipeline.traverse`, converted to
display arrays (signed types shifted to unsigned, floats optionally
normalized, palettes applied) and either rendered as ASCII art or shown in
a matplotlib window.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from .errors import FormatError
from .formats.base import Source
from .logging import get_logger
from .metadata import ImageMetadata, Plane
from .pipeline import traverse
from .pixels import (
    PixelType,
    decode,
    encode,
    is_pixel_type_mismatch,
    normalize as normalize_samples,
    to_display_array,
)
from .planes import PlaneTask

logger = get_logger(__name__)

ASCII_RAMP = " .:-=+*#%@"


class ProgressMonitor:
    """Cooperative cancellation flag checked between plane loads."""

    def __init__(self):
        self.canceled = False
        self.loaded = 0

    def cancel(self) -> None:
        self.canceled = True


def prepare_display_plane(
    plane: Plane, metadata: ImageMetadata, plane_no: int, normalize: bool = False
) -> Optional[np.ndarray]:
    """
    Convert a plane to an array suitable for display.

    The plane's bytes are decoded with the image's pixel type and byte order,
    floats are optionally normalized to [0, 1], and the result is shifted to
    the display pixel type. Indexed planes are expanded through their color
    table.

    Args:
        plane: Plane as read from the source
        metadata: Metadata of the image the plane belongs to
        plane_no: Sequential plane number, used in messages
        normalize: Rescale floating point planes to [0, 1]

    Returns:
        A new array, or None when the plane could not be decoded
    """
    pixel_type = PixelType.from_dtype(plane.data.dtype)
    little_endian = metadata.little_endian
    try:
        pix = decode(
            plane.to_bytes(little_endian),
            pixel_type.bytes_per_pixel,
            pixel_type.is_float,
            little_endian,
            signed=pixel_type.is_signed,
        )
        if normalize and pixel_type.is_float:
            pix = normalize_samples(pix)
        pix = decode(
            encode(pix, little_endian),
            pixel_type.bytes_per_pixel,
            pixel_type.is_float,
            little_endian,
            signed=pixel_type.is_signed,
        )
    except FormatError as exc:
        logger.warning("\t************ Failed to read plane #%d: %s ************", plane_no, exc)
        return None

    display = to_display_array(pix.reshape(plane.data.shape))

    if metadata.indexed:
        if plane.color_table is None:
            logger.warning("\t************ no LUT for plane #%d ************", plane_no)
        else:
            lut = np.asarray(plane.color_table)
            display = np.moveaxis(np.take(lut, display, axis=1, mode="clip"), 0, -1)

    display_type = PixelType.from_dtype(display.dtype)
    if is_pixel_type_mismatch(display_type, metadata.pixel_type):
        logger.info(
            "\tPlane #%d: pixel type mismatch: %s/%s",
            plane_no,
            display_type.name.lower(),
            metadata.pixel_type.name.lower(),
        )
    return display


def load_display_planes(
    source: Source,
    tasks: Sequence[PlaneTask],
    image_index: int = 0,
    normalize: bool = False,
    thumbs: bool = False,
    monitor: Optional[ProgressMonitor] = None,
) -> List[np.ndarray]:
    """
    Read planes and convert them for display.

    Args:
        source: Source to read from
        tasks: Planes to load, usually a :class:`PlaneEnumerator`
        image_index: Image of ``source`` to read
        normalize: Rescale floating point planes to [0, 1]
        thumbs: Load subsampled thumbnails instead of full planes
        monitor: Checked before each plane; loading stops once canceled

    Returns:
        Display arrays, one per plane that could be decoded
    """
    metadata = source.get_metadata(image_index)
    images: List[np.ndarray] = []
    reader = None
    if thumbs:

        def reader(src, index, task, plane):
            return src.open_thumb_plane(index, task.flat_index)

    def process_plane(task: PlaneTask, plane: Plane) -> None:
        display = prepare_display_plane(plane, metadata, task.sequential_no, normalize)
        if display is not None:
            # prepare_display_plane returns fresh arrays; the plane buffer is reused
            images.append(display)
        if monitor is not None:
            monitor.loaded += 1

    traverse(
        source, tasks, process_plane, image_index=image_index, monitor=monitor, reader=reader
    )
    return images


class AsciiImage:
    """
    Text rendering of an image using a brightness ramp.

    Args:
        array: Grayscale ``(Y, X)`` or color ``(Y, X, S)`` samples
        width: Number of characters per line
    """

    def __init__(self, array: np.ndarray, width: int = 80):
        self.array = np.asarray(array)
        self.width = max(1, int(width))

    def _intensity(self) -> np.ndarray:
        data = self.array.astype(np.float64)
        if data.ndim == 3:
            data = data[..., :3].mean(axis=-1)
        finite = data[np.isfinite(data)]
        if finite.size == 0:
            return np.zeros(data.shape)
        vmin, vmax = finite.min(), finite.max()
        if vmax == vmin:
            return np.zeros(data.shape)
        return np.nan_to_num((data - vmin) / (vmax - vmin), nan=0.0)

    def __str__(self) -> str:
        intensity = self._intensity()
        height, width = intensity.shape
        if height == 0 or width == 0:
            return ""
        cols = min(self.width, width)
        # characters are about twice as tall as they are wide
        rows = max(1, int(round(height * cols / width / 2)))
        y = (np.arange(rows) * height // rows).astype(int)
        x = (np.arange(cols) * width // cols).astype(int)
        levels = np.rint(intensity[np.ix_(y, x)] * (len(ASCII_RAMP) - 1)).astype(int)
        return "\n".join("".join(ASCII_RAMP[v] for v in row) for row in levels)


def _as_displayable(image: np.ndarray) -> np.ndarray:
    if image.ndim == 3:
        image = image[..., :4] if image.shape[-1] >= 3 else image[..., 0]
    if image.ndim == 3 and image.dtype != np.uint8:
        data = image.astype(np.float64)
        vmax = data.max() if data.size else 0
        return data / vmax if vmax > 0 else data
    return image


class PlaneViewer:
    """
    Matplotlib window browsing a list of planes with a slider.

    Args:
        title: Window title
    """

    def __init__(self, title: str = "ndconvert"):
        self.title = title
        self.images: List[np.ndarray] = []
        self.names: List[str] = []
        self.figure = None
        self.slider = None

    def set_images(self, images: Sequence[np.ndarray], name: str = "") -> None:
        """Replace the planes shown by the viewer."""
        self.images = list(images)
        self.names = [f"{name} plane {i + 1}/{len(self.images)}" for i in range(len(self.images))]

    def build(self):
        """
        Create the figure without showing it.

        Returns:
            matplotlib Figure

        Raises:
            ValueError: If no images were set
        """
        if not self.images:
            raise ValueError("No planes to display")
        # Import matplotlib here to avoid requiring it as a hard dependency
        try:
            import matplotlib.pyplot as plt
            from matplotlib.widgets import Slider
        except ImportError:
            raise ImportError(
                "matplotlib is required for the plane viewer. "
                "Install it with: pip install matplotlib"
            )

        fig, ax = plt.subplots(figsize=(8, 8))
        first = _as_displayable(self.images[0])
        artist = ax.imshow(first, cmap="gray" if first.ndim == 2 else None)
        ax.set_title(self.names[0])
        ax.set_axis_off()

        if len(self.images) > 1:
            fig.subplots_adjust(bottom=0.15)
            slider_ax = fig.add_axes([0.15, 0.05, 0.7, 0.03])
            self.slider = Slider(
                slider_ax, "Plane", 1, len(self.images), valinit=1, valstep=1
            )

            def update(value):
                index = int(value) - 1
                image = _as_displayable(self.images[index])
                artist.set_data(image)
                if image.ndim == 2:
                    artist.set_clim(image.min(), image.max())
                ax.set_title(self.names[index])
                fig.canvas.draw_idle()

            self.slider.on_changed(update)

        self.figure = fig
        return fig

    def show(self) -> None:
        """Open the viewer window and block until it is closed."""
        import matplotlib.pyplot as plt

        self.build()
        plt.show()
