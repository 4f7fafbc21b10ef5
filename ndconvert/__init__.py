from importlib.metadata import PackageNotFoundError, version

from .axes import position_to_raster, raster_to_position, resolve_range
from .config import ReaderConfig, WriterConfig
from .enums import AxisType, OverwriteDecision
from .errors import (
    DatasetIOError,
    FormatError,
    NdConvertError,
    OverwriteAborted,
    RangeError,
)
from .io import open_destination, open_source
from .metadata import AxisDescriptor, ImageMetadata, Plane
from .overwrite import OverwriteGuard
from .pipeline import ConversionPipeline, ConversionResult, convert_dataset, traverse
from .pixels import PixelType
from .planes import Bounds, PlaneEnumerator, PlaneTask

try:
    __version__ = version("ndconvert")
except PackageNotFoundError:
    __version__ = "0+unknown"

__all__ = [
    "AxisDescriptor",
    "AxisType",
    "Bounds",
    "ConversionPipeline",
    "ConversionResult",
    "DatasetIOError",
    "FormatError",
    "ImageMetadata",
    "NdConvertError",
    "OverwriteAborted",
    "OverwriteDecision",
    "OverwriteGuard",
    "PixelType",
    "Plane",
    "PlaneEnumerator",
    "PlaneTask",
    "RangeError",
    "ReaderConfig",
    "WriterConfig",
    "convert_dataset",
    "open_destination",
    "open_source",
    "position_to_raster",
    "raster_to_position",
    "resolve_range",
    "traverse",
]
