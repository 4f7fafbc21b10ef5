"""Console script for ndconvert.

This module provides the ``ndconvert`` command line interface for
converting and inspecting multi-dimensional image datasets.

Commands:
    convert: Copy a dataset (or a cropped, plane-restricted part of it) into
        another format
    show: Print or display the planes of a dataset
"""

import argparse
import logging
import sys
from typing import List, Optional

from ndconvert import __version__
from ndconvert.config import ReaderConfig, WriterConfig
from ndconvert.display import AsciiImage, PlaneViewer, load_display_planes
from ndconvert.errors import NdConvertError
from ndconvert.io import open_source
from ndconvert.logging import CLI_FORMAT, configure_logging, get_logger
from ndconvert.overwrite import OverwriteGuard
from ndconvert.pipeline import convert_dataset
from ndconvert.planes import PlaneEnumerator

logger = get_logger(__name__)


def parse_int_list(value: str) -> List[int]:
    """Parse comma-separated list of integers."""
    if not value.strip():
        return []
    return [int(x.strip()) for x in value.split(",")]


def _reader_parent() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    group = parser.add_argument_group("reader options")
    group.add_argument(
        "-C",
        "--crop",
        type=parse_int_list,
        default=[],
        metavar="OFF,LEN,...",
        help="Offset,length pairs over the planar axes in printed axis order "
        "(e.g. '0,128,0,128' keeps the top-left 128x128 of YX planes)",
    )
    group.add_argument(
        "-r",
        "--range",
        dest="plane_range",
        type=parse_int_list,
        default=[],
        metavar="OFF,LEN,...",
        help="Offset,length pairs over the non-planar axes in printed axis "
        "order (e.g. '2,3' keeps planes 2-4 of the first non-planar axis)",
    )
    group.add_argument(
        "-t", "--stitch", action="store_true", help="Stitch files with similar names"
    )
    group.add_argument(
        "-s",
        "--separate",
        action="store_true",
        help="Split interleaved samples (RGB) into separate planes",
    )
    group.add_argument(
        "-e",
        "--expand",
        action="store_true",
        help="Expand indexed color to RGB through the color table",
    )
    group.add_argument(
        "-a",
        "--autoscale",
        action="store_true",
        help="Stretch every plane to the 8-bit range",
    )
    group.add_argument(
        "-g",
        "--nogroup",
        action="store_true",
        help="Read only the named file of a multi-file dataset",
    )
    group.add_argument(
        "-M",
        "--map",
        dest="location",
        default=None,
        metavar="FILE",
        help="File on disk the input name is mapped to; the input name picks "
        "the format",
    )
    return parser


def build_parser() -> argparse.ArgumentParser:
    """Build the ``ndconvert`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="ndconvert",
        description="Convert and inspect multi-dimensional image datasets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ndconvert convert stack.tif stack.ome.zarr
  ndconvert convert stack.tif crop.tif --crop 0,128,0,128 --range 1,2
  ndconvert convert brain.nii.gz brain.tif --compression zlib --overwrite
  ndconvert show stack.tif --ascii --range 0,1
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", action="store_true", help="Log plane level details"
    )
    verbosity.add_argument(
        "-q", "--quiet", action="store_true", help="Only log warnings and errors"
    )

    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True
    reader_parent = _reader_parent()

    convert = commands.add_parser(
        "convert",
        parents=[reader_parent],
        help="Convert a dataset to another format",
        description="Convert a dataset to another format. The output suffix "
        "selects the format.",
    )
    convert.add_argument("input", help="Input dataset")
    convert.add_argument("output", help="Output dataset")
    convert.add_argument(
        "-b", "--bigtiff", action="store_true", help="Force BigTIFF output"
    )
    overwrite = convert.add_mutually_exclusive_group()
    overwrite.add_argument(
        "-o", "--overwrite", action="store_true", help="Always overwrite the output"
    )
    overwrite.add_argument(
        "-n", "--nooverwrite", action="store_true", help="Never overwrite the output"
    )
    convert.add_argument(
        "-c",
        "--compression",
        default=None,
        help="Compression codec for the output (e.g. zlib, lzw)",
    )
    convert.set_defaults(func=run_convert)

    show = commands.add_parser(
        "show",
        parents=[reader_parent],
        help="Display the planes of a dataset",
        description="Display the planes of a dataset in a window or as ASCII art.",
    )
    show.add_argument("file", help="Dataset to display")
    show.add_argument(
        "--ascii", action="store_true", help="Print planes as ASCII art"
    )
    show.add_argument(
        "-b", "--thumbs", action="store_true", help="Read thumbnails instead of planes"
    )
    show.add_argument(
        "-n",
        "--normalize",
        action="store_true",
        help="Normalize floating point planes to [0, 1]",
    )
    show.add_argument(
        "-p", "--preload", action="store_true", help="Read the file into memory first"
    )
    show.add_argument(
        "--width", type=int, default=80, help="Characters per ASCII line (default: 80)"
    )
    show.set_defaults(func=run_show)
    return parser


def run_convert(args: argparse.Namespace) -> int:
    guard = OverwriteGuard(overwrite=args.overwrite, no_overwrite=args.nooverwrite)
    result = convert_dataset(
        args.input,
        args.output,
        crop=args.crop,
        plane_range=args.plane_range,
        reader_config=ReaderConfig.from_args(args),
        writer_config=WriterConfig.from_args(args),
        guard=guard,
        location=args.location,
    )
    message = f"Converted {result.written}/{result.total} planes from {args.input} to {args.output}"
    if result.skipped:
        message += f" ({result.skipped} beyond the output's capacity)"
    print(message)
    return 0


def run_show(args: argparse.Namespace) -> int:
    source = open_source(args.file, ReaderConfig.from_args(args), location=args.location)
    try:
        for index, metadata in enumerate(source.images):
            logger.info("Image #%d: %s %s", index, source.format_name, metadata.describe())
        metadata = source.get_metadata(0)
        tasks = PlaneEnumerator.from_metadata(metadata, args.crop, args.plane_range)
        images = load_display_planes(
            source, tasks, normalize=args.normalize, thumbs=args.thumbs
        )
    finally:
        source.close()

    if not images:
        raise NdConvertError(f"No plane of {args.file} could be displayed")
    if args.ascii:
        for index, image in enumerate(images):
            print()
            print(f"Image #{index}:")
            print(AsciiImage(image, width=args.width))
    else:
        logger.info("Launching image viewer")
        viewer = PlaneViewer()
        viewer.set_images(images, name=args.file)
        try:
            viewer.show()
        except ImportError as e:
            raise NdConvertError(f"{e}; use --ascii instead") from e
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Console script entry point.

    Returns:
        0 on success, 1 when the command failed
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    configure_logging(level=level, format_string=CLI_FORMAT)

    try:
        return args.func(args)
    except (NdConvertError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
