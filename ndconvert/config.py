"""Configuration objects passed from the command line to readers and writers."""

from __future__ import annotations

import argparse
from typing import Optional

from attrs import define


@define(frozen=True)
class ReaderConfig:
    """
    Options controlling how a source dataset is opened.

    Attributes:
        stitch: Combine files with similar names into one dataset
        separate: Split interleaved samples (e.g. RGB) into separate planes
        expand: Expand indexed color to RGB through the plane's color table
        autoscale: Stretch each plane to the 8-bit range before use
        group: Read multi-file datasets as one dataset (``--nogroup`` clears it)
        preload: Read the whole file into memory before decoding
    """

    stitch: bool = False
    separate: bool = False
    expand: bool = False
    autoscale: bool = False
    group: bool = True
    preload: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ReaderConfig":
        """Build a config from a parsed command line, tolerating missing flags."""
        return cls(
            stitch=getattr(args, "stitch", False),
            separate=getattr(args, "separate", False),
            expand=getattr(args, "expand", False),
            autoscale=getattr(args, "autoscale", False),
            group=not getattr(args, "nogroup", False),
            preload=getattr(args, "preload", False),
        )


@define(frozen=True)
class WriterConfig:
    """
    Options requested for a destination.

    None means "not requested"; requested options the destination does not
    support are reported and ignored.

    Attributes:
        bigtiff: Force (or forbid) BigTIFF output
        compression: Codec name used when saving planes (e.g. ``"zlib"``)
    """

    bigtiff: Optional[bool] = None
    compression: Optional[str] = None

    def requested(self) -> dict:
        """Return the options that were explicitly set."""
        options = {"bigtiff": self.bigtiff, "compression": self.compression}
        return {name: value for name, value in options.items() if value is not None}

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "WriterConfig":
        return cls(
            bigtiff=True if getattr(args, "bigtiff", False) else None,
            compression=getattr(args, "compression", None),
        )
