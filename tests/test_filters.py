"""Tests for the reader filters."""

import numpy as np
import pytest
import tifffile

from ndconvert.config import ReaderConfig
from ndconvert.enums import AxisType
from ndconvert.errors import FormatError
from ndconvert.filters import (
    ChannelFiller,
    FileStitcher,
    MinMaxFilter,
    PlaneSeparator,
    find_stitched_files,
    wrap_source,
)
from ndconvert.formats.memory import ArraySource
from ndconvert.io import open_source
from ndconvert.pixels import PixelType
from ndconvert.planes import Bounds, PlaneEnumerator


@pytest.fixture
def numbered_tiffs(tmp_path):
    """Three 2-plane ZYX files named scan_1, scan_2 and scan_10."""
    planes = {}
    for number in (1, 2, 10):
        data = np.full((2, 4, 5), number, dtype=np.uint8)
        data[1] += 100
        tifffile.imwrite(tmp_path / f"scan_{number}.tif", data, metadata={"axes": "ZYX"})
        planes[number] = data
    (tmp_path / "other_3.png").write_bytes(b"")
    return tmp_path, planes


class TestFileStitcher:
    """Tests for file stitching."""

    def test_find_numbered_siblings(self, numbered_tiffs):
        """Test siblings are found in natural order."""
        directory, _ = numbered_tiffs
        files = find_stitched_files(str(directory / "scan_2.tif"))
        assert [f.rsplit("/", 1)[-1] for f in files] == [
            "scan_1.tif",
            "scan_2.tif",
            "scan_10.tif",
        ]

    def test_name_without_digits(self, tmp_path):
        """Test a name without digits stitches only itself."""
        path = str(tmp_path / "stack.tif")
        assert find_stitched_files(path) == [path]

    def test_stitched_source(self, numbered_tiffs):
        """Test stitched files gain an outer sequence axis."""
        directory, planes = numbered_tiffs
        with open_source(directory / "scan_1.tif", ReaderConfig(stitch=True)) as source:
            metadata = source.get_metadata(0)
            assert metadata.axis_string == "IZYX"
            assert metadata.axes[0].type is AxisType.SEQUENCE
            assert metadata.plane_count == 6
            np.testing.assert_array_equal(source.open_plane(0, 5).data, planes[10][1])
            np.testing.assert_array_equal(source.open_plane(0, 2).data, planes[2][0])

    def test_incompatible_files(self):
        """Test files with different layouts cannot be stitched."""
        a = ArraySource(np.zeros((2, 4, 4), dtype=np.uint8), "ZYX")
        b = ArraySource(np.zeros((2, 4, 4), dtype=np.uint16), "ZYX")
        with pytest.raises(FormatError, match="Cannot stitch"):
            FileStitcher([a, b])


class TestChannelFiller:
    """Tests for palette expansion."""

    def test_expands_through_lut(self):
        """Test indexed planes become RGB samples of the LUT's type."""
        lut = np.array([[0, 10, 20], [1, 11, 21], [2, 12, 22]], dtype=np.uint16)
        indices = np.array([[[0, 1], [2, 1]]], dtype=np.uint8)
        source = ChannelFiller(ArraySource(indices, "ZYX", color_table=lut))

        metadata = source.get_metadata(0)
        assert metadata.axis_string == "ZYXS"
        assert metadata.pixel_type is PixelType.UINT16
        assert not metadata.indexed

        plane = source.open_plane(0, 0)
        assert plane.data.shape == (2, 2, 3)
        assert plane.data[0, 1].tolist() == [10, 11, 12]
        assert plane.color_table is None

    def test_crop_includes_samples(self):
        """Test the sample axis can be cropped like any planar axis."""
        lut = np.arange(9, dtype=np.uint8).reshape(3, 3)
        source = ChannelFiller(
            ArraySource(np.zeros((1, 2, 2), dtype=np.uint8), "ZYX", color_table=lut)
        )
        plane = source.open_plane(0, 0, Bounds.from_offsets([0, 0, 1], [2, 2, 2]))
        assert plane.data[0, 0].tolist() == [3, 6]

    def test_not_indexed_passes_through(self, stack_zyx):
        """Test images without a palette are untouched."""
        source = ChannelFiller(ArraySource(stack_zyx, "ZYX"))
        assert source.get_metadata(0).axis_string == "ZYX"
        np.testing.assert_array_equal(source.open_plane(0, 1).data, stack_zyx[1])


class TestPlaneSeparator:
    """Tests for sample separation."""

    def test_samples_become_planes(self):
        """Test RGB becomes the innermost non-planar axis."""
        data = np.arange(2 * 3 * 4 * 3, dtype=np.uint8).reshape(2, 3, 4, 3)
        source = PlaneSeparator(ArraySource(data, "ZYXS"))

        metadata = source.get_metadata(0)
        assert metadata.axis_string == "ZSYX"
        assert metadata.planar_lengths == (3, 4)
        assert metadata.plane_count == 6
        np.testing.assert_array_equal(source.open_plane(0, 4).data, data[1, :, :, 1])

    def test_separated_planes_enumerate(self):
        """Test a separated image converts plane by plane."""
        data = np.arange(5 * 6 * 3, dtype=np.uint8).reshape(5, 6, 3)
        source = PlaneSeparator(ArraySource(data, "YXS"))
        tasks = list(PlaneEnumerator.from_metadata(source.get_metadata(0)))
        assert [t.flat_index for t in tasks] == [0, 1, 2]
        np.testing.assert_array_equal(source.open_plane(0, 2).data, data[..., 2])


class TestMinMaxFilter:
    """Tests for autoscaling."""

    def test_stretches_each_plane(self):
        """Test each plane is stretched from its own extrema to 8 bits."""
        data = np.array([[[100, 200], [300, 500]], [[7, 7], [7, 7]]], dtype=np.uint16)
        source = MinMaxFilter(ArraySource(data, "ZYX"))
        assert source.get_metadata(0).pixel_type is PixelType.UINT8

        first = source.open_plane(0, 0).data
        assert first.dtype == np.uint8
        assert first.tolist() == [[0, 64], [128, 255]]
        assert source.min_max[(0, 0)] == (100.0, 500.0)

        constant = source.open_plane(0, 1).data
        assert constant.tolist() == [[0, 0], [0, 0]]

    def test_crop_after_stretch(self):
        """Test cropping keeps the full plane's extrema."""
        data = np.array([[[0, 50], [100, 200]]], dtype=np.int16)
        source = MinMaxFilter(ArraySource(data, "ZYX"))
        plane = source.open_plane(0, 0, Bounds.from_offsets([1, 1], [1, 1]))
        assert plane.data.tolist() == [[255]]


def test_wrap_source_order(stack_zyx):
    """Test filters are stacked expand, separate, autoscale from the inside out."""
    source = wrap_source(
        ArraySource(stack_zyx, "ZYX"),
        ReaderConfig(expand=True, separate=True, autoscale=True),
    )
    assert isinstance(source, MinMaxFilter)
    assert isinstance(source.parent, PlaneSeparator)
    assert isinstance(source.parent.parent, ChannelFiller)
