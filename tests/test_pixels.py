"""Tests for the pixel buffer codec."""

import numpy as np
import pytest

from ndconvert.errors import FormatError
from ndconvert.pixels import (
    PixelType,
    decode,
    display_pixel_type,
    encode,
    is_pixel_type_mismatch,
    make_dtype,
    normalize,
    to_display_array,
)


def _samples(pixel_type):
    dtype = pixel_type.dtype(True)
    if pixel_type.is_float:
        return np.array([-1.5, 0.0, 2.25, 1e6], dtype=dtype)
    info = np.iinfo(dtype)
    return np.array([info.min, 0, 1, info.max], dtype=dtype)


class TestCodec:
    """Tests for decode and encode."""

    @pytest.mark.parametrize("pixel_type", list(PixelType))
    @pytest.mark.parametrize("little_endian", [True, False])
    def test_round_trip(self, pixel_type, little_endian):
        """Test decode(encode(a)) == a for every type and byte order."""
        samples = _samples(pixel_type)
        raw = encode(samples, little_endian)
        assert len(raw) == samples.size * pixel_type.bytes_per_pixel
        decoded = decode(
            raw,
            pixel_type.bytes_per_pixel,
            pixel_type.is_float,
            little_endian,
            signed=pixel_type.is_signed,
        )
        np.testing.assert_array_equal(decoded, samples)
        assert encode(decoded, little_endian) == raw

    def test_byte_order(self):
        """Test the byte order of the buffer is honored."""
        assert decode(b"\x01\x00", 2, False, True).tolist() == [1]
        assert decode(b"\x01\x00", 2, False, False).tolist() == [256]
        assert encode(np.array([1], dtype=np.uint16), False) == b"\x00\x01"

    def test_partial_sample(self):
        """Test a buffer that is not a multiple of the width is rejected."""
        with pytest.raises(FormatError):
            decode(b"\x00\x01\x02", 2, False, True)

    @pytest.mark.parametrize(
        "bpp,is_float", [(3, False), (16, False), (1, True), (2, True)]
    )
    def test_unsupported_layouts(self, bpp, is_float):
        """Test unsupported widths and half floats are rejected."""
        with pytest.raises(FormatError):
            make_dtype(bpp, is_float, True)

    def test_decoded_array_is_writable(self):
        """Test decode returns an array independent of the buffer."""
        decoded = decode(bytes(4), 1, False, True)
        decoded[0] = 7
        assert decoded[0] == 7


class TestPixelType:
    """Tests for PixelType."""

    def test_from_dtype(self):
        """Test numpy dtypes map to pixel types regardless of byte order."""
        assert PixelType.from_dtype(">u2") is PixelType.UINT16
        assert PixelType.from_dtype(np.float32) is PixelType.FLOAT
        assert PixelType.from_dtype(np.int64) is PixelType.INT64

    def test_from_dtype_rejects_complex(self):
        """Test dtypes without a pixel type are rejected."""
        with pytest.raises(FormatError):
            PixelType.from_dtype(np.complex64)

    def test_unsigned_counterpart(self):
        """Test signed integers map to the unsigned type of the same width."""
        assert PixelType.INT8.unsigned() is PixelType.UINT8
        assert PixelType.INT32.unsigned() is PixelType.UINT32
        assert PixelType.UINT16.unsigned() is PixelType.UINT16
        assert PixelType.FLOAT.unsigned() is PixelType.FLOAT


class TestNormalize:
    """Tests for normalize."""

    def test_rescales_to_unit_range(self):
        """Test min maps to 0 and max to 1."""
        result = normalize(np.array([2.0, 4.0, 6.0], dtype=np.float32))
        np.testing.assert_allclose(result, [0.0, 0.5, 1.0])
        assert result.dtype == np.float32

    def test_custom_range(self):
        """Test a custom output range."""
        result = normalize(np.array([0.0, 10.0]), out_range=(-1.0, 1.0))
        np.testing.assert_allclose(result, [-1.0, 1.0])

    def test_nan_ignored(self):
        """Test NaNs don't affect the extrema and stay NaN."""
        result = normalize(np.array([np.nan, 1.0, 3.0]))
        assert np.isnan(result[0])
        np.testing.assert_allclose(result[1:], [0.0, 1.0])

    def test_constant_input(self):
        """Test constant input maps to the lower end of the range."""
        result = normalize(np.full(4, 5.0))
        np.testing.assert_array_equal(result, np.zeros(4))

    def test_integer_input_rejected(self):
        """Test integers are not normalized."""
        with pytest.raises(ValueError):
            normalize(np.arange(4))


class TestDisplay:
    """Tests for display typing."""

    def test_signed_shifted_to_unsigned(self):
        """Test signed samples are offset into the unsigned range, in order."""
        result = to_display_array(np.array([-128, 0, 127], dtype=np.int8))
        assert result.dtype == np.uint8
        assert result.tolist() == [0, 128, 255]

    def test_big_endian_input(self):
        """Test display arrays are native byte order."""
        result = to_display_array(np.array([1, 2], dtype=">u2"))
        assert result.dtype.isnative
        assert result.tolist() == [1, 2]

    def test_int64_displayed_as_double(self):
        """Test 64-bit integers are displayed as doubles."""
        assert display_pixel_type(PixelType.INT64) is PixelType.DOUBLE
        assert to_display_array(np.array([3], dtype=np.int64)).dtype == np.float64

    def test_mismatch(self):
        """Test only types other than the source and its unsigned form mismatch."""
        assert not is_pixel_type_mismatch(PixelType.UINT16, PixelType.INT16)
        assert not is_pixel_type_mismatch(PixelType.FLOAT, PixelType.FLOAT)
        assert is_pixel_type_mismatch(PixelType.DOUBLE, PixelType.INT64)
        assert is_pixel_type_mismatch(PixelType.UINT8, PixelType.UINT16)
