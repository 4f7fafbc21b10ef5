"""Tests for the ndconvert console script.

This module tests the ``convert`` and ``show`` commands, both in process
through :func:`ndconvert.cli.main` and as a subprocess.
"""

import io
import subprocess
import sys

import nibabel as nib
import numpy as np
import pytest
import tifffile

from ndconvert.cli import build_parser, main, parse_int_list


class TestParser:
    """Tests for argument parsing."""

    def test_parse_int_list(self):
        """Test comma separated integers."""
        assert parse_int_list("0, 128,0,64") == [0, 128, 0, 64]
        assert parse_int_list("") == []

    def test_reader_options_shared(self):
        """Test both commands accept the reader options."""
        parser = build_parser()
        convert = parser.parse_args(["convert", "a.tif", "b.tif", "-C", "0,4,0,4", "-t"])
        show = parser.parse_args(["show", "a.tif", "-r", "1,2", "-e", "-M", "x.bin"])
        assert convert.crop == [0, 4, 0, 4] and convert.stitch
        assert show.plane_range == [1, 2] and show.expand
        assert show.location == "x.bin"

    def test_overwrite_flags_exclusive(self, capsys):
        """Test --overwrite and --nooverwrite cannot be combined."""
        with pytest.raises(SystemExit) as excinfo:
            main(["convert", "a.tif", "b.tif", "-o", "-n"])
        assert excinfo.value.code == 2

    def test_command_required(self, capsys):
        """Test running without a command is a usage error."""
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 2


class TestConvertCommand:
    """Tests for ``ndconvert convert``."""

    def test_tiff_to_nifti(self, tiff_stack, tmp_path, stack_zyx, capsys):
        """Test a cropped conversion reports the planes written."""
        output = tmp_path / "out.nii.gz"
        code = main(
            ["convert", str(tiff_stack), str(output), "-C", "0,8,0,16", "-r", "1,2"]
        )
        assert code == 0
        out = capsys.readouterr().out
        assert f"Converted 2/2 planes from {tiff_stack} to {output}" in out

        data = np.asanyarray(nib.load(str(output)).dataobj)
        # NIfTI stores XYZ, the reverse of ZYX
        np.testing.assert_array_equal(data.T, stack_zyx[1:3, :8, :16])

    def test_capacity_reported(self, tiff_stack, tmp_path, capsys):
        """Test planes beyond a single-plane format are reported as skipped."""
        output = tmp_path / "out.png"
        assert main(["convert", str(tiff_stack), str(output), "-a"]) == 0
        out = capsys.readouterr().out
        assert "Converted 1/4 planes" in out
        assert "(3 beyond the output's capacity)" in out

    def test_nooverwrite_keeps_file(self, tiff_stack, tmp_path, capsys):
        """Test -n refuses to replace an existing output."""
        output = tmp_path / "out.tif"
        output.write_bytes(b"keep")
        assert main(["convert", str(tiff_stack), str(output), "-n"]) == 1
        assert "Error: Output file" in capsys.readouterr().err
        assert output.read_bytes() == b"keep"

    def test_prompt_declined(self, tiff_stack, tmp_path, monkeypatch, capsys):
        """Test answering n at the prompt leaves the output alone."""
        output = tmp_path / "out.tif"
        output.write_bytes(b"keep")
        monkeypatch.setattr("sys.stdin", io.StringIO("n\n"))
        assert main(["convert", str(tiff_stack), str(output)]) == 1
        captured = capsys.readouterr()
        assert "Do you want to overwrite it? ([y]/n)" in captured.err
        assert output.read_bytes() == b"keep"

    def test_prompt_accepted(self, tiff_stack, tmp_path, monkeypatch, stack_zyx):
        """Test an empty answer overwrites."""
        output = tmp_path / "out.tif"
        output.write_bytes(b"old")
        monkeypatch.setattr("sys.stdin", io.StringIO("\n"))
        assert main(["convert", str(tiff_stack), str(output), "-q"]) == 0
        np.testing.assert_array_equal(tifffile.imread(output), stack_zyx)

    def test_range_outside_image(self, tiff_stack, tmp_path, capsys):
        """Test a range past the last plane fails without output."""
        output = tmp_path / "out.tif"
        assert main(["convert", str(tiff_stack), str(output), "-r", "3,2"]) == 1
        assert "Error:" in capsys.readouterr().err
        assert not output.exists()

    def test_unknown_suffix(self, tiff_stack, tmp_path, capsys):
        """Test an output nobody can write is reported."""
        assert main(["convert", str(tiff_stack), str(tmp_path / "out.xyz")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_missing_input(self, tmp_path, capsys):
        """Test a missing input file is an error, not a traceback."""
        code = main(["convert", str(tmp_path / "nope.tif"), str(tmp_path / "out.tif")])
        assert code == 1
        assert "Error:" in capsys.readouterr().err

    def test_compression_option(self, tiff_stack, tmp_path, stack_zyx):
        """Test the compression option reaches the TIFF writer."""
        output = tmp_path / "out.tif"
        assert main(["convert", str(tiff_stack), str(output), "-c", "zlib", "-q"]) == 0
        with tifffile.TiffFile(output) as tif:
            assert tif.pages[0].compression == tifffile.COMPRESSION.ADOBE_DEFLATE
            np.testing.assert_array_equal(tif.asarray(), stack_zyx)


class TestShowCommand:
    """Tests for ``ndconvert show``."""

    def test_ascii(self, tmp_path, capsys):
        """Test planes are printed as ASCII art."""
        data = np.zeros((2, 8, 16), dtype=np.uint8)
        data[:, :, 8:] = 255
        path = tmp_path / "halves.tif"
        tifffile.imwrite(path, data, metadata={"axes": "ZYX"})

        assert main(["show", str(path), "--ascii", "--width", "16"]) == 0
        out = capsys.readouterr().out
        assert "Image #0:" in out
        assert "Image #1:" in out
        assert " " * 8 + "@" * 8 in out

    def test_ascii_with_range(self, tiff_stack, capsys):
        """Test only the requested planes are shown."""
        assert main(["show", str(tiff_stack), "--ascii", "-r", "2,1", "-b"]) == 0
        out = capsys.readouterr().out
        assert "Image #0:" in out
        assert "Image #1:" not in out

    def test_image_summary_logged(self, tiff_stack, capsys):
        """Test the image description is logged before display."""
        assert main(["show", str(tiff_stack), "--ascii", "-r", "0,1"]) == 0
        assert "Image #0: TIFF" in capsys.readouterr().err


class TestSubprocess:
    """Test the module runs as a script."""

    def run_cli_script(self, args, expect_success=True):
        """Helper to run the CLI and return the result."""
        cmd = [sys.executable, "-m", "ndconvert.cli"] + args
        result = subprocess.run(cmd, capture_output=True, text=True)

        if expect_success and result.returncode != 0:
            pytest.fail(
                f"ndconvert failed with return code {result.returncode}\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )

        return result

    def test_help(self):
        """Test --help lists the commands."""
        result = self.run_cli_script(["--help"])
        assert "convert" in result.stdout
        assert "show" in result.stdout

    def test_convert(self, tiff_stack, tmp_path):
        """Test a conversion through the script."""
        output = tmp_path / "out.ome.zarr"
        result = self.run_cli_script(["convert", str(tiff_stack), str(output)])
        assert "Converted 4/4 planes" in result.stdout
        assert "Processed: 4/4 planes." in result.stderr

    def test_failure_exit_code(self, tmp_path):
        """Test failures exit with status 1."""
        result = self.run_cli_script(
            ["convert", str(tmp_path / "nope.tif"), str(tmp_path / "out.tif")],
            expect_success=False,
        )
        assert result.returncode == 1
        assert "Error:" in result.stderr
