import logging

import numpy as np
import pytest
import tifffile

from ndconvert.logging import LIBRARY_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_library_logger():
    """Undo handlers and levels installed by configure_logging (e.g. via the CLI)."""
    yield
    logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def stack_zyx():
    """Four 256x256 uint16 planes whose values encode (z, y, x)."""
    z, y, x = np.meshgrid(np.arange(4), np.arange(256), np.arange(256), indexing="ij")
    return (z * 10000 + y * 10 + x % 10).astype(np.uint16)


@pytest.fixture
def stack_zcyx():
    """Three Z by two C planes of 16x24 int16 samples, each plane constant."""
    data = np.empty((3, 2, 16, 24), dtype=np.int16)
    for zi in range(3):
        for ci in range(2):
            data[zi, ci] = zi * 2 + ci - 3
    return data


@pytest.fixture
def tiff_stack(tmp_path, stack_zyx):
    """A shaped ZYX TIFF file."""
    path = tmp_path / "stack.tif"
    tifffile.imwrite(path, stack_zyx, metadata={"axes": "ZYX"}, photometric="minisblack")
    return path

