from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import pytest
import tifffile
import zarr

from pixelsource.config import config
from pixelsource.tests.util import MemoryDecoder

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def reset_config() -> Any:
    yield
    config.reset()


@pytest.fixture
def memory_decoder() -> MemoryDecoder:
    return MemoryDecoder()


@pytest.fixture
def planes() -> np.ndarray:
    return np.arange(2 * 64 * 64, dtype="uint16").reshape(2, 64, 64)


@pytest.fixture
def subifd_tiff(tmp_path: Path, planes: np.ndarray) -> Path:
    path = tmp_path / "subifds.ome.tif"
    with tifffile.TiffWriter(path, ome=True) as tif:
        tif.write(
            planes,
            photometric="minisblack",
            tile=(16, 16),
            subifds=1,
            metadata={"axes": "CYX"},
        )
        tif.write(planes[:, ::2, ::2], photometric="minisblack", tile=(16, 16), subfiletype=1)
    return path


@pytest.fixture
def flat_tiff(tmp_path: Path, planes: np.ndarray) -> Path:
    path = tmp_path / "flat.ome.tif"
    with tifffile.TiffWriter(path, ome=True) as tif:
        tif.write(planes, photometric="minisblack", tile=(16, 16), metadata={"axes": "CYX"})
        tif.write(
            planes[:, ::2, ::2], photometric="minisblack", tile=(16, 16), metadata={"axes": "CYX"}
        )
    return path


@pytest.fixture
def ome_zarr(tmp_path: Path) -> tuple[Path, np.ndarray]:
    path = tmp_path / "image.zarr"
    data = np.arange(2 * 64 * 64, dtype="uint16").reshape(1, 2, 1, 64, 64)
    root = zarr.open_group(str(path), mode="w")
    for level in range(2):
        step = 2**level
        level_data = data[..., ::step, ::step]
        arr = root.create_array(
            str(level), shape=level_data.shape, chunks=(1, 1, 1, 32, 32), dtype="uint16"
        )
        arr[:] = level_data
    root.attrs["multiscales"] = [
        {
            "version": "0.4",
            "name": "test",
            "axes": [{"name": name} for name in "tczyx"],
            "datasets": [{"path": "0"}, {"path": "1"}],
        }
    ]
    return path, data
