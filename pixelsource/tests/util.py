from __future__ import annotations

import asyncio
from collections import Counter
from typing import TYPE_CHECKING, Any

import numpy as np

from pixelsource.abc.decoder import Directory, DirectoryDecoder

if TYPE_CHECKING:
    from pixelsource.common import Window


def plane_tags(data: np.ndarray, tile: int | None = None, **extra: Any) -> dict[str, Any]:
    samples, height, width = data.shape
    kind = {"u": 1, "i": 2, "f": 3}[data.dtype.kind]
    tags = {
        "ImageWidth": width,
        "ImageLength": height,
        "SamplesPerPixel": samples,
        "BitsPerSample": data.dtype.itemsize * 8,
        "SampleFormat": kind,
        "PhotometricInterpretation": 1,
    }
    if tile is not None:
        tags["TileWidth"] = tile
        tags["TileLength"] = tile
    tags.update(extra)
    return tags


class MemoryDecoder(DirectoryDecoder):
    """Decoder over in-memory planes; counts every directory decode."""

    def __init__(self, delay: float = 0.0) -> None:
        self.main: list[tuple[dict[str, Any], np.ndarray]] = []
        self.by_offset: dict[int, tuple[dict[str, Any], np.ndarray]] = {}
        self.calls: Counter[tuple[str, int]] = Counter()
        self.delay = delay

    @staticmethod
    def _planes(data: np.ndarray) -> np.ndarray:
        data = np.asarray(data)
        return data[np.newaxis] if data.ndim == 2 else data

    def add(self, data: np.ndarray, tile: int | None = None, **extra: Any) -> int:
        planes = self._planes(data)
        self.main.append((plane_tags(planes, tile, **extra), planes))
        return len(self.main) - 1

    def add_at(self, offset: int, data: np.ndarray, tile: int | None = None, **extra: Any) -> None:
        planes = self._planes(data)
        self.by_offset[offset] = (plane_tags(planes, tile, **extra), planes)

    async def decode_directory(self, index: int) -> Directory:
        self.calls["index", index] += 1
        await asyncio.sleep(self.delay)
        tags, planes = self.main[index]
        return Directory(index=index, tags=tags, source=self, page=planes)

    async def decode_directory_at(self, offset: int) -> Directory:
        self.calls["offset", offset] += 1
        await asyncio.sleep(self.delay)
        tags, planes = self.by_offset[offset]
        return Directory(index=None, tags=tags, source=self, offset=offset, page=planes)

    async def read_raster(self, directory: Directory, window: Window | None = None) -> np.ndarray:
        await asyncio.sleep(0)
        planes = directory.page
        if window is not None:
            x0, y0, x1, y1 = window
            planes = planes[:, y0:y1, x0:x1]
        return planes


def ome_xml(
    size_x: int,
    size_y: int,
    size_c: int = 1,
    size_z: int = 1,
    size_t: int = 1,
    order: str = "XYZCT",
    type: str = "uint16",
    images: int = 1,
    name: str = "test",
) -> str:
    body = []
    for i in range(images):
        channels = "".join(
            f'<Channel ID="Channel:{i}:{c}" Name="ch{c}" SamplesPerPixel="1" Color="-16776961"/>'
            for c in range(size_c)
        )
        body.append(
            f'<Image ID="Image:{i}" Name="{name}">'
            "<AcquisitionDate>2020-01-01T00:00:00</AcquisitionDate>"
            f'<Pixels ID="Pixels:{i}" DimensionOrder="{order}" Type="{type}" '
            f'SizeX="{size_x}" SizeY="{size_y}" SizeC="{size_c}" SizeZ="{size_z}" '
            f'SizeT="{size_t}" PhysicalSizeX="0.5" PhysicalSizeXUnit="µm" '
            f'PhysicalSizeY="0.5" PhysicalSizeYUnit="µm" BigEndian="false">'
            f"{channels}</Pixels></Image>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<OME xmlns="http://www.openmicroscopy.org/Schemas/OME/2016-06">'
        + "".join(body)
        + "</OME>"
    )
