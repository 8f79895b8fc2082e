from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from pixelsource.abc.decoder import Directory
from pixelsource.config import config
from pixelsource.errors import NotFoundError, ShapeMismatchError
from pixelsource.stack import StackIndexer, selection_to_key
from pixelsource.tests.util import MemoryDecoder
from pixelsource.tiff_source import TiffPixelSource


async def directories(decoder: MemoryDecoder, count: int, shape=(16, 16)) -> list[Directory]:
    result = []
    for i in range(count):
        index = decoder.add(np.full(shape, i, dtype="uint8"))
        result.append(await decoder.decode_directory(index))
    return result


def test_selection_to_key() -> None:
    assert selection_to_key({"c": 1}) == "1-0-0"
    assert selection_to_key({"t": 2, "c": 1, "z": 3}) == "1-2-3"


async def test_stack_indexer(memory_decoder: MemoryDecoder) -> None:
    dirs = await directories(memory_decoder, 3)
    indexer = StackIndexer([({"c": c}, d) for c, d in enumerate(dirs)])

    assert indexer.sizes == {"t": 1, "c": 3, "z": 1}
    assert indexer.labels == ["t", "c", "z", "y", "x"]
    assert indexer.get_shape() == (1, 3, 1, 16, 16)
    assert indexer.samples_per_pixel == [1, 1, 1]
    assert len(indexer) == 3
    assert (await indexer({"c": 2})) is dirs[2]


async def test_stack_missing_plane_is_reported(memory_decoder: MemoryDecoder) -> None:
    dirs = await directories(memory_decoder, 2)
    entries = [({"c": 0}, dirs[0]), ({"c": 2}, dirs[1])]

    with pytest.raises(NotFoundError) as excinfo:
        StackIndexer(entries)
    assert excinfo.value.selection == {"t": 0, "c": 1, "z": 0}


async def test_stack_declared_sizes(memory_decoder: MemoryDecoder) -> None:
    dirs = await directories(memory_decoder, 1)

    with pytest.raises(NotFoundError) as excinfo:
        StackIndexer([({"c": 0}, dirs[0])], sizes={"c": 2})
    assert excinfo.value.selection == {"t": 0, "c": 1, "z": 0}

    with pytest.raises(ShapeMismatchError):
        StackIndexer([({"c": 1}, dirs[0])], sizes={"c": 1}, strict=False)
    with pytest.raises(ValueError, match="unknown stack dimension"):
        StackIndexer([({"c": 0}, dirs[0])], sizes={"q": 1})


async def test_stack_not_strict(memory_decoder: MemoryDecoder) -> None:
    dirs = await directories(memory_decoder, 2)
    entries = [({"c": 0}, dirs[0]), ({"c": 2}, dirs[1])]

    with config.set({"stack.strict": False}):
        indexer = StackIndexer(entries)
    assert indexer.sizes["c"] == 3
    with pytest.raises(NotFoundError):
        await indexer({"c": 1})


async def test_stack_resolution_mismatch(memory_decoder: MemoryDecoder) -> None:
    dirs = await directories(memory_decoder, 1)
    other = await directories(memory_decoder, 1, shape=(8, 16))
    with pytest.raises(ShapeMismatchError):
        StackIndexer([({"c": 0}, dirs[0]), ({"c": 1}, other[0])])


async def test_stack_samples_per_pixel_mismatch(memory_decoder: MemoryDecoder) -> None:
    gray = await directories(memory_decoder, 1)
    index = memory_decoder.add(np.zeros((3, 16, 16), dtype="uint8"))
    rgb = await memory_decoder.decode_directory(index)
    with pytest.raises(ShapeMismatchError):
        StackIndexer([({"c": 0}, gray[0]), ({"c": 0, "t": 1}, rgb)])


def test_stack_requires_entries() -> None:
    with pytest.raises(ValueError):
        StackIndexer([])


async def test_stack_pixel_source(memory_decoder: MemoryDecoder) -> None:
    dirs = await directories(memory_decoder, 2)
    indexer = StackIndexer([({"c": c}, d) for c, d in enumerate(dirs)])
    source = TiffPixelSource(indexer, "uint8", 16, indexer.get_shape(), indexer.labels)

    raster = await source.get_raster({"c": 1})
    assert_array_equal(raster.as_array(), np.full((16, 16), 1, dtype="uint8"))
