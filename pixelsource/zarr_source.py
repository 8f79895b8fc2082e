from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from pixelsource.abc.source import PixelSource
from pixelsource.abort import throw_if_aborted
from pixelsource.common import Raster, get_image_size, is_interleaved, prev_power_of_2, to_thread
from pixelsource.errors import BoundsCheckError, OperationAborted, UnsupportedDtypeError
from pixelsource.indexing import get_chunk_indexer, get_spatial_axes

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pixelsource.abc.decoder import ChunkedArray
    from pixelsource.abort import AbortSignal
    from pixelsource.common import Labels, Selection, Shape

__all__ = ["ZarrArrayAdapter", "ZarrPixelSource", "guess_tile_size"]

logger = logging.getLogger(__name__)

DTYPE_LOOKUP = {
    "u1": "uint8",
    "u2": "uint16",
    "u4": "uint32",
    "f4": "float32",
    "f8": "float64",
    "i1": "int8",
    "i2": "int16",
    "i4": "int32",
}


class ZarrArrayAdapter:
    """
    Expose a :class:`zarr.Array` through the :class:`ChunkedArray` contract.

    Reads run in the default executor.
    """

    def __init__(self, array: Any) -> None:
        self._array = array
        self.shape = tuple(int(s) for s in array.shape)
        self.chunks = tuple(int(c) for c in array.chunks)

    @property
    def array(self) -> Any:
        return self._array

    @property
    def dtype(self) -> np.dtype[Any]:
        return np.dtype(self._array.dtype)

    def chunk_region(self, chunk_coords: Sequence[int]) -> tuple[slice, ...]:
        """The region of the array covered by a chunk, clipped to the array bounds."""
        region = []
        for index, chunk, extent in zip(chunk_coords, self.chunks, self.shape):
            start = int(index) * chunk
            if index < 0 or start >= extent:
                raise BoundsCheckError(extent)
            region.append(slice(start, min(start + chunk, extent)))
        return tuple(region)

    async def get_chunk(self, chunk_coords: Sequence[int]) -> np.ndarray:
        region = self.chunk_region(chunk_coords)
        return await to_thread(self._array.__getitem__, region)

    async def get_selection(self, selection: tuple[int | slice, ...]) -> np.ndarray:
        return await to_thread(self._array.__getitem__, selection)

    def __repr__(self) -> str:
        return f"ZarrArrayAdapter(shape={self.shape}, chunks={self.chunks}, dtype={self.dtype})"


def guess_tile_size(arr: ChunkedArray) -> int:
    """Largest power of two not exceeding the spatial chunk extents of ``arr``."""
    y_axis, x_axis = get_spatial_axes(arr.shape)
    return prev_power_of_2(min(arr.chunks[y_axis], arr.chunks[x_axis]))


class ZarrPixelSource(PixelSource):
    """
    Pixel source backed by a chunked array.

    When ``tile_size`` equals the spatial chunk extents, tiles are read chunk by chunk;
    otherwise each tile is read as an explicit slice of the array.

    Parameters
    ----------
    data : ChunkedArray
    labels : list of str
        One label per axis of ``data``.
    tile_size : int
    meta : dict, optional
    """

    def __init__(
        self,
        data: ChunkedArray,
        labels: Labels,
        tile_size: int,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if len(labels) != len(data.shape):
            raise ValueError(
                f"expected {len(data.shape)} labels for array of shape {data.shape}, "
                f"got {labels!r}"
            )
        self.labels = list(labels)
        self.tile_size = tile_size
        self.meta = meta
        self._data = data
        self._indexer = get_chunk_indexer(self.labels)
        self._y_index, self._x_index = get_spatial_axes(data.shape)
        x_chunk_size = data.chunks[self._x_index]
        y_chunk_size = data.chunks[self._y_index]
        self._read_chunks = tile_size == x_chunk_size and tile_size == y_chunk_size
        logger.debug(
            "tile size %d, chunks %s: reading tiles by %s",
            tile_size,
            data.chunks,
            "chunk" if self._read_chunks else "slice",
        )
        self._dtype = self._parse_dtype(data.dtype)

    @staticmethod
    def _parse_dtype(dtype: Any) -> str:
        suffix = np.dtype(dtype).str[1:]
        if suffix not in DTYPE_LOOKUP:
            raise UnsupportedDtypeError(suffix)
        return DTYPE_LOOKUP[suffix]

    @property
    def shape(self) -> Shape:
        return tuple(self._data.shape)

    @property
    def dtype(self) -> str:
        return self._dtype

    @property
    def reads_chunks(self) -> bool:
        return self._read_chunks

    def _chunk_index(self, selection: Selection | Sequence[int], x: Any, y: Any) -> list[Any]:
        sel = self._indexer(selection)
        sel[self._x_index] = x
        sel[self._y_index] = y
        return sel

    def _get_slices(self, x: int, y: int) -> tuple[slice, slice]:
        height, width = get_image_size(self)
        x_start, x_stop = x * self.tile_size, min((x + 1) * self.tile_size, width)
        y_start, y_stop = y * self.tile_size, min((y + 1) * self.tile_size, height)
        if x_start >= x_stop:
            raise BoundsCheckError(width)
        if y_start >= y_stop:
            raise BoundsCheckError(height)
        return slice(x_start, x_stop), slice(y_start, y_stop)

    async def get_raster(
        self, selection: Selection | Sequence[int], signal: AbortSignal | None = None
    ) -> Raster:
        throw_if_aborted(signal)
        sel = self._chunk_index(selection, slice(None), slice(None))
        data = await self._data.get_selection(tuple(sel))
        throw_if_aborted(signal)
        return self._to_raster(data)

    async def get_tile(
        self,
        x: int,
        y: int,
        selection: Selection | Sequence[int],
        signal: AbortSignal | None = None,
    ) -> Raster:
        throw_if_aborted(signal)
        if self._read_chunks:
            data = await self._read_chunk(x, y, selection)
        else:
            x_slice, y_slice = self._get_slices(x, y)
            sel = self._chunk_index(selection, x_slice, y_slice)
            data = await self._data.get_selection(tuple(sel))
        throw_if_aborted(signal)
        return self._to_raster(data)

    async def _read_chunk(self, x: int, y: int, selection: Selection | Sequence[int]) -> np.ndarray:
        sel = self._chunk_index(selection, x, y)
        coords = []
        within = []
        for axis, (index, chunk) in enumerate(zip(sel, self._data.chunks)):
            if axis in (self._x_index, self._y_index):
                coords.append(index)
                within.append(slice(None))
            elif isinstance(index, slice):
                coords.append(0)
                within.append(slice(None))
            else:
                coords.append(index // chunk)
                within.append(index % chunk)
        chunk_data = await self._data.get_chunk(coords)
        return chunk_data[tuple(within)]

    def _to_raster(self, data: np.ndarray) -> Raster:
        data = np.asarray(data)
        if is_interleaved(self.shape):
            height, width = data.shape[-3:-1]
        else:
            height, width = data.shape[-2:]
        return Raster(data=np.ascontiguousarray(data).ravel(), width=int(width), height=int(height))

    def on_tile_error(self, err: BaseException) -> None:
        """Suppress reads beyond the image edges and aborted reads; re-raise the rest."""
        if isinstance(err, (BoundsCheckError, OperationAborted)):
            return
        raise err
