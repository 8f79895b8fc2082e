from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np

from pixelsource.abc.source import PixelSource
from pixelsource.abort import throw_if_aborted
from pixelsource.common import ImageSize, Raster, get_image_size, is_interleaved

if TYPE_CHECKING:
    from pixelsource.abc.decoder import Directory
    from pixelsource.abort import AbortSignal
    from pixelsource.common import Labels, Selection, Shape, Window

__all__ = ["DirectoryIndexer", "TiffPixelSource", "get_tile_extent"]

logger = logging.getLogger(__name__)


class DirectoryIndexer(Protocol):
    async def __call__(
        self, selection: Selection, level: int = 0, signal: AbortSignal | None = None
    ) -> Directory: ...


def get_tile_extent(size: ImageSize, tile_size: int, x: int, y: int) -> ImageSize:
    """Extent of tile ``(x, y)``, clipped in the last column and row of the image."""
    height = tile_size
    width = tile_size
    max_x_tile_coord = size.width // tile_size
    max_y_tile_coord = size.height // tile_size
    if x == max_x_tile_coord:
        width = size.width % tile_size
    if y == max_y_tile_coord:
        height = size.height % tile_size
    return ImageSize(height=height, width=width)


class TiffPixelSource(PixelSource):
    """
    Pixel source backed by directories of one or more TIFF files.

    Parameters
    ----------
    indexer : DirectoryIndexer
        Resolves a selection at ``level`` to the directory holding its pixels, e.g. a
        :class:`~pixelsource.pyramid.PyramidResolver` or a
        :class:`~pixelsource.stack.StackIndexer`.
    dtype : str
        Numpy dtype name of the pixels.
    tile_size : int
    shape : tuple of int
        Shape of this level in ``labels`` order.
    labels : list of str
    meta : dict, optional
        Extra information passed through to callers, e.g. physical sizes.
    level : int
        Pyramid level passed to ``indexer``.
    """

    def __init__(
        self,
        indexer: DirectoryIndexer,
        dtype: str,
        tile_size: int,
        shape: Shape,
        labels: Labels,
        meta: dict[str, Any] | None = None,
        level: int = 0,
    ) -> None:
        self._indexer = indexer
        self._dtype = dtype
        self._shape = tuple(int(s) for s in shape)
        self.tile_size = tile_size
        self.labels = list(labels)
        self.meta = meta
        self.level = level

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def dtype(self) -> str:
        return self._dtype

    async def get_raster(
        self, selection: Selection, signal: AbortSignal | None = None
    ) -> Raster:
        directory = await self._indexer(selection, self.level, signal)
        return await self._read_rasters(directory, signal=signal)

    async def get_tile(
        self, x: int, y: int, selection: Selection, signal: AbortSignal | None = None
    ) -> Raster:
        extent = self._get_tile_extent(x, y)
        x0 = x * self.tile_size
        y0 = y * self.tile_size
        window = (x0, y0, x0 + extent.width, y0 + extent.height)
        directory = await self._indexer(selection, self.level, signal)
        return await self._read_rasters(directory, window=window, signal=signal)

    async def _read_rasters(
        self,
        directory: Directory,
        window: Window | None = None,
        signal: AbortSignal | None = None,
    ) -> Raster:
        throw_if_aborted(signal)
        planes = await directory.source.read_raster(directory, window)
        throw_if_aborted(signal)

        _, height, width = planes.shape
        if is_interleaved(self.shape):
            data = np.moveaxis(planes, 0, -1).ravel()
        else:
            data = planes[0].ravel()
        return Raster(data=data.astype(self.dtype, copy=False), width=width, height=height)

    def _get_tile_extent(self, x: int, y: int) -> ImageSize:
        return get_tile_extent(get_image_size(self), self.tile_size, x, y)
