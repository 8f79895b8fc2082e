"""Concurrent reads of many tiles of one plane."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from pixelsource.common import concurrent_map, get_image_size
from pixelsource.config import config
from pixelsource.errors import OperationAborted

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from pixelsource.abc.source import PixelSource
    from pixelsource.abort import AbortSignal
    from pixelsource.common import Raster, Selection

__all__ = ["get_tile_grid", "iter_tiles", "load_tiles"]

logger = logging.getLogger(__name__)

TileCoords = tuple[int, int]


def get_tile_grid(source: PixelSource) -> tuple[int, int]:
    """Number of tile columns and rows covering ``source``."""
    height, width = get_image_size(source)
    return math.ceil(width / source.tile_size), math.ceil(height / source.tile_size)


def iter_tiles(source: PixelSource) -> Iterator[TileCoords]:
    columns, rows = get_tile_grid(source)
    for y in range(rows):
        for x in range(columns):
            yield x, y


async def load_tiles(
    source: PixelSource,
    coords: Iterable[TileCoords],
    selection: Selection,
    signal: AbortSignal | None = None,
    limit: int | None = None,
) -> dict[TileCoords, Raster]:
    """
    Read tiles concurrently.

    A failing tile is handed to ``source.on_tile_error`` and left out of the result;
    it never stops the other reads. Aborted reads are dropped silently. Errors that
    ``on_tile_error`` re-raises are raised once every read has finished.

    Parameters
    ----------
    source : PixelSource
    coords : iterable of (x, y)
    selection : dict
    signal : AbortSignal, optional
        Signal shared by all reads of this call.
    limit : int, optional
        Maximum number of reads in flight; defaults to ``async.concurrency``.

    Returns
    -------
    dict
        Raster per tile coordinate, for the tiles that were read.
    """
    if limit is None:
        limit = config.get("async.concurrency")
    errors: list[Exception] = []

    async def load(x: int, y: int) -> tuple[TileCoords, Raster | None]:
        try:
            return (x, y), await source.get_tile(x, y, selection, signal)
        except OperationAborted:
            return (x, y), None
        except Exception as err:
            try:
                source.on_tile_error(err)
            except Exception as raised:
                errors.append(raised)
            return (x, y), None

    results = await concurrent_map([(x, y) for x, y in coords], load, limit)
    if errors:
        if len(errors) == 1:
            raise errors[0]
        raise ExceptionGroup("tile reads failed", errors)
    tiles = {coord: raster for coord, raster in results if raster is not None}
    logger.debug("loaded %d of %d tiles", len(tiles), len(results))
    return tiles
