"""Resolution of (selection, level) pairs to image file directories.

Two layouts are in use for pyramidal OME-TIFF files:

* flat-run: every resolution level repeats the full sequence of planes, so level
  ``k`` of a plane lives ``k * planes_per_level`` directories after level 0;
* sub-directory: each full resolution directory lists the offsets of its own
  reduced resolution directories in its ``SubIFDs`` tag.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pixelsource.abort import throw_if_aborted
from pixelsource.cache import RequestCache
from pixelsource.errors import MissingSubIFDsError
from pixelsource.indexing import get_ifd_indexer, normalize_selection

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pixelsource.abc.decoder import Directory, DirectoryDecoder
    from pixelsource.abort import AbortSignal
    from pixelsource.common import Selection
    from pixelsource.indexing import IFDIndexer
    from pixelsource.ome import Pixels

__all__ = ["FlatRunResolver", "PyramidResolver", "SubIFDResolver", "get_resolver"]

logger = logging.getLogger(__name__)


class PyramidResolver(ABC):
    def __init__(self, decoder: DirectoryDecoder, ifd_indexer: IFDIndexer) -> None:
        self._decoder = decoder
        self._ifd_indexer = ifd_indexer

    @property
    def decoder(self) -> DirectoryDecoder:
        return self._decoder

    @abstractmethod
    async def resolve(
        self, selection: Selection, level: int, signal: AbortSignal | None = None
    ) -> Directory: ...

    async def __call__(
        self, selection: Selection, level: int = 0, signal: AbortSignal | None = None
    ) -> Directory:
        return await self.resolve(selection, level, signal)


class FlatRunResolver(PyramidResolver):
    """Resolver for pyramids stored as consecutive runs of all planes."""

    def __init__(
        self, decoder: DirectoryDecoder, ifd_indexer: IFDIndexer, planes_per_level: int
    ) -> None:
        super().__init__(decoder, ifd_indexer)
        self.planes_per_level = planes_per_level

    async def resolve(
        self, selection: Selection, level: int, signal: AbortSignal | None = None
    ) -> Directory:
        throw_if_aborted(signal)
        index = self._ifd_indexer(selection) + level * self.planes_per_level
        directory = await self._decoder.decode_directory(index)
        throw_if_aborted(signal)
        return directory


class SubIFDResolver(PyramidResolver):
    """
    Resolver for pyramids stored as SubIFDs of the full resolution directories.

    Reduced resolution directories are decoded once per ``(t, c, z, level)`` and
    memoised; concurrent requests for the same key share a single decode.
    """

    def __init__(self, decoder: DirectoryDecoder, ifd_indexer: IFDIndexer) -> None:
        super().__init__(decoder, ifd_indexer)
        self._cache: RequestCache[str, Directory] = RequestCache()

    @property
    def cache(self) -> RequestCache[str, Directory]:
        return self._cache

    @staticmethod
    def cache_key(selection: Selection, level: int) -> str:
        sel = normalize_selection(selection)
        return f"{sel['t']}-{sel['c']}-{sel['z']}-{level}"

    async def resolve(
        self, selection: Selection, level: int, signal: AbortSignal | None = None
    ) -> Directory:
        throw_if_aborted(signal)
        index = self._ifd_indexer(selection)
        base = await self._decoder.decode_directory(index)
        throw_if_aborted(signal)
        if level == 0:
            return base

        sub_ifds = base.sub_ifds
        if not sub_ifds or len(sub_ifds) < level:
            raise MissingSubIFDsError(index, level)

        key = self.cache_key(selection, level)
        offset = sub_ifds[level - 1]
        sub = await self._cache.get(
            key, lambda: self._decoder.decode_directory_at(offset), signal
        )
        throw_if_aborted(signal)
        return base.with_subdirectory(sub)


def get_resolver(
    decoder: DirectoryDecoder,
    pixels: Sequence[Pixels],
    sub_ifds: bool,
    image: int = 0,
) -> PyramidResolver:
    """
    Pick the resolver matching the pyramid layout of a file.

    Parameters
    ----------
    decoder
        Decode service of the file.
    pixels
        Pixels records of the images addressed by plane index, in file order.
    sub_ifds
        Whether the first directory of the file carries a ``SubIFDs`` tag.
    image
        Index of the image within ``pixels``.
    """
    ifd_indexer = get_ifd_indexer(pixels, image)
    if sub_ifds:
        logger.debug("using SubIFD pyramid resolver for image %d", image)
        return SubIFDResolver(decoder, ifd_indexer)
    planes_per_level = pixels[0].planes
    logger.debug("using flat-run pyramid resolver, %d planes per level", planes_per_level)
    return FlatRunResolver(decoder, ifd_indexer, planes_per_level)
