from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from pixelsource.common import ImageSize, get_image_size, is_interleaved
from pixelsource.errors import OperationAborted

if TYPE_CHECKING:
    from pixelsource.abort import AbortSignal
    from pixelsource.common import Labels, Raster, Selection, Shape

__all__ = ["PixelSource"]

logger = logging.getLogger(__name__)


class PixelSource(ABC):
    """
    One resolution level of an image.

    Every storage layout presents the same surface: ``dtype``, ``tile_size``,
    ``shape``, ``labels`` and ``meta``, plus the asynchronous reads below.
    """

    tile_size: int
    labels: Labels
    meta: dict[str, Any] | None = None

    @property
    @abstractmethod
    def shape(self) -> Shape: ...

    @property
    @abstractmethod
    def dtype(self) -> str: ...

    @property
    def size(self) -> ImageSize:
        return get_image_size(self)

    @property
    def interleaved(self) -> bool:
        return is_interleaved(self.shape)

    @abstractmethod
    async def get_raster(
        self, selection: Selection, signal: AbortSignal | None = None
    ) -> Raster:
        """
        Read the full plane addressed by ``selection``.

        Parameters
        ----------
        selection
            Index along each non-spatial dimension.
        signal
            Abort signal checked after every suspension point.

        Raises
        ------
        OperationAborted
            If ``signal`` was aborted before the read completed.
        """
        ...

    @abstractmethod
    async def get_tile(
        self, x: int, y: int, selection: Selection, signal: AbortSignal | None = None
    ) -> Raster:
        """
        Read tile ``(x, y)`` of the plane addressed by ``selection``.

        Tiles in the last column and row are clipped to the image bounds.
        """
        ...

    def on_tile_error(self, err: BaseException) -> None:
        """Handle an error raised by :meth:`get_tile`.

        The default logs and suppresses every error; aborted reads are dropped
        without logging.
        """
        if isinstance(err, OperationAborted):
            return
        logger.error("tile read failed on %r: %s", self, err, exc_info=err)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} shape={tuple(self.shape)} dtype={self.dtype}>"
