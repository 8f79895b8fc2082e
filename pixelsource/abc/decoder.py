from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    import numpy as np

    from pixelsource.common import Window

__all__ = ["ChunkedArray", "Directory", "DirectoryDecoder"]


def _first(value: Any) -> Any:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return value[0] if len(value) else None
    return value


@dataclass(frozen=True)
class Directory:
    """A decoded image file directory.

    ``tags`` maps TIFF tag names to values. ``byte_order`` and ``source`` are shared by
    every directory of a file; ``page`` is an opaque handle owned by ``source``.
    """

    index: int | None
    tags: Mapping[str, Any]
    source: DirectoryDecoder
    offset: int | None = None
    byte_order: str = "<"
    page: Any = field(default=None, compare=False, repr=False)

    @property
    def width(self) -> int:
        return int(_first(self.tags["ImageWidth"]))

    @property
    def height(self) -> int:
        return int(_first(self.tags["ImageLength"]))

    @property
    def tile_width(self) -> int:
        if "TileWidth" in self.tags:
            return int(_first(self.tags["TileWidth"]))
        return self.width

    @property
    def tile_height(self) -> int:
        if "TileLength" in self.tags:
            return int(_first(self.tags["TileLength"]))
        rows = _first(self.tags.get("RowsPerStrip"))
        return self.height if rows is None else min(int(rows), self.height)

    @property
    def samples_per_pixel(self) -> int:
        return int(_first(self.tags.get("SamplesPerPixel", 1)))

    @property
    def bits_per_sample(self) -> int:
        return int(_first(self.tags.get("BitsPerSample", 1)))

    @property
    def sample_format(self) -> int:
        return int(_first(self.tags.get("SampleFormat", 1)))

    @property
    def sub_ifds(self) -> tuple[int, ...] | None:
        value = self.tags.get("SubIFDs")
        if value is None:
            return None
        if isinstance(value, int):
            return (value,)
        return tuple(int(v) for v in value)

    @property
    def description(self) -> str | None:
        value = self.tags.get("ImageDescription")
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        return value

    @property
    def photometric_interpretation(self) -> int | None:
        value = _first(self.tags.get("PhotometricInterpretation"))
        return None if value is None else int(value)

    def with_subdirectory(self, sub: Directory) -> Directory:
        """Combine the tag set of sub-resolution ``sub`` with the shared fields of ``self``."""
        return replace(self, tags=sub.tags, offset=sub.offset, page=sub.page)


class DirectoryDecoder(ABC):
    """Decode service for files made of image file directories."""

    @abstractmethod
    async def decode_directory(self, index: int) -> Directory:
        """Decode the ``index``-th directory of the file's main chain."""
        ...

    @abstractmethod
    async def decode_directory_at(self, offset: int) -> Directory:
        """Decode the directory stored at byte ``offset``."""
        ...

    @abstractmethod
    async def read_raster(self, directory: Directory, window: Window | None = None) -> np.ndarray:
        """
        Decode the pixels of ``directory``.

        Parameters
        ----------
        directory
            A directory produced by this decoder.
        window
            ``(x0, y0, x1, y1)`` half-open pixel window, or None for the full plane.

        Returns
        -------
        numpy.ndarray
            Array of shape ``(samples, height, width)``.
        """
        ...


@runtime_checkable
class ChunkedArray(Protocol):
    """Decode service for chunked array stores."""

    shape: tuple[int, ...]
    chunks: tuple[int, ...]

    @property
    def dtype(self) -> np.dtype[Any]: ...

    async def get_chunk(self, chunk_coords: Sequence[int]) -> np.ndarray:
        """Decode a single chunk, clipped to the array bounds."""
        ...

    async def get_selection(self, selection: tuple[int | slice, ...]) -> np.ndarray:
        """Decode an arbitrary basic selection."""
        ...
