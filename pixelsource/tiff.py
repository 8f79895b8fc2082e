"""TIFF decode service built on :mod:`tifffile`."""

from __future__ import annotations

import logging
import math
import os
import threading
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

import numpy as np
import tifffile

from pixelsource.abc.decoder import Directory, DirectoryDecoder
from pixelsource.cache import RequestCache
from pixelsource.common import prev_power_of_2, to_thread
from pixelsource.errors import UnsupportedCompressionError, UnsupportedDtypeError
from pixelsource.registry import DecoderRegistry

if TYPE_CHECKING:
    from types import TracebackType

    from pixelsource.common import Window

__all__ = ["OffsetsDecoder", "TiffFileDecoder", "guess_image_dtype", "guess_tile_size"]

logger = logging.getLogger(__name__)

PLANARCONFIG_CONTIG = 1


class TiffFileDecoder(DirectoryDecoder):
    """
    Decode directories and pixels of a TIFF file with tifffile.

    Blocking file access runs in the default executor; the file handle is shared and
    guarded by a lock.

    Parameters
    ----------
    path : str or os.PathLike
        Path of the TIFF file.
    registry : DecoderRegistry, optional
        Codecs that take over segment decompression for the compression codes they
        are registered for. Other compressions are decoded by tifffile.
    """

    def __init__(self, path: str | os.PathLike[str], *, registry: DecoderRegistry | None = None):
        self.path = os.fspath(path)
        self.registry = registry if registry is not None else DecoderRegistry()
        self._tif = tifffile.TiffFile(self.path)
        self._lock = threading.Lock()

    @property
    def byte_order(self) -> str:
        return self._tif.byteorder

    def close(self) -> None:
        self._tif.close()

    def __enter__(self) -> TiffFileDecoder:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"TiffFileDecoder({self.path!r})"

    async def decode_directory(self, index: int) -> Directory:
        return await to_thread(self._decode_index, index)

    async def decode_directory_at(self, offset: int) -> Directory:
        return await to_thread(self._decode_offset, offset)

    async def read_raster(self, directory: Directory, window: Window | None = None) -> np.ndarray:
        return await to_thread(self._read, directory, window)

    def _directory(self, page: tifffile.TiffPage, index: int | None) -> Directory:
        tags = {tag.name: tag.value for tag in page.tags.values()}
        return Directory(
            index=index,
            tags=tags,
            source=self,
            offset=page.offset,
            byte_order=self._tif.byteorder,
            page=page,
        )

    def _decode_index(self, index: int) -> Directory:
        with self._lock:
            page = self._tif.pages[index]
            return self._directory(page, index)

    def _decode_offset(self, offset: int) -> Directory:
        with self._lock:
            self._tif.filehandle.seek(offset)
            page = tifffile.TiffPage(self._tif, 0)
            return self._directory(page, None)

    def _read(self, directory: Directory, window: Window | None) -> np.ndarray:
        page = directory.page
        compression = int(page.compression)
        codec = self.registry.get(compression)
        if codec is not None:
            predictor = int(page.predictor)
            if predictor != 1 or page.bitspersample not in (8, 16, 32, 64):
                raise UnsupportedCompressionError(compression, predictor)
        return self._decode_segments(page, codec, window)

    def _decode_segments(
        self, page: tifffile.TiffPage, codec: Any, window: Window | None
    ) -> np.ndarray:
        """Decode the strips or tiles of ``page`` overlapping ``window`` into sample planes."""
        height, width = page.imagelength, page.imagewidth
        if window is None:
            window = (0, 0, width, height)
        x0, y0 = max(window[0], 0), max(window[1], 0)
        x1, y1 = max(min(window[2], width), x0), max(min(window[3], height), y0)

        samples = page.samplesperpixel
        contig = samples == 1 or page.planarconfig == PLANARCONFIG_CONTIG
        bands = samples if contig else 1
        if page.is_tiled:
            seg_height, seg_width = page.tilelength, page.tilewidth
        else:
            seg_height, seg_width = min(page.rowsperstrip, height), width
        across = math.ceil(width / seg_width)
        per_sample = across * math.ceil(height / seg_height)

        rows = range(y0 // seg_height, math.ceil(y1 / seg_height))
        cols = range(x0 // seg_width, math.ceil(x1 / seg_width))
        indices = [
            sample * per_sample + row * across + col
            for sample in range(1 if contig else samples)
            for row in rows
            for col in cols
        ]

        with self._lock:
            fh = self._tif.filehandle
            segments = []
            for i in indices:
                offset, count = page.dataoffsets[i], page.databytecounts[i]
                if count == 0:
                    segments.append(None)
                    continue
                fh.seek(offset)
                segments.append(fh.read(count))

        file_dtype = np.dtype(page.dtype).newbyteorder(self._tif.byteorder)
        out = np.zeros((samples, y1 - y0, x1 - x0), dtype=np.dtype(page.dtype).newbyteorder("="))
        for i, raw in zip(indices, segments):
            if raw is None:
                continue
            sample, loc = divmod(i, per_sample)
            row, col = divmod(loc, across)
            seg_y, seg_x = row * seg_height, col * seg_width
            if codec is None:
                decoded, _, _ = page.decode(raw, i, jpegtables=page.jpegtables)
                segment = decoded.reshape(decoded.shape[-3:])
            else:
                length = seg_height if page.is_tiled else min(seg_height, height - seg_y)
                decoded = np.frombuffer(codec.decode(raw), dtype=file_dtype)
                segment = decoded[: length * seg_width * bands].reshape(length, seg_width, bands)
            top, bottom = max(seg_y, y0), min(seg_y + seg_height, y1)
            left, right = max(seg_x, x0), min(seg_x + seg_width, x1)
            part = segment[top - seg_y : bottom - seg_y, left - seg_x : right - seg_x]
            part = np.moveaxis(part, -1, 0)
            target = (slice(top - y0, bottom - y0), slice(left - x0, right - x0))
            if contig:
                out[(slice(None), *target)] = part
            else:
                out[(sample, *target)] = part[0]
        logger.debug(
            "decoded %d of %d segments for window %s", len(indices), len(page.dataoffsets), window
        )
        return out


class OffsetsDecoder(DirectoryDecoder):
    """
    Decoder decorator consulting a table of known directory offsets.

    Locating the n-th directory of a TIFF file otherwise requires walking the chain of
    directories before it. Offsets listed in the table are decoded directly; other
    indices are delegated to the wrapped decoder.

    Parameters
    ----------
    decoder : DirectoryDecoder
        The wrapped decoder.
    offsets : sequence of int or mapping of int to int
        Byte offset of each directory, by directory index.
    """

    def __init__(self, decoder: DirectoryDecoder, offsets: Sequence[int] | Mapping[int, int]):
        self._decoder = decoder
        if isinstance(offsets, Mapping):
            self._offsets = {int(k): int(v) for k, v in offsets.items()}
        else:
            self._offsets = {i: int(v) for i, v in enumerate(offsets)}
        self._requests: RequestCache[int, Directory] = RequestCache()

    @property
    def decoder(self) -> DirectoryDecoder:
        return self._decoder

    @property
    def offsets(self) -> dict[int, int]:
        return dict(self._offsets)

    async def decode_directory(self, index: int) -> Directory:
        if index not in self._offsets:
            return await self._decoder.decode_directory(index)

        async def decode() -> Directory:
            directory = await self._decoder.decode_directory_at(self._offsets[index])
            return replace(directory, index=index)

        return await self._requests.get(index, decode)

    async def decode_directory_at(self, offset: int) -> Directory:
        return await self._decoder.decode_directory_at(offset)

    async def read_raster(self, directory: Directory, window: Window | None = None) -> np.ndarray:
        return await self._decoder.read_raster(directory, window)

    def __repr__(self) -> str:
        return f"OffsetsDecoder({self._decoder!r}, {len(self._offsets)} offsets)"


def guess_tile_size(directory: Directory) -> int:
    """Largest power of two not exceeding the directory's tile (or strip) extents."""
    return prev_power_of_2(min(directory.tile_width, directory.tile_height))


def guess_image_dtype(directory: Directory) -> str:
    """Numpy dtype name of the first sample of ``directory``."""
    sample_format = directory.sample_format
    bits = directory.bits_per_sample
    if sample_format == 1:
        for size in (8, 16, 32):
            if bits <= size:
                return f"uint{size}"
    elif sample_format == 2:
        for size in (8, 16, 32):
            if bits <= size:
                return f"int{size}"
    elif sample_format == 3:
        if bits in (16, 32):
            return "float32"
        if bits == 64:
            return "float64"
    raise UnsupportedDtypeError(f"sample format {sample_format} with {bits} bits")
