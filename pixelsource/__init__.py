"""Uniform tiled access to multi-dimensional bioimages stored as TIFF or Zarr."""

from pixelsource.abc.source import PixelSource
from pixelsource.abort import AbortSignal, RequestGroup
from pixelsource.common import Raster
from pixelsource.config import config
from pixelsource.errors import (
    BoundsCheckError,
    FormatError,
    MetadataError,
    NotFoundError,
    OperationAborted,
)
from pixelsource.loaders import (
    LoadedImage,
    load_bioformats_zarr,
    load_multi_tiff,
    load_ome_tiff,
    load_ome_zarr,
)
from pixelsource.registry import DecoderRegistry
from pixelsource.stats import ChannelStats, get_channel_stats
from pixelsource.tiff_source import TiffPixelSource
from pixelsource.tiles import load_tiles
from pixelsource.zarr_source import ZarrPixelSource

__version__ = "0.1.0"

__all__ = [
    "AbortSignal",
    "BoundsCheckError",
    "ChannelStats",
    "DecoderRegistry",
    "FormatError",
    "LoadedImage",
    "MetadataError",
    "NotFoundError",
    "OperationAborted",
    "PixelSource",
    "Raster",
    "RequestGroup",
    "TiffPixelSource",
    "ZarrPixelSource",
    "__version__",
    "config",
    "get_channel_stats",
    "load_bioformats_zarr",
    "load_multi_tiff",
    "load_ome_tiff",
    "load_ome_zarr",
    "load_tiles",
]
