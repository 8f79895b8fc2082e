"""Open images as pyramids of pixel sources."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import zarr

from pixelsource import ome
from pixelsource.abc.decoder import DirectoryDecoder
from pixelsource.common import to_thread
from pixelsource.config import config
from pixelsource.errors import FormatError, MetadataError
from pixelsource.indexing import get_labels, normalize_selection
from pixelsource.pyramid import get_resolver
from pixelsource.stack import STACK_DIMENSION_ORDER, StackIndexer
from pixelsource.tiff import OffsetsDecoder, TiffFileDecoder, guess_image_dtype, guess_tile_size
from pixelsource.tiff_source import TiffPixelSource
from pixelsource.util import TreeViewer
from pixelsource.zarr_source import ZarrArrayAdapter, ZarrPixelSource
from pixelsource.zarr_source import guess_tile_size as guess_array_tile_size

if TYPE_CHECKING:
    from pixelsource.abc.decoder import Directory
    from pixelsource.abc.source import PixelSource
    from pixelsource.common import Labels, Selection
    from pixelsource.registry import DecoderRegistry

__all__ = [
    "LoadedImage",
    "load_bioformats_zarr",
    "load_multi_tiff",
    "load_multiscales",
    "load_ome_tiff",
    "load_ome_zarr",
]

logger = logging.getLogger(__name__)

TIFF_EXTENSIONS = (".tif", ".tiff")
BIOFORMATS_METADATA = "METADATA.ome.xml"
BIOFORMATS_ZARR_DIR = "data.zarr"
DEFAULT_LABELS = ["t", "c", "z", "y", "x"]

OME_TYPES = {"float32": "float", "float64": "double"}


@dataclass
class LoadedImage:
    """A pyramid of pixel sources, full resolution first, with its metadata."""

    data: list[PixelSource]
    metadata: Any

    @property
    def name(self) -> str:
        if isinstance(self.metadata, ome.OmeImage):
            return self.metadata.name or self.metadata.id or "image"
        if isinstance(self.metadata, Mapping):
            multiscales = self.metadata.get("multiscales") or [{}]
            return multiscales[0].get("name") or "image"
        return "image"

    @property
    def levels(self) -> int:
        return len(self.data)

    def tree(self) -> TreeViewer:
        return TreeViewer(self)


def _open_decoder(
    source: str | os.PathLike[str] | DirectoryDecoder, registry: DecoderRegistry | None
) -> DirectoryDecoder:
    if isinstance(source, DirectoryDecoder):
        return source
    return TiffFileDecoder(source, registry=registry)


async def load_ome_tiff(
    source: str | os.PathLike[str] | DirectoryDecoder,
    *,
    offsets: Sequence[int] | Mapping[int, int] | None = None,
    images: Literal["first", "all"] = "first",
    registry: DecoderRegistry | None = None,
) -> LoadedImage | list[LoadedImage]:
    """
    Open an OME-TIFF file.

    Parameters
    ----------
    source : str, os.PathLike or DirectoryDecoder
        Path of the file, or a decoder for it.
    offsets : sequence of int, optional
        Byte offsets of the file's directories, to avoid walking the directory chain.
    images : {"first", "all"}
        Return the first image only, or a list with every image of the file.
    registry : DecoderRegistry, optional
        Codecs for compressions not decoded by the default decoder.

    Returns
    -------
    LoadedImage or list of LoadedImage
    """
    if images not in ("first", "all"):
        raise ValueError(f"images must be 'first' or 'all', got {images!r}")
    decoder = _open_decoder(source, registry)
    if offsets is not None:
        decoder = OffsetsDecoder(decoder, offsets)
    elif config.get("tiff.walk_warning"):
        logger.info("no directory offsets supplied for %r; directories are located by walking", decoder)

    first = await decoder.decode_directory(0)
    description = first.description
    if not description:
        raise MetadataError("first directory has no ImageDescription with OME-XML")
    omexml = ome.from_string(description)

    sub_ifds = first.sub_ifds
    if sub_ifds:
        levels = len(sub_ifds) + 1
        root_meta = omexml
    else:
        levels = len(omexml)
        root_meta = [omexml[0]]

    tile_size = guess_tile_size(first)
    pixels = [image.pixels for image in root_meta]
    loaded = []
    for image, img_meta in enumerate(root_meta):
        resolver = get_resolver(decoder, pixels, bool(sub_ifds), image)
        source_meta = ome.get_pixel_source_meta(img_meta)
        meta = {
            "photometric_interpretation": first.photometric_interpretation,
            "physical_sizes": source_meta.physical_sizes,
        }
        data: list[PixelSource] = [
            TiffPixelSource(
                resolver,
                source_meta.dtype,
                tile_size,
                source_meta.get_shape(level),
                source_meta.labels,
                meta,
                level=level,
            )
            for level in range(levels)
        ]
        loaded.append(LoadedImage(data=data, metadata=img_meta))
    logger.debug("opened %d image(s) with %d level(s)", len(loaded), levels)
    return loaded if images == "all" else loaded[0]


def _get_multi_tiff_metadata(
    name: str,
    indexer: StackIndexer,
    channel_names: Sequence[str | None],
    dtype: str,
) -> ome.OmeImage:
    image_number = 0
    channels = tuple(
        ome.Channel(
            id=f"Channel:{image_number}:{i}",
            name=channel_names[i],
            samples_per_pixel=indexer.samples_per_pixel[i],
        )
        for i in range(indexer.sizes["c"])
    )
    pixels = ome.Pixels(
        dimension_order=STACK_DIMENSION_ORDER.value,
        size_x=indexer.width,
        size_y=indexer.height,
        size_z=indexer.sizes["z"],
        size_c=indexer.sizes["c"],
        size_t=indexer.sizes["t"],
        type=OME_TYPES.get(dtype, dtype),
        id=f"Pixels:{image_number}",
        big_endian=indexer.first.byte_order == ">",
        channels=channels,
    )
    return ome.OmeImage(pixels=pixels, id=f"Image:{image_number}", name=name)


async def load_multi_tiff(
    sources: Sequence[tuple[Selection | Sequence[Selection | None], Any]],
    *,
    name: str = "MultiTiff",
    channel_names: Sequence[str] | None = None,
    sizes: Mapping[str, int] | None = None,
    strict: bool | None = None,
    registry: DecoderRegistry | None = None,
) -> LoadedImage:
    """
    Stitch single-plane TIFF directories into one image.

    Parameters
    ----------
    sources : sequence of (selection, file)
        ``file`` is a path or a decoder. ``selection`` addresses the file's first
        directory; a list of selections addresses its directories in order, and
        None entries skip a directory. Paths without a TIFF extension are skipped.
    name : str
        Name of the stitched image.
    channel_names : sequence of str, optional
        Defaults to the file names, suffixed with the directory index for files
        holding several planes.
    sizes : mapping, optional
        Declared extents of ``t``, ``c`` and ``z``.
    strict : bool, optional
        Require a plane for every coordinate; defaults to ``stack.strict``.
    registry : DecoderRegistry, optional

    Returns
    -------
    LoadedImage
        A single level image with labels ``[t, c, z, y, x]``.
    """
    entries: list[tuple[Selection, Directory]] = []
    names: dict[int, str] = {}
    for selections, file in sources:
        if isinstance(selections, Mapping):
            image_selections: list[Selection | None] = [selections]
        else:
            image_selections = list(selections)

        if isinstance(file, DirectoryDecoder):
            decoder = file
            stem = Path(getattr(file, "path", "image")).stem
        else:
            path = Path(file)
            if path.suffix.lower() not in TIFF_EXTENSIONS:
                logger.warning("skipping %s: not a TIFF file", path)
                continue
            decoder = TiffFileDecoder(path, registry=registry)
            stem = path.stem

        for i, selection in enumerate(image_selections):
            if selection is None:
                continue
            directory = await decoder.decode_directory(i)
            entries.append((selection, directory))
            channel = normalize_selection(selection)["c"]
            names[channel] = stem if len(image_selections) == 1 else f"{stem}_{i}"

    if not entries:
        raise FormatError("unable to load image from the provided TIFF sources")

    indexer = StackIndexer(entries, sizes=sizes, strict=strict)
    dtype = guess_image_dtype(indexer.first)
    if channel_names is None:
        channel_names = [names.get(c) for c in range(indexer.sizes["c"])]
    if len(channel_names) != indexer.sizes["c"]:
        raise MetadataError("wrong number of channel names for number of channels provided")

    metadata = _get_multi_tiff_metadata(name, indexer, channel_names, dtype)
    meta = {"photometric_interpretation": indexer.first.photometric_interpretation}
    source = TiffPixelSource(
        indexer,
        dtype,
        guess_tile_size(indexer.first),
        indexer.get_shape(),
        indexer.labels,
        meta,
    )
    return LoadedImage(data=[source], metadata=metadata)


def _multiscales_attrs(attrs: Mapping[str, Any]) -> Mapping[str, Any]:
    # OME-Zarr 0.5 nests its metadata under an "ome" key
    if "ome" in attrs and "multiscales" not in attrs:
        return attrs["ome"]
    return attrs


async def load_multiscales(
    store: Any, path: str = ""
) -> tuple[list[ZarrArrayAdapter], dict[str, Any], Labels]:
    """
    Open the arrays of a multiscale group.

    Returns the arrays in ``multiscales[0].datasets`` order, the root attributes and
    the axis labels. A group without multiscales metadata is read as a single array
    at path ``"0"`` with labels ``[t, c, z, y, x]``.
    """

    def _open() -> tuple[list[ZarrArrayAdapter], dict[str, Any], Labels]:
        grp = zarr.open_group(store, path=path, mode="r")
        root_attrs = grp.attrs.asdict()
        attrs = _multiscales_attrs(root_attrs)
        paths = ["0"]
        labels = list(DEFAULT_LABELS)
        if "multiscales" in attrs:
            multiscales = attrs["multiscales"][0]
            paths = [dataset["path"] for dataset in multiscales["datasets"]]
            axes = multiscales.get("axes")
            if axes:
                labels = [axis["name"] if isinstance(axis, Mapping) else axis for axis in axes]
        arrays = [ZarrArrayAdapter(grp[p]) for p in paths]
        return arrays, root_attrs, labels

    return await to_thread(_open)


async def load_ome_zarr(store: Any, *, type: str = "multiscales") -> LoadedImage:
    """Open a multiscale OME-Zarr group as a pyramid."""
    if type != "multiscales":
        raise FormatError("only multiscale OME-Zarr is supported")
    data, root_attrs, labels = await load_multiscales(store)
    tile_size = guess_array_tile_size(data[0])
    pyramid: list[PixelSource] = [ZarrPixelSource(arr, labels, tile_size) for arr in data]
    return LoadedImage(data=pyramid, metadata=root_attrs)


def guess_bioformats_labels(arr: ZarrArrayAdapter, image: ome.OmeImage) -> Labels:
    """Axis labels of a bioformats2raw array, checked against its OME-XML."""
    pixels = image.pixels
    ome_zarr_shape = (pixels.size_t, pixels.size_c, pixels.size_z, pixels.size_y, pixels.size_x)
    if tuple(arr.shape) == ome_zarr_shape:
        return get_labels("XYZCT")
    labels = get_labels(pixels.dimension_order)
    if len(labels) != len(arr.shape):
        raise MetadataError("dimension mismatch between zarr source and OME-XML")
    for i, label in enumerate(labels):
        if arr.shape[i] != pixels.size(label):
            raise MetadataError("dimension mismatch between zarr source and OME-XML")
    return labels


async def load_bioformats_zarr(path: str | os.PathLike[str]) -> LoadedImage:
    """Open the output directory of bioformats2raw."""
    root = Path(path)
    metadata_path = root / BIOFORMATS_METADATA
    if not metadata_path.exists():
        raise MetadataError(f"no OME-XML metadata found at {metadata_path}")
    xml = await to_thread(metadata_path.read_text, encoding="utf-8")
    img_meta = ome.from_string(xml)[0]
    data, _, _ = await load_multiscales(str(root / BIOFORMATS_ZARR_DIR), "0")
    labels = guess_bioformats_labels(data[0], img_meta)
    tile_size = guess_array_tile_size(data[0])
    pyramid: list[PixelSource] = [ZarrPixelSource(arr, labels, tile_size) for arr in data]
    return LoadedImage(data=pyramid, metadata=img_meta)
