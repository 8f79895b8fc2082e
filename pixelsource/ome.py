"""OME-XML metadata records.

Only the parts of the OME data model needed to address pixels are kept: per image the
dimension order, sizes, pixel type, physical sizes and channels.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ElementTree
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pixelsource.common import INTERLEAVE_LABEL, Shape, int_to_rgba
from pixelsource.errors import MetadataError, UnsupportedDtypeError
from pixelsource.indexing import DimensionOrder, get_dims, get_labels

__all__ = [
    "Channel",
    "OmeImage",
    "PhysicalSize",
    "PixelSourceMeta",
    "Pixels",
    "from_string",
    "get_pixel_source_meta",
]

logger = logging.getLogger(__name__)

DTYPE_LOOKUP = {
    "uint8": "uint8",
    "uint16": "uint16",
    "uint32": "uint32",
    "float": "float32",
    "double": "float64",
    "int8": "int8",
    "int16": "int16",
    "int32": "int32",
}


@dataclass(frozen=True)
class Channel:
    id: str = ""
    name: str | None = None
    samples_per_pixel: int = 1
    color: list[int] | None = None


@dataclass(frozen=True)
class PhysicalSize:
    size: float
    unit: str | None = None


@dataclass(frozen=True)
class Pixels:
    dimension_order: str
    size_x: int
    size_y: int
    size_z: int = 1
    size_c: int = 1
    size_t: int = 1
    type: str = "uint8"
    id: str = ""
    interleaved: bool = False
    big_endian: bool | None = None
    physical_size_x: float | None = None
    physical_size_x_unit: str | None = None
    physical_size_y: float | None = None
    physical_size_y_unit: str | None = None
    physical_size_z: float | None = None
    physical_size_z_unit: str | None = None
    channels: tuple[Channel, ...] = ()

    @property
    def planes(self) -> int:
        return self.size_c * self.size_z * self.size_t

    def size(self, dim: str) -> int:
        return {
            "x": self.size_x,
            "y": self.size_y,
            "z": self.size_z,
            "c": self.size_c,
            "t": self.size_t,
        }[dim.lower()]


@dataclass(frozen=True)
class OmeImage:
    pixels: Pixels
    id: str = ""
    name: str | None = None
    acquisition_date: str = ""
    description: str = ""

    def format(self) -> dict[str, Any]:
        """Human readable summary of the image."""
        p = self.pixels
        sizes = []
        for dim in ("x", "y", "z"):
            size = getattr(p, f"physical_size_{dim}")
            unit = getattr(p, f"physical_size_{dim}_unit")
            sizes.append(f"{size} {unit}" if size and unit else "-")
        return {
            "Acquisition Date": self.acquisition_date,
            "Dimensions (XY)": f"{p.size_x} x {p.size_y}",
            "Pixels Type": p.type,
            "Pixels Size (XYZ)": " x ".join(sizes),
            "Z-sections/Timepoints": f"{p.size_z} x {p.size_t}",
            "Channels": p.size_c,
        }


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse_value(value: str) -> Any:
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for convert in (int, float):
        try:
            return convert(value)
        except ValueError:
            pass
    return value


def _attrs(element: ElementTree.Element) -> dict[str, Any]:
    return {_local(k): _parse_value(v) for k, v in element.attrib.items()}


def _child(element: ElementTree.Element, name: str) -> ElementTree.Element | None:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _children(element: ElementTree.Element, name: str) -> list[ElementTree.Element]:
    return [child for child in element if _local(child.tag) == name]


def _parse_channel(element: ElementTree.Element) -> Channel:
    attrs = _attrs(element)
    color = attrs.get("Color")
    name = attrs.get("Name")
    return Channel(
        id=str(attrs.get("ID", "")),
        name=None if name is None else str(name),
        samples_per_pixel=int(attrs.get("SamplesPerPixel", 1)),
        color=None if color is None else int_to_rgba(color),
    )


def _parse_pixels(element: ElementTree.Element) -> Pixels:
    attrs = _attrs(element)
    try:
        order = DimensionOrder.parse(attrs["DimensionOrder"]).value
        size_x = int(attrs["SizeX"])
        size_y = int(attrs["SizeY"])
    except KeyError as e:
        raise MetadataError(f"Pixels is missing required attribute {e.args[0]}") from None

    def optional(key: str, convert: Callable[[Any], Any]) -> Any:
        value = attrs.get(key)
        return None if value is None else convert(value)

    return Pixels(
        dimension_order=order,
        size_x=size_x,
        size_y=size_y,
        size_z=int(attrs.get("SizeZ", 1)),
        size_c=int(attrs.get("SizeC", 1)),
        size_t=int(attrs.get("SizeT", 1)),
        type=str(attrs.get("Type", "uint8")),
        id=str(attrs.get("ID", "")),
        interleaved=bool(attrs.get("Interleaved", False)),
        big_endian=optional("BigEndian", bool),
        physical_size_x=optional("PhysicalSizeX", float),
        physical_size_x_unit=optional("PhysicalSizeXUnit", str),
        physical_size_y=optional("PhysicalSizeY", float),
        physical_size_y_unit=optional("PhysicalSizeYUnit", str),
        physical_size_z=optional("PhysicalSizeZ", float),
        physical_size_z_unit=optional("PhysicalSizeZUnit", str),
        channels=tuple(_parse_channel(c) for c in _children(element, "Channel")),
    )


def _text(element: ElementTree.Element, name: str) -> str:
    child = _child(element, name)
    return "" if child is None or child.text is None else child.text


def from_string(xml: str | bytes) -> list[OmeImage]:
    """Parse an OME-XML document into one record per ``Image`` element."""
    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as e:
        raise MetadataError(f"failed to parse OME-XML metadata: {e}") from e
    if _local(root.tag) != "OME":
        raise MetadataError("failed to parse OME-XML metadata, no OME root element")

    images = []
    for element in _children(root, "Image"):
        pixels = _child(element, "Pixels")
        if pixels is None:
            raise MetadataError("Image element without Pixels")
        attrs = _attrs(element)
        name = attrs.get("Name")
        images.append(
            OmeImage(
                pixels=_parse_pixels(pixels),
                id=str(attrs.get("ID", "")),
                name=None if name is None else str(name),
                acquisition_date=_text(element, "AcquisitionDate"),
                description=_text(element, "Description"),
            )
        )
    if not images:
        raise MetadataError("OME-XML metadata contains no images")
    logger.debug("parsed %d OME image(s)", len(images))
    return images


@dataclass(frozen=True)
class PixelSourceMeta:
    labels: list[str]
    dtype: str
    base_shape: Shape
    physical_sizes: dict[str, PhysicalSize] | None = field(default=None)

    def get_shape(self, level: int) -> Shape:
        """Shape at pyramid ``level``; spatial extents halve (rounding down) per level."""
        dims = get_dims(self.labels)
        shape = list(self.base_shape)
        shape[dims("x")] = shape[dims("x")] >> level
        shape[dims("y")] = shape[dims("y")] >> level
        return tuple(shape)


def get_pixel_source_meta(image: OmeImage) -> PixelSourceMeta:
    pixels = image.pixels
    labels = get_labels(pixels.dimension_order)
    shape = [pixels.size(label) for label in labels]
    if pixels.interleaved:
        labels.append(INTERLEAVE_LABEL)
        shape.append(3)

    if pixels.type not in DTYPE_LOOKUP:
        raise UnsupportedDtypeError(pixels.type)
    dtype = DTYPE_LOOKUP[pixels.type]

    physical_sizes = None
    if pixels.physical_size_x and pixels.physical_size_y:
        physical_sizes = {
            "x": PhysicalSize(pixels.physical_size_x, pixels.physical_size_x_unit),
            "y": PhysicalSize(pixels.physical_size_y, pixels.physical_size_y_unit),
        }
        if pixels.physical_size_z:
            physical_sizes["z"] = PhysicalSize(
                pixels.physical_size_z, pixels.physical_size_z_unit
            )
    return PixelSourceMeta(
        labels=labels, dtype=dtype, base_shape=tuple(shape), physical_sizes=physical_sizes
    )
