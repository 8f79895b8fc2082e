"""Translation of named selections into plane and chunk coordinates."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

from pixelsource.common import INTERLEAVE_LABEL, NON_SPATIAL_DIMS, is_interleaved
from pixelsource.errors import (
    DuplicateLabelError,
    InvalidDimensionError,
    InvalidDimensionOrderError,
    SelectionBoundsError,
)

if TYPE_CHECKING:
    from pixelsource.common import Labels, Selection
    from pixelsource.ome import Pixels

IFDIndexer = Callable[["Selection"], int]


class DimensionOrder(str, Enum):
    """The six OME dimension orders.

    The letters after ``XY`` are read from fastest to slowest varying, so ``XYZCT``
    stores all Z planes of a channel contiguously, then the channels of a timepoint.
    """

    XYZCT = "XYZCT"
    XYZTC = "XYZTC"
    XYCTZ = "XYCTZ"
    XYCZT = "XYCZT"
    XYTCZ = "XYTCZ"
    XYTZC = "XYTZC"

    @classmethod
    def parse(cls, value: Any) -> DimensionOrder:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidDimensionOrderError(value) from None

    @property
    def non_spatial(self) -> str:
        """The non-spatial dimensions, fastest varying first."""
        return self.value[2:].lower()


def get_labels(dimension_order: str) -> Labels:
    """Axis labels of an array laid out in ``dimension_order``, slowest varying first.

    >>> get_labels("XYZCT")
    ['t', 'c', 'z', 'y', 'x']
    """
    return list(reversed(DimensionOrder.parse(dimension_order).value.lower()))


def get_dims(labels: Sequence[str]) -> Callable[[str], int]:
    """Return a function mapping a label to its axis position."""
    lookup = {name: i for i, name in enumerate(labels)}
    if len(lookup) != len(labels):
        raise DuplicateLabelError(list(labels))

    def dims(name: str) -> int:
        index = lookup.get(name)
        if index is None:
            raise InvalidDimensionError(name, list(labels))
        return index

    return dims


def normalize_selection(
    selection: Selection | None, sizes: Mapping[str, int] | None = None
) -> dict[str, int]:
    """Fill in missing non-spatial indices with 0 and validate the rest.

    Parameters
    ----------
    selection
        Mapping of a subset of ``t``, ``c`` and ``z`` to an index.
    sizes
        Optional declared extents; indices outside them are rejected.
    """
    normalized = {dim: 0 for dim in NON_SPATIAL_DIMS}
    for key, value in (selection or {}).items():
        if key not in normalized:
            raise InvalidDimensionError(key, list(NON_SPATIAL_DIMS))
        normalized[key] = int(value)
    for key, value in normalized.items():
        size = None if sizes is None else sizes[key]
        if value < 0 or (size is not None and value >= size):
            raise SelectionBoundsError(key, value, size)
    return normalized


def _strides(order: DimensionOrder, sizes: Mapping[str, int]) -> dict[str, int]:
    strides = {}
    stride = 1
    for dim in order.non_spatial:
        strides[dim] = stride
        stride *= sizes[dim]
    return strides


def get_plane_indexer(
    dimension_order: str, size_c: int, size_z: int, size_t: int, image_offset: int = 0
) -> IFDIndexer:
    """Return a function mapping a selection to a linear plane index.

    ``image_offset`` is added to every index, for files holding several images.
    """
    order = DimensionOrder.parse(dimension_order)
    sizes = {"c": size_c, "z": size_z, "t": size_t}

    if order is DimensionOrder.XYZCT:

        def indexer(t, c, z):
            return image_offset + t * size_z * size_c + c * size_z + z

    elif order is DimensionOrder.XYZTC:

        def indexer(t, c, z):
            return image_offset + c * size_z * size_t + t * size_z + z

    elif order is DimensionOrder.XYCTZ:

        def indexer(t, c, z):
            return image_offset + z * size_c * size_t + t * size_c + c

    elif order is DimensionOrder.XYCZT:

        def indexer(t, c, z):
            return image_offset + t * size_c * size_z + z * size_c + c

    elif order is DimensionOrder.XYTCZ:

        def indexer(t, c, z):
            return image_offset + z * size_t * size_c + c * size_t + t

    else:

        def indexer(t, c, z):
            return image_offset + c * size_t * size_z + z * size_t + t

    def ifd_indexer(selection: Selection) -> int:
        sel = normalize_selection(selection, sizes)
        return indexer(sel["t"], sel["c"], sel["z"])

    return ifd_indexer


def plane_to_selection(
    index: int, dimension_order: str, size_c: int, size_z: int, size_t: int
) -> dict[str, int]:
    """Inverse of :func:`get_plane_indexer` for a single image."""
    order = DimensionOrder.parse(dimension_order)
    sizes = {"c": size_c, "z": size_z, "t": size_t}
    strides = _strides(order, sizes)
    if not 0 <= index < size_c * size_z * size_t:
        raise SelectionBoundsError("plane", index, size_c * size_z * size_t)
    return {dim: (index // strides[dim]) % sizes[dim] for dim in ("t", "c", "z")}


def get_ifd_indexer(pixels: Sequence[Pixels], image: int = 0) -> IFDIndexer:
    """Plane indexer for image ``image`` of a file described by ``pixels``.

    Planes of the images preceding ``image`` are skipped.
    """
    image_offset = 0
    for prev in pixels[:image]:
        image_offset += prev.size_c * prev.size_z * prev.size_t
    current = pixels[image]
    return get_plane_indexer(
        current.dimension_order,
        size_c=current.size_c,
        size_z=current.size_z,
        size_t=current.size_t,
        image_offset=image_offset,
    )


def get_chunk_indexer(labels: Labels) -> Callable[[Selection | Sequence[int]], list[Any]]:
    """Return a function merging a selection into a full index vector.

    Named selections are placed at their label positions and unnamed axes are set to
    0; positional selections are copied. A trailing interleave axis is selected in
    full.
    """
    size = len(labels)
    dims = get_dims(labels)
    interleave_axis = dims(INTERLEAVE_LABEL) if INTERLEAVE_LABEL in labels else None

    def indexer(selection: Selection | Sequence[int]) -> list[Any]:
        if not isinstance(selection, Mapping):
            if len(selection) != size:
                raise IndexError(
                    f"positional selection must have {size} entries, got {len(selection)}"
                )
            return list(selection)
        index: list[Any] = [0] * size
        if interleave_axis is not None:
            index[interleave_axis] = slice(None)
        for key, value in selection.items():
            index[dims(key)] = value
        return index

    return indexer


def get_spatial_axes(shape: Sequence[int]) -> tuple[int, int]:
    """Axis positions of ``y`` and ``x`` for a shape ending in ``[y, x(, bands)]``."""
    x_axis = len(shape) - (2 if is_interleaved(shape) else 1)
    return x_axis - 1, x_axis
