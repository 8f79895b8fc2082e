from __future__ import annotations

import hypothesis.strategies as st
import pytest
from hypothesis import HealthCheck, given, settings

from pixelsource.errors import (
    DuplicateLabelError,
    InvalidDimensionError,
    InvalidDimensionOrderError,
    SelectionBoundsError,
)
from pixelsource.indexing import (
    DimensionOrder,
    get_chunk_indexer,
    get_dims,
    get_ifd_indexer,
    get_labels,
    get_plane_indexer,
    get_spatial_axes,
    normalize_selection,
    plane_to_selection,
)
from pixelsource.ome import Pixels

ORDERS = [order.value for order in DimensionOrder]


@pytest.mark.parametrize(
    ("order", "expected"),
    [
        ("XYZCT", ["t", "c", "z", "y", "x"]),
        ("XYCZT", ["t", "z", "c", "y", "x"]),
        ("XYTCZ", ["z", "c", "t", "y", "x"]),
    ],
)
def test_get_labels(order: str, expected: list[str]) -> None:
    assert get_labels(order) == expected


def test_get_dims() -> None:
    dims = get_dims(["t", "c", "y", "x"])
    assert dims("c") == 1
    assert dims("x") == 3
    with pytest.raises(InvalidDimensionError):
        dims("z")
    with pytest.raises(DuplicateLabelError):
        get_dims(["c", "c", "y", "x"])


def test_normalize_selection() -> None:
    assert normalize_selection({}) == {"t": 0, "c": 0, "z": 0}
    assert normalize_selection({"c": 2}) == {"t": 0, "c": 2, "z": 0}
    with pytest.raises(InvalidDimensionError):
        normalize_selection({"q": 1})
    with pytest.raises(SelectionBoundsError):
        normalize_selection({"c": -1})
    with pytest.raises(SelectionBoundsError):
        normalize_selection({"c": 3}, {"t": 1, "c": 3, "z": 1})


@pytest.mark.parametrize(
    ("order", "expected"),
    [
        ("XYZCT", 18),
        ("XYZTC", 14),
        ("XYCTZ", 16),
        ("XYCZT", 19),
        ("XYTCZ", 15),
        ("XYTZC", 13),
    ],
)
def test_plane_indexer_formulas(order: str, expected: int) -> None:
    indexer = get_plane_indexer(order, size_c=3, size_z=4, size_t=2)
    assert indexer({"t": 1, "c": 1, "z": 2}) == expected


def test_plane_indexer_image_offset() -> None:
    indexer = get_plane_indexer("XYZCT", size_c=2, size_z=1, size_t=1, image_offset=10)
    assert indexer({"c": 1}) == 11


def test_plane_indexer_invalid_order() -> None:
    with pytest.raises(InvalidDimensionOrderError):
        get_plane_indexer("XYQCT", size_c=1, size_z=1, size_t=1)
    # usable as either error category
    with pytest.raises(IndexError):
        DimensionOrder.parse("CZT")


def test_plane_indexer_out_of_bounds() -> None:
    indexer = get_plane_indexer("XYZCT", size_c=2, size_z=1, size_t=1)
    with pytest.raises(SelectionBoundsError):
        indexer({"c": 2})


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    order=st.sampled_from(ORDERS),
    sizes=st.tuples(st.integers(1, 4), st.integers(1, 4), st.integers(1, 4)),
    data=st.data(),
)
def test_plane_indexer_round_trip(order: str, sizes: tuple[int, int, int], data: st.DataObject) -> None:
    size_c, size_z, size_t = sizes
    index = data.draw(st.integers(0, size_c * size_z * size_t - 1))
    selection = plane_to_selection(index, order, size_c, size_z, size_t)
    indexer = get_plane_indexer(order, size_c=size_c, size_z=size_z, size_t=size_t)
    assert indexer(selection) == index


@pytest.mark.parametrize("order", ORDERS)
def test_plane_indexer_is_bijective(order: str) -> None:
    indexer = get_plane_indexer(order, size_c=2, size_z=3, size_t=4)
    indices = {
        indexer({"t": t, "c": c, "z": z})
        for t in range(4)
        for c in range(2)
        for z in range(3)
    }
    assert indices == set(range(24))


def test_ifd_indexer_skips_previous_images() -> None:
    pixels = [
        Pixels(dimension_order="XYZCT", size_x=8, size_y=8, size_c=3, size_z=2),
        Pixels(dimension_order="XYCZT", size_x=8, size_y=8, size_c=2),
    ]
    assert get_ifd_indexer(pixels, 0)({"c": 1, "z": 1}) == 3
    assert get_ifd_indexer(pixels, 1)({"c": 1}) == 7


def test_chunk_indexer() -> None:
    indexer = get_chunk_indexer(["t", "c", "z", "y", "x"])
    assert indexer({"c": 2}) == [0, 2, 0, 0, 0]
    assert indexer([1, 2, 3, 4, 5]) == [1, 2, 3, 4, 5]
    with pytest.raises(IndexError):
        indexer([1, 2])
    with pytest.raises(InvalidDimensionError):
        indexer({"q": 1})


def test_chunk_indexer_interleaved() -> None:
    indexer = get_chunk_indexer(["t", "y", "x", "_c"])
    assert indexer({"t": 1}) == [1, 0, 0, slice(None)]


@pytest.mark.parametrize(
    ("shape", "expected"),
    [((1, 2, 64, 32), (2, 3)), ((64, 32, 3), (0, 1)), ((5, 64, 32, 4), (1, 2))],
)
def test_get_spatial_axes(shape: tuple[int, ...], expected: tuple[int, int]) -> None:
    assert get_spatial_axes(shape) == expected
