from __future__ import annotations

import pytest

from pixelsource.errors import InvalidDimensionOrderError, MetadataError, UnsupportedDtypeError
from pixelsource.ome import Pixels, OmeImage, from_string, get_pixel_source_meta
from pixelsource.tests.util import ome_xml


def test_from_string() -> None:
    images = from_string(ome_xml(64, 32, size_c=2, size_z=3, order="XYCZT"))
    assert len(images) == 1
    image = images[0]
    assert image.id == "Image:0"
    assert image.name == "test"
    assert image.acquisition_date == "2020-01-01T00:00:00"

    pixels = image.pixels
    assert pixels.dimension_order == "XYCZT"
    assert (pixels.size_x, pixels.size_y) == (64, 32)
    assert (pixels.size_c, pixels.size_z, pixels.size_t) == (2, 3, 1)
    assert pixels.type == "uint16"
    assert pixels.big_endian is False
    assert pixels.physical_size_x == 0.5
    assert pixels.physical_size_x_unit == "µm"
    assert pixels.planes == 6

    assert [c.name for c in pixels.channels] == ["ch0", "ch1"]
    assert pixels.channels[0].color == [255, 0, 0, 255]


def test_from_string_several_images() -> None:
    images = from_string(ome_xml(8, 8, images=3))
    assert [image.id for image in images] == ["Image:0", "Image:1", "Image:2"]


def test_from_string_invalid() -> None:
    with pytest.raises(MetadataError):
        from_string("<OME><Image")
    with pytest.raises(MetadataError):
        from_string("<Root/>")
    with pytest.raises(MetadataError):
        from_string('<OME xmlns="http://www.openmicroscopy.org/Schemas/OME/2016-06"/>')
    with pytest.raises(InvalidDimensionOrderError):
        from_string(ome_xml(8, 8, order="XYZZZ"))


def test_pixel_source_meta() -> None:
    image = from_string(ome_xml(64, 32, size_c=2, type="float"))[0]
    meta = get_pixel_source_meta(image)
    assert meta.labels == ["t", "c", "z", "y", "x"]
    assert meta.dtype == "float32"
    assert meta.base_shape == (1, 2, 1, 32, 64)
    assert meta.physical_sizes is not None
    assert meta.physical_sizes["x"].size == 0.5
    assert "z" not in meta.physical_sizes


@pytest.mark.parametrize(
    ("level", "expected"), [(0, (1, 1, 1, 301, 301)), (1, (1, 1, 1, 150, 150)), (3, (1, 1, 1, 37, 37))]
)
def test_pixel_source_meta_levels(level: int, expected: tuple[int, ...]) -> None:
    image = OmeImage(pixels=Pixels(dimension_order="XYZCT", size_x=301, size_y=301, type="uint8"))
    assert get_pixel_source_meta(image).get_shape(level) == expected


def test_pixel_source_meta_interleaved() -> None:
    pixels = Pixels(dimension_order="XYCZT", size_x=8, size_y=4, size_c=3, interleaved=True)
    meta = get_pixel_source_meta(OmeImage(pixels=pixels))
    assert meta.labels == ["t", "z", "c", "y", "x", "_c"]
    assert meta.base_shape == (1, 1, 3, 4, 8, 3)


def test_pixel_source_meta_unsupported_type() -> None:
    pixels = Pixels(dimension_order="XYZCT", size_x=8, size_y=8, type="bit")
    with pytest.raises(UnsupportedDtypeError):
        get_pixel_source_meta(OmeImage(pixels=pixels))


def test_format() -> None:
    image = from_string(ome_xml(64, 32, size_c=2))[0]
    formatted = image.format()
    assert formatted["Dimensions (XY)"] == "64 x 32"
    assert formatted["Pixels Size (XYZ)"] == "0.5 µm x 0.5 µm x -"
    assert formatted["Channels"] == 2
