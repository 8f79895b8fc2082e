import textwrap

from pixelsource.loaders import LoadedImage
from pixelsource.ome import OmeImage, Pixels
from pixelsource.tiff_source import TiffPixelSource
from pixelsource.util import TreeViewer


def make_image(name: str, sizes: list[int]) -> LoadedImage:
    pixels = Pixels(dimension_order="XYZCT", size_x=sizes[0], size_y=sizes[0])
    data = [
        TiffPixelSource(None, "uint8", 256, (1, 1, 1, size, size), ["t", "c", "z", "y", "x"])
        for size in sizes
    ]
    return LoadedImage(data=data, metadata=OmeImage(pixels=pixels, name=name))


def test_tree_of_images() -> None:
    images = [make_image("first", [1024, 512]), make_image("second", [300])]
    viewer = TreeViewer(images)

    expect_text = textwrap.dedent("""\
        /
         ├── first
         │   ├── 0 (1, 1, 1, 1024, 1024) uint8 tile=256
         │   └── 1 (1, 1, 1, 512, 512) uint8 tile=256
         └── second
             └── 0 (1, 1, 1, 300, 300) uint8 tile=256""")
    expect_bytes = textwrap.dedent("""\
        /
         +-- first
         |   +-- 0 (1, 1, 1, 1024, 1024) uint8 tile=256
         |   +-- 1 (1, 1, 1, 512, 512) uint8 tile=256
         +-- second
             +-- 0 (1, 1, 1, 300, 300) uint8 tile=256""").encode()
    assert str(viewer) == expect_text
    assert repr(viewer) == expect_text
    assert bytes(viewer) == expect_bytes


def test_loaded_image_name() -> None:
    assert make_image("first", [8]).name == "first"
    unnamed = LoadedImage(data=[], metadata=OmeImage(pixels=Pixels("XYZCT", 8, 8), id="Image:3"))
    assert unnamed.name == "Image:3"
    assert LoadedImage(data=[], metadata={"multiscales": [{"name": "zarr"}]}).name == "zarr"
    assert LoadedImage(data=[], metadata=None).name == "image"
