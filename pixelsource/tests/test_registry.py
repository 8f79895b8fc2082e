import pytest
from numcodecs import GZip, Zlib

from pixelsource.registry import DecoderRegistry


def test_registry_is_immutable() -> None:
    empty = DecoderRegistry()
    registry = empty.with_codec(8, Zlib(level=1))
    assert 8 not in empty
    assert len(empty) == 0
    assert isinstance(registry[8], Zlib)
    assert list(registry) == [8]


def test_registry_accepts_codec_config() -> None:
    registry = DecoderRegistry({32946: {"id": "zlib", "level": 5}})
    codec = registry[32946]
    assert isinstance(codec, Zlib)
    assert codec.level == 5


def test_registry_override() -> None:
    registry = DecoderRegistry({8: Zlib()}).with_codec(8, GZip())
    assert isinstance(registry[8], GZip)


def test_registry_rejects_non_codecs() -> None:
    with pytest.raises(TypeError):
        DecoderRegistry({8: "zlib"})
