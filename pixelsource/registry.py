"""Explicit decompressor registry for TIFF segments.

A :class:`DecoderRegistry` maps TIFF ``Compression`` codes to :mod:`numcodecs` codecs.
It is an ordinary value handed to a decoder at construction; registering a codec
returns a new registry and never affects other decoders.

Examples
--------
>>> from numcodecs import Zlib
>>> registry = DecoderRegistry().with_codec(8, Zlib())
>>> 8 in registry
True
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from numcodecs import get_codec
from numcodecs.abc import Codec

__all__ = ["DecoderRegistry"]


def _parse_codec(codec: Codec | Mapping[str, Any]) -> Codec:
    if isinstance(codec, Codec):
        return codec
    if isinstance(codec, Mapping):
        return get_codec(dict(codec))
    raise TypeError(f"expected a numcodecs Codec or codec config, got {codec!r}")


class DecoderRegistry(Mapping[int, Codec]):
    """Immutable mapping of TIFF compression code to codec."""

    def __init__(self, codecs: Mapping[int, Codec | Mapping[str, Any]] | None = None) -> None:
        self._codecs = {int(k): _parse_codec(v) for k, v in (codecs or {}).items()}

    def __getitem__(self, compression: int) -> Codec:
        return self._codecs[int(compression)]

    def __iter__(self) -> Iterator[int]:
        return iter(self._codecs)

    def __len__(self) -> int:
        return len(self._codecs)

    def with_codec(self, compression: int, codec: Codec | Mapping[str, Any]) -> DecoderRegistry:
        """Return a copy of this registry with ``codec`` registered for ``compression``."""
        codecs: dict[int, Any] = dict(self._codecs)
        codecs[int(compression)] = codec
        return DecoderRegistry(codecs)

    def __repr__(self) -> str:
        entries = ", ".join(f"{k}: {v!r}" for k, v in sorted(self._codecs.items()))
        return f"DecoderRegistry({{{entries}}})"
