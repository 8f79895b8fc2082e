"""Virtual multi-dimensional images assembled from single-plane directories."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from pixelsource.abort import throw_if_aborted
from pixelsource.config import config
from pixelsource.errors import NotFoundError, ShapeMismatchError
from pixelsource.indexing import DimensionOrder, get_labels, normalize_selection

if TYPE_CHECKING:
    from pixelsource.abc.decoder import Directory
    from pixelsource.abort import AbortSignal
    from pixelsource.common import Labels, Selection, Shape

__all__ = ["STACK_DIMENSION_ORDER", "StackIndexer", "selection_to_key"]

logger = logging.getLogger(__name__)

STACK_DIMENSION_ORDER = DimensionOrder.XYZCT


def selection_to_key(selection: Selection) -> str:
    sel = normalize_selection(selection)
    return f"{sel['c']}-{sel['t']}-{sel['z']}"


def assert_same_resolution(entries: Sequence[tuple[Selection, Directory]]) -> None:
    width = entries[0][1].width
    height = entries[0][1].height
    for selection, directory in entries:
        if directory.width != width or directory.height != height:
            raise ShapeMismatchError(
                f"all images must have the same width and height; expected "
                f"{width}x{height}, got {directory.width}x{directory.height} "
                f"for selection {dict(selection)!r}"
            )


def get_channel_samples_per_pixel(
    entries: Sequence[tuple[Selection, Directory]], num_channels: int
) -> list[int]:
    samples_per_pixel = [0] * num_channels
    for selection, directory in entries:
        channel = normalize_selection(selection)["c"]
        current = directory.samples_per_pixel
        existing = samples_per_pixel[channel]
        if existing and existing != current:
            raise ShapeMismatchError(
                f"channel {channel} samples per pixel mismatch: {existing} != {current}"
            )
        samples_per_pixel[channel] = current
    return samples_per_pixel


class StackIndexer:
    """
    Lookup of single-plane directories by selection.

    Parameters
    ----------
    entries : sequence of (selection, Directory)
        One directory per registered ``(t, c, z)`` coordinate.
    sizes : mapping, optional
        Declared extents of ``t``, ``c`` and ``z``. By default each extent is one more
        than the largest registered index.
    strict : bool, optional
        Require a directory for every coordinate within the extents. Defaults to the
        ``stack.strict`` config value.

    Raises
    ------
    ShapeMismatchError
        If the directories differ in width or height, or in samples per pixel within
        a channel.
    NotFoundError
        If ``strict`` and a coordinate has no directory; the first missing coordinate
        in ``t``, ``c``, ``z`` order is reported.
    """

    def __init__(
        self,
        entries: Sequence[tuple[Selection, Directory]],
        sizes: Mapping[str, int] | None = None,
        strict: bool | None = None,
    ) -> None:
        if not entries:
            raise ValueError("at least one image is required to build a stack")
        assert_same_resolution(entries)
        self._lookup: dict[str, Directory] = {}
        for selection, directory in entries:
            self._lookup[selection_to_key(selection)] = directory

        self._first = entries[0][1]
        self.sizes = self._get_sizes(entries, sizes)
        self.samples_per_pixel = get_channel_samples_per_pixel(entries, self.sizes["c"])
        self.strict = config.get("stack.strict") if strict is None else strict
        if self.strict:
            self.assert_complete()

    @staticmethod
    def _get_sizes(
        entries: Sequence[tuple[Selection, Directory]], sizes: Mapping[str, int] | None
    ) -> dict[str, int]:
        maxima = {"t": 0, "c": 0, "z": 0}
        for selection, _ in entries:
            sel = normalize_selection(selection)
            for dim in maxima:
                maxima[dim] = max(maxima[dim], sel[dim])
        derived = {dim: value + 1 for dim, value in maxima.items()}
        if sizes is None:
            return derived
        declared = dict(derived)
        for dim, value in sizes.items():
            if dim not in declared:
                raise ValueError(f"unknown stack dimension {dim!r}")
            if value < derived[dim]:
                raise ShapeMismatchError(
                    f"declared size {value} of dimension {dim!r} is smaller than "
                    f"the registered extent {derived[dim]}"
                )
            declared[dim] = int(value)
        return declared

    @property
    def width(self) -> int:
        return self._first.width

    @property
    def height(self) -> int:
        return self._first.height

    @property
    def first(self) -> Directory:
        return self._first

    @property
    def labels(self) -> Labels:
        return get_labels(STACK_DIMENSION_ORDER)

    def get_shape(self) -> Shape:
        shape_map = {**self.sizes, "y": self.height, "x": self.width}
        return tuple(shape_map[label] for label in self.labels)

    def assert_complete(self) -> None:
        for t in range(self.sizes["t"]):
            for c in range(self.sizes["c"]):
                for z in range(self.sizes["z"]):
                    self.lookup({"t": t, "c": c, "z": z})

    def lookup(self, selection: Selection) -> Directory:
        directory = self._lookup.get(selection_to_key(selection))
        if directory is None:
            raise NotFoundError(normalize_selection(selection))
        return directory

    async def __call__(
        self, selection: Selection, level: int = 0, signal: AbortSignal | None = None
    ) -> Directory:
        throw_if_aborted(signal)
        return self.lookup(selection)

    def __len__(self) -> int:
        return len(self._lookup)
