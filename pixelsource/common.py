from __future__ import annotations

import asyncio
import contextvars
import functools
import math
import operator
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple, ParamSpec, TypeVar

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

Shape = tuple[int, ...]
Labels = list[str]
Selection = Mapping[str, int]
PositionalSelection = Sequence[int]
Window = tuple[int, int, int, int]

INTERLEAVE_LABEL = "_c"
NON_SPATIAL_DIMS = ("t", "c", "z")


@dataclass(frozen=True)
class Raster:
    """A decoded 2D plane or tile.

    ``data`` is flat; interleaved rasters hold ``width * height * bands`` values with
    the bands of each pixel stored contiguously.
    """

    data: np.ndarray
    width: int
    height: int

    @property
    def bands(self) -> int:
        return self.data.size // max(self.width * self.height, 1)

    def as_array(self) -> np.ndarray:
        """Return the data reshaped to ``(height, width)`` or ``(height, width, bands)``."""
        if self.bands == 1:
            return self.data.reshape(self.height, self.width)
        return self.data.reshape(self.height, self.width, self.bands)


class ImageSize(NamedTuple):
    height: int
    width: int


def product(tup: Iterable[int]) -> int:
    return functools.reduce(operator.mul, tup, 1)


def is_interleaved(shape: Sequence[int]) -> bool:
    """Whether the trailing dimension of ``shape`` holds the bands of each pixel."""
    return shape[-1] in (3, 4)


def get_image_size(source: Any) -> ImageSize:
    """Spatial extents of anything with a ``shape`` in ``[..., y, x(, bands)]`` order."""
    interleaved = is_interleaved(source.shape)
    end = len(source.shape) - (1 if interleaved else 0)
    height, width = source.shape[end - 2 : end]
    return ImageSize(height=int(height), width=int(width))


def prev_power_of_2(x: int) -> int:
    return 2 ** math.floor(math.log2(x))


def int_to_rgba(value: int) -> list[int]:
    """Unpack a signed 32 bit OME color into ``[r, g, b, a]``."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer color, got {value!r}")
    return list(int(value).to_bytes(4, "big", signed=True))


T = TypeVar("T", bound=tuple[Any, ...])
V = TypeVar("V")


async def concurrent_map(
    items: list[T], func: Callable[..., Awaitable[V]], limit: int | None = None
) -> list[V]:
    if limit is None:
        return await asyncio.gather(*[func(*item) for item in items])

    else:
        sem = asyncio.Semaphore(limit)

        async def run(item: tuple[Any]) -> V:
            async with sem:
                return await func(*item)

        return await asyncio.gather(*[asyncio.ensure_future(run(item)) for item in items])


P = ParamSpec("P")
U = TypeVar("U")


async def to_thread(func: Callable[P, U], /, *args: P.args, **kwargs: P.kwargs) -> U:
    loop = asyncio.get_running_loop()
    ctx = contextvars.copy_context()
    func_call = functools.partial(ctx.run, func, *args, **kwargs)
    return await loop.run_in_executor(None, func_call)
