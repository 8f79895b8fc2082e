from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from pixelsource.config import config

if TYPE_CHECKING:
    import numpy.typing as npt

__all__ = ["ChannelStats", "get_channel_stats"]


@dataclass(frozen=True)
class ChannelStats:
    mean: float
    sd: float
    median: float
    q1: float
    q3: float
    domain: tuple[float, float]
    contrast_limits: tuple[float, float]


def _select(arr: np.ndarray, k: int, left: int = 0, right: int | None = None) -> None:
    """Partially order ``arr[left:right + 1]`` in place so ``arr[k]`` holds its rank."""
    if right is None:
        right = arr.size - 1
    arr[left : right + 1].partition(k - left)


def get_channel_stats(
    data: npt.ArrayLike, contrast_cutoff: float | None = None
) -> ChannelStats:
    """
    Summary statistics and a display window for one band of samples.

    Median and quartiles come from partition-based selection; the quartiles are
    selected within the halves left by the median. The contrast limits are the
    ``contrast_cutoff`` and ``1 - contrast_cutoff`` quantiles of the positive
    samples, so that a zero background does not dominate the window.

    Parameters
    ----------
    data : array_like
        Samples of a single band; not modified.
    contrast_cutoff : float, optional
        Defaults to the ``stats.contrast_cutoff`` config value.

    Returns
    -------
    ChannelStats
    """
    arr = np.array(data, copy=True).ravel()
    n = arr.size
    if n == 0:
        raise ValueError("cannot compute statistics of an empty buffer")
    if contrast_cutoff is None:
        contrast_cutoff = config.get("stats.contrast_cutoff")

    minimum = arr.min()
    maximum = arr.max()
    mean = float(arr.sum(dtype=np.float64)) / n
    deviations = arr.astype(np.float64) - mean
    sd = math.sqrt(float(np.dot(deviations, deviations)) / n)

    mid = n // 2
    first_quartile_location = n // 4
    third_quartile_location = (3 * n) // 4
    _select(arr, mid)
    median = arr[mid]
    _select(arr, first_quartile_location, 0, mid)
    q1 = arr[first_quartile_location]
    _select(arr, third_quartile_location, mid, n - 1)
    q3 = arr[third_quartile_location]

    cutoff_arr = arr[arr > 0]
    if cutoff_arr.size:
        top_cutoff_location = min(
            math.floor(cutoff_arr.size * (1 - contrast_cutoff)), cutoff_arr.size - 1
        )
        bottom_cutoff_location = math.floor(cutoff_arr.size * contrast_cutoff)
        _select(cutoff_arr, top_cutoff_location)
        _select(cutoff_arr, bottom_cutoff_location, 0, top_cutoff_location)
        contrast_limits = (
            cutoff_arr[bottom_cutoff_location].item(),
            cutoff_arr[top_cutoff_location].item(),
        )
    else:
        contrast_limits = (0, 0)

    return ChannelStats(
        mean=mean,
        sd=sd,
        median=median.item(),
        q1=q1.item(),
        q3=q3.item(),
        domain=(minimum.item(), maximum.item()),
        contrast_limits=contrast_limits,
    )
