from __future__ import annotations

from typing import List, Sequence

import numpy as np

from analysis.utils import DEFAULT_SMOOTHING_WINDOW


def moving_average(values: Sequence[float], window_size: int = DEFAULT_SMOOTHING_WINDOW) -> List[float]:
    """
    Centered moving average over a scalar series.

    - The window for index i spans [i - w//2, i + w//2], clamped to the series
      bounds, so edge windows are smaller rather than padded
    - A series shorter than the window is returned unchanged
    - Stateless: the same input always yields the same output
    """
    if window_size < 1:
        raise ValueError("window_size must be positive")

    data = np.asarray(values, dtype=np.float64)
    n = int(data.shape[0])
    if n < window_size:
        return [float(v) for v in data]

    half = window_size // 2
    smoothed: List[float] = []
    for i in range(n):
        start = max(0, i - half)
        end = min(n, i + half + 1)
        smoothed.append(float(np.mean(data[start:end])))
    return smoothed
