"""
Numeric helpers shared by schema inference and pattern analysis.

All functions take plain sequences of floats with missing values already
removed and return None (or an empty result) when there is not enough data.
"""
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


def mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return float(np.mean(values))


def std(values: Sequence[float]) -> Optional[float]:
    """Population standard deviation."""
    if not values:
        return None
    return float(np.std(values))


def median(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return float(np.median(values))


def quartiles(values: Sequence[float]) -> Optional[Tuple[float, float, float]]:
    """Q1, median and Q3 using pandas' linear interpolation."""
    if not values:
        return None
    q = pd.Series(values, dtype=float).quantile([0.25, 0.5, 0.75])
    return float(q.iloc[0]), float(q.iloc[1]), float(q.iloc[2])


def five_number_summary(values: Sequence[float]) -> Optional[Dict[str, float]]:
    q = quartiles(values)
    if q is None:
        return None
    return {'min': float(min(values)), 'q1': q[0], 'median': q[1], 'q3': q[2], 'max': float(max(values))}


def iqr_outliers(values: Sequence[float], multiplier: float = 1.5) -> List[float]:
    """Values below Q1 - k*IQR or above Q3 + k*IQR."""
    q = quartiles(values)
    if q is None:
        return []
    q1, _, q3 = q
    iqr = q3 - q1
    lower, upper = q1 - multiplier * iqr, q3 + multiplier * iqr
    return [v for v in values if v < lower or v > upper]


def pearson(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """
    Pearson correlation of two equally long sequences.

    Returns None for fewer than two points or when either side has zero
    variance. The result is clamped to [-1, 1] to absorb rounding.
    """
    n = len(x)
    if n != len(y) or n < 2:
        return None
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    denominator = math.sqrt(float((dx * dx).sum()) * float((dy * dy).sum()))
    if denominator == 0:
        return None
    r = float((dx * dy).sum()) / denominator
    return max(-1.0, min(1.0, r))


def ols_slope(values: Sequence[float]) -> Optional[float]:
    """Least-squares slope of values against their index 0..n-1."""
    n = len(values)
    if n < 2:
        return None
    slope, _ = np.polyfit(np.arange(n, dtype=float), np.asarray(values, dtype=float), 1)
    return float(slope)


def coefficient_of_variation(values: Sequence[float]) -> Optional[float]:
    m = mean(values)
    if not m:
        return None
    return std(values) / abs(m)


def skewness(values: Sequence[float]) -> float:
    """Pearson's second skewness approximation, (mean - median) / std."""
    s = std(values)
    if not s:
        return 0.0
    return (mean(values) - median(values)) / s


def z_scores(values: Sequence[float]) -> List[float]:
    """Standard scores against the population mean; all zero when the values have no spread."""
    s = std(values)
    if not s:
        return [0.0] * len(values)
    return [float(z) for z in (np.asarray(values, dtype=float) - mean(values)) / s]


EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Great-circle distance in kilometres between two (lat, lng) points."""
    lat1, lng1 = map(math.radians, a)
    lat2, lng2 = map(math.radians, b)
    h = math.sin((lat2 - lat1) / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))


def histogram(values: Sequence[float], max_buckets: int = 10) -> List[Dict[str, float]]:
    """
    Equal-width buckets over [min, max], `min(max_buckets, ceil(sqrt(n)))` of them.

    Every value lands in exactly one bucket; the last bucket includes max.
    """
    if not values:
        return []
    k = max(1, min(max_buckets, math.ceil(math.sqrt(len(values)))))
    low, high = float(min(values)), float(max(values))
    width = (high - low) / k

    counts = [0] * k
    for v in values:
        index = k - 1 if width == 0 else int((v - low) // width)
        counts[min(max(index, 0), k - 1)] += 1

    return [
        {
            'start': low + i * width,
            'end': high if i == k - 1 else low + (i + 1) * width,
            'count': counts[i],
        }
        for i in range(k)
    ]
