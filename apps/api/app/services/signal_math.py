# apps/api/app/services/signal_math.py

from __future__ import annotations

import math
from collections import Counter
from typing import Iterable, Optional, Sequence

import numpy as np

RATING_MIN = 1.0
RATING_MAX = 5.0


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def clamp01(x: float) -> float:
    return clamp(x, 0.0, 1.0)


def round_half_up(x: float) -> int:
    # 72.5 -> 73, -0.5 -> 0 (builtin round() would give banker's rounding)
    return int(math.floor(x + 0.5))


def round2(x: float) -> float:
    return math.floor(x * 100 + 0.5) / 100


def clean_rating(x) -> Optional[float]:
    """A usable 1..5 rating as float, or None for anything else."""
    if x is None or isinstance(x, bool):
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(v) or v < RATING_MIN or v > RATING_MAX:
        return None
    return v


def mean(xs: Sequence[float]) -> Optional[float]:
    if not xs:
        return None
    return float(np.mean(xs))


def stddev(xs: Sequence[float]) -> float:
    """Spread of the observed points (ddof=0); 0 for fewer than 2 points."""
    if len(xs) < 2:
        return 0.0
    return float(np.std(xs))


def ols_slope(ys: Sequence[float]) -> float:
    """Least-squares slope of ys against their index 0..n-1; 0 for n <= 1."""
    n = len(ys)
    if n <= 1:
        return 0.0
    xs = np.arange(n, dtype=float)
    y = np.asarray(ys, dtype=float)
    dx = xs - xs.mean()
    den = float(np.sum(dx * dx))
    if den == 0:
        return 0.0
    return float(np.sum(dx * (y - y.mean())) / den)


def most_common_tags(tags: Iterable[str], limit: Optional[int] = 3) -> list[tuple[str, int]]:
    """
    (tag, count) pairs, most frequent first. Counter keeps insertion order for
    equal counts, so ties go to the tag seen first.
    """
    counts = Counter(t for t in tags if t)
    return counts.most_common(limit)
