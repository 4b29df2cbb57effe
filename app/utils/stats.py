"""
Descriptive statistics over a flat numeric sequence.
Empty input never raises: every helper returns 0.0 so downstream arithmetic stays total.
Finite input always gives finite results; sums that overflow are redone on x / max|x|.
"""
from __future__ import annotations

from typing import Iterable, Optional

import numpy as np


def _as_array(xs: Iterable[float]) -> np.ndarray:
    if isinstance(xs, np.ndarray):
        return xs.astype(float).reshape(-1)
    return np.asarray(list(xs), dtype=float).reshape(-1)


def _scale(x: np.ndarray) -> float:
    return float(np.max(np.abs(x))) if x.size else 0.0


def mean(xs: Iterable[float]) -> float:
    x = _as_array(xs)
    if x.size == 0:
        return 0.0
    mu = float(np.sum(x) / x.size)
    if not np.isfinite(mu) and np.all(np.isfinite(x)):
        s = _scale(x)
        mu = s * float(np.sum(x / s) / x.size)
    return mu


def variance(xs: Iterable[float], mu: Optional[float] = None) -> float:
    """Population variance (divides by n, not n-1)."""
    x = _as_array(xs)
    if x.size == 0:
        return 0.0
    if mu is None:
        mu = mean(x)
    return float(np.sum((x - mu) ** 2) / x.size)


def std_dev(xs: Iterable[float]) -> float:
    x = _as_array(xs)
    sigma = float(np.sqrt(variance(x)))
    if not np.isfinite(sigma) and np.all(np.isfinite(x)):
        # the variance itself may exceed the float range while sigma does not
        s = _scale(x)
        sigma = s * float(np.sqrt(variance(x / s)))
    return sigma


def zscore_normalize(xs: Iterable[float]) -> np.ndarray:
    """
    (x - mean) / std elementwise.
    A constant sequence has no information, so it maps to all zeros instead of NaN.
    """
    x = _as_array(xs)
    if x.size == 0:
        return x
    # all-equal input: summation rounding must not turn it into +-1 noise
    if np.all(x == x[0]):
        return np.zeros_like(x)
    mu = mean(x)
    sigma = float(np.sqrt(variance(x, mu)))
    if not (np.isfinite(mu) and np.isfinite(sigma)):
        # z-scores are scale free: same answer on x / max|x|
        s = _scale(x)
        if not np.isfinite(s):
            return np.zeros_like(x)
        x = x / s
        mu = mean(x)
        sigma = float(np.sqrt(variance(x, mu)))
    if sigma == 0 or not np.isfinite(sigma):
        return np.zeros_like(x)
    return (x - mu) / sigma
