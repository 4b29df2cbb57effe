"""
Ordinary least squares helpers used by the risk profiler and unit tests.
No external deps beyond NumPy.

Two entry points share the same conventions:
- non-finite pairs are masked out before fitting,
- too few points yield the zero result ("no signal"), never an exception,
- r_squared is always finite and clamped to [0, 1].
"""
from __future__ import annotations

from dataclasses import asdict, dataclass

import numpy as np

from app.utils.errors import SingularMatrix
from app.utils.linalg import invert
from app.utils.stats import mean

DET_EPSILON = 1e-10


@dataclass(frozen=True)
class SimpleFit:
    slope: float
    intercept: float
    r_squared: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MultiFit:
    alpha: float            # intercept
    beta1: float            # feature1 (expected return) loading
    beta2: float            # feature2 (risk) loading
    r_squared: float

    def to_dict(self) -> dict:
        return asdict(self)


ZERO_SIMPLE = SimpleFit(0.0, 0.0, 0.0)
ZERO_MULTI = MultiFit(0.0, 0.0, 0.0, 0.0)


def _clamp_r2(r2: float) -> float:
    if not np.isfinite(r2):
        return 0.0
    return float(min(max(r2, 0.0), 1.0))


def _r_squared(y: np.ndarray, y_hat: np.ndarray) -> float:
    ss_res = float(np.sum((y - y_hat) ** 2))
    ss_tot = float(np.sum((y - mean(y)) ** 2))
    r2 = 1.0 - ss_res / ss_tot if ss_tot != 0 else 0.0
    return _clamp_r2(r2)


def fit_simple(x, y) -> SimpleFit:
    """
    Fit y = intercept + slope*x in closed form.

    - Fewer than 2 finite points -> ZERO_SIMPLE.
    - No variance in x -> slope 0 (intercept is then the mean of y).
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    y = np.asarray(y, dtype=float).reshape(-1)
    if x.size != y.size:
        raise ValueError(f"x and y differ in length ({x.size} != {y.size})")
    m = np.isfinite(x) & np.isfinite(y)
    x, y = x[m], y[m]

    if x.size < 2:
        return ZERO_SIMPLE

    x_bar, y_bar = mean(x), mean(y)
    dx = x - x_bar
    num = float(np.sum(dx * (y - y_bar)))
    den = float(np.sum(dx * dx))

    slope = num / den if den != 0 and np.isfinite(den) else 0.0
    if not np.isfinite(slope):
        slope = 0.0
    intercept = y_bar - slope * x_bar
    r2 = _r_squared(y, intercept + slope * x)
    return SimpleFit(slope=float(slope), intercept=float(intercept), r_squared=r2)


def design_matrix(feature1, feature2) -> np.ndarray:
    """Build the fixed (n, 3) design matrix [1, feature1, feature2]."""
    f1 = np.asarray(feature1, dtype=float).reshape(-1)
    f2 = np.asarray(feature2, dtype=float).reshape(-1)
    if f1.size != f2.size:
        raise ValueError(f"Feature columns differ in length ({f1.size} != {f2.size})")
    return np.c_[np.ones_like(f1), f1, f2]


def _fit_centered(x1: np.ndarray, x2: np.ndarray, y: np.ndarray) -> MultiFit:
    # Cramer's rule on the centered 2x2 normal equations
    x1_bar, x2_bar, y_bar = mean(x1), mean(x2), mean(y)
    c1, c2, cy = x1 - x1_bar, x2 - x2_bar, y - y_bar

    s11 = float(np.sum(c1 * c1))
    s12 = float(np.sum(c1 * c2))
    s22 = float(np.sum(c2 * c2))
    s1y = float(np.sum(c1 * cy))
    s2y = float(np.sum(c2 * cy))

    degenerate = MultiFit(alpha=y_bar, beta1=0.0, beta2=0.0, r_squared=0.0)
    det = s11 * s22 - s12 * s12
    # overflowing sums leave det at inf/nan: no usable solve either
    if not np.isfinite(det) or abs(det) < DET_EPSILON:
        return degenerate

    beta1 = (s1y * s22 - s2y * s12) / det
    beta2 = (s11 * s2y - s12 * s1y) / det
    alpha = y_bar - beta1 * x1_bar - beta2 * x2_bar
    if not np.all(np.isfinite([alpha, beta1, beta2])):
        return degenerate
    r2 = _r_squared(y, alpha + beta1 * x1 + beta2 * x2)
    return MultiFit(alpha=float(alpha), beta1=float(beta1), beta2=float(beta2), r_squared=r2)


def fit_multivariate(X, y) -> MultiFit:
    """
    Fit y = alpha + beta1*f1 + beta2*f2 via the normal equations (X'X)^-1 X'y.

    X must have exactly three columns [1, f1, f2]; use design_matrix() to build it.
    When X'X is singular (collinear features) the centered two-variable solve is
    used instead; if that is degenerate too the result is (mean(y), 0, 0, 0).
    """
    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float).reshape(-1)
    if X.ndim != 2 or X.shape[1] != 3:
        raise ValueError(f"Design matrix must have shape (n, 3), got {X.shape}")
    if X.shape[0] != y.size:
        raise ValueError(f"X has {X.shape[0]} rows but y has {y.size} values")
    m = np.isfinite(X).all(axis=1) & np.isfinite(y)
    X, y = X[m], y[m]

    if y.size < 3:
        return ZERO_MULTI

    try:
        beta = invert(X.T @ X) @ (X.T @ y)
    except SingularMatrix:
        beta = None
    if beta is None or not np.all(np.isfinite(beta)):
        return _fit_centered(X[:, 1], X[:, 2], y)

    alpha, beta1, beta2 = (float(b) for b in beta)
    r2 = _r_squared(y, X @ beta)
    return MultiFit(alpha=alpha, beta1=beta1, beta2=beta2, r_squared=r2)
