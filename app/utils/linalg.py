"""
Dense matrix inversion for the small normal-equation systems of the regression engine.
"""
from __future__ import annotations

import numpy as np

from app.utils.errors import SingularMatrix

PIVOT_EPSILON = 1e-10


def invert(matrix) -> np.ndarray:
    """
    Invert a square matrix by Gauss-Jordan elimination on [A | I].

    - Partial pivoting: for each column the remaining row with the largest |value|
      is swapped into the pivot position.
    - Raises SingularMatrix when the chosen pivot is below PIVOT_EPSILON.
    - Never mutates the input.
    """
    a = np.array(matrix, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {a.shape}")

    n = a.shape[0]
    aug = np.hstack([a, np.eye(n)])

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(aug[col:, col])))
        pivot = aug[pivot_row, col]
        if abs(pivot) < PIVOT_EPSILON:
            raise SingularMatrix(col, pivot)
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]

        aug[col] = aug[col] / pivot
        for row in range(n):
            if row != col:
                factor = aug[row, col]
                if factor != 0.0:
                    aug[row] = aug[row] - factor * aug[col]

    return aug[:, n:]
