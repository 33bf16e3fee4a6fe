from __future__ import annotations

import numpy as np


def _paired(original: np.ndarray, reconstructed: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    a = np.asarray(original, dtype=float)
    b = np.asarray(reconstructed, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Length mismatch: {a.shape} vs {b.shape}")
    ok = np.isfinite(a) & np.isfinite(b)
    return a[ok], b[ok]


def mean_squared_error(original: np.ndarray, reconstructed: np.ndarray) -> float:
    """MSE over rows where both series are finite."""
    a, b = _paired(original, reconstructed)
    if a.size == 0:
        return float("nan")
    d = a - b
    return float(np.mean(d * d))


def r_squared(original: np.ndarray, reconstructed: np.ndarray) -> float:
    """
    Coefficient of determination, 1 - SS_res / SS_tot.
    A constant original gives nan (SS_tot = 0).
    """
    a, b = _paired(original, reconstructed)
    if a.size == 0:
        return float("nan")
    ss_tot = float(np.sum((a - np.mean(a)) ** 2))
    if ss_tot <= 1e-12:
        return float("nan")
    ss_res = float(np.sum((a - b) ** 2))
    return 1.0 - ss_res / ss_tot
