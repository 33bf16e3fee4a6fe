from __future__ import annotations

from typing import Optional, Union

import numpy as np
import pandas as pd

from imu_spectrum.config import settings
from imu_spectrum.errors import InsufficientDataError, UndeterminedRateError
from imu_spectrum.ingest.txt_loader import TIME_MS


def _times_ms(series: Union[pd.DataFrame, np.ndarray, list]) -> np.ndarray:
    if isinstance(series, pd.DataFrame):
        return series[TIME_MS].to_numpy(dtype=np.int64)
    return np.asarray(series, dtype=np.int64)


def estimate_sample_rate(series: Union[pd.DataFrame, np.ndarray, list]) -> float:
    """
    Estimate sample rate (Hz) from the median timestamp delta.

    Median rather than mean, so an occasional dropped-sample gap does not
    drag the estimate down. Zero/negative deltas are skipped.
    """
    t = _times_ms(series)
    if t.size < 2:
        raise InsufficientDataError(f"Need at least 2 samples to estimate a sampling rate, got {t.size}.")

    deltas = np.diff(t)
    deltas = deltas[deltas > 0]
    if deltas.size == 0:
        raise UndeterminedRateError("No positive time delta between samples.")

    median_ms = float(np.median(deltas))
    return 1000.0 / median_ms


def relative_times_s(series: Union[pd.DataFrame, np.ndarray, list]) -> np.ndarray:
    """Seconds since the first sample."""
    t = _times_ms(series)
    if t.size == 0:
        return np.zeros(0, dtype=float)
    return (t - t[0]).astype(float) / 1000.0


def spectrum_is_valid(sample_rate_hz: Optional[float], n_values: int) -> bool:
    """A spectrum needs a usable rate and at least `min_spectrum_values` finite values."""
    if sample_rate_hz is None or not np.isfinite(sample_rate_hz) or sample_rate_hz <= 0:
        return False
    return n_values >= settings.min_spectrum_values
