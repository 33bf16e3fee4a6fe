from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from imu_spectrum.config import settings
from imu_spectrum.signal.fft_engine import Spectrum


@dataclass(frozen=True)
class Peak:
    bin_index: int
    frequency_hz: float
    magnitude: float
    # magnitude - threshold
    residual: float


@dataclass(frozen=True)
class NoiseFloor:
    median: float
    mad: float
    threshold: float
    n_candidates: int


def noise_threshold(
    spectrum: Spectrum,
    min_frequency_hz: float = settings.min_frequency_hz,
    k: float = settings.mad_k,
) -> Optional[NoiseFloor]:
    """
    Robust noise floor over bins with frequency >= min_frequency_hz:
    threshold = median + k * MAD, MAD floored at settings.mad_floor.
    None when there are too few candidates for the statistics to mean anything.
    """
    in_range = spectrum.frequencies >= min_frequency_hz
    cand = spectrum.magnitudes[in_range]
    if cand.size < settings.min_peak_candidates:
        return None

    med = float(np.median(cand))
    mad = max(settings.mad_floor, float(np.median(np.abs(cand - med))))
    return NoiseFloor(median=med, mad=mad, threshold=med + k * mad, n_candidates=int(cand.size))


def detect_peaks(
    spectrum: Spectrum,
    min_frequency_hz: float = settings.min_frequency_hz,
    k: float = settings.mad_k,
) -> list[Peak]:
    """
    Strict local maxima above the noise floor.

    Only interior bins (never the first or last) at or above min_frequency_hz
    qualify. Flat tops never count: both neighbours must be strictly lower.
    Returned strongest-residual first.
    """
    floor = noise_threshold(spectrum, min_frequency_hz, k=k)
    if floor is None:
        return []

    m = spectrum.magnitudes
    n = m.size
    if n < 3:
        return []

    local_max = np.zeros(n, dtype=bool)
    local_max[1:-1] = (m[1:-1] > m[:-2]) & (m[1:-1] > m[2:])

    hits = local_max & (spectrum.frequencies >= min_frequency_hz) & (m > floor.threshold)

    peaks = [
        Peak(
            bin_index=int(i),
            frequency_hz=float(spectrum.frequencies[i]),
            magnitude=float(m[i]),
            residual=float(m[i] - floor.threshold),
        )
        for i in np.flatnonzero(hits)
    ]
    peaks.sort(key=lambda p: p.residual, reverse=True)
    return peaks
