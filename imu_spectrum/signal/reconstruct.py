from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from imu_spectrum.config import settings
from imu_spectrum.signal.fft_engine import Spectrum
from imu_spectrum.signal.peaks import Peak
from imu_spectrum.signal.validity import relative_times_s


@dataclass(frozen=True)
class Harmonic:
    frequency_hz: float
    magnitude: float
    phase_rad: float
    # True signal amplitude recovered from the FFT magnitude
    amplitude: float
    bin_index: int


@dataclass(frozen=True, eq=False)
class Reconstruction:
    harmonics: list[Harmonic]
    # One value per Series row: mean + sum of the harmonic cosines
    values: np.ndarray
    mean: float
    equation: str


def nearest_bin(frequencies: np.ndarray, frequency_hz: float) -> int:
    """
    Index of the bin closest to `frequency_hz` on a monotonic axis.
    Ties go to the lower index.
    """
    n = frequencies.size
    i = int(np.searchsorted(frequencies, frequency_hz, side="left"))
    if i <= 0:
        return 0
    if i >= n:
        return n - 1
    if abs(frequency_hz - frequencies[i - 1]) <= abs(frequencies[i] - frequency_hz):
        return i - 1
    return i


def recover_harmonic(
    spectrum: Spectrum,
    frequency_hz: float,
    coherent_gain: float = settings.coherent_gain,
) -> Harmonic:
    """
    Amplitude and phase of the component at `frequency_hz`.

    DC:        amplitude = |X[0]| / N
    otherwise: amplitude = 2 |X[k]| / (N * coherent_gain)
    """
    k = nearest_bin(spectrum.frequencies, frequency_hz)
    mag = float(spectrum.magnitudes[k])
    n_fft = spectrum.fft_size

    if k == 0:
        amplitude = mag / n_fft
    else:
        amplitude = 2.0 * mag / (n_fft * coherent_gain)

    return Harmonic(
        frequency_hz=float(spectrum.frequencies[k]),
        magnitude=mag,
        phase_rad=float(spectrum.phases[k]),
        amplitude=amplitude,
        bin_index=k,
    )


def format_equation(harmonics: list[Harmonic], decimals: int = settings.equation_decimals) -> str:
    """y(t) = A1·cos(2π·f1·t + φ1) + ..., terms in the given order."""
    terms: list[str] = []
    for h in harmonics:
        # sign of the printed value, so a tiny negative phase reads "+ 0.0000"
        phase = round(h.phase_rad, decimals)
        sign = "+" if phase >= 0 else "-"
        terms.append(
            f"{h.amplitude:.{decimals}f}·cos(2π·{h.frequency_hz:.{decimals}f}·t "
            f"{sign} {abs(phase):.{decimals}f})"
        )
    return "y(t) = " + " + ".join(terms)


def synthesize(harmonics: list[Harmonic], t_s: np.ndarray, offset: float = 0.0) -> np.ndarray:
    t = np.asarray(t_s, dtype=float)
    y = np.full(t.shape, float(offset))
    for h in harmonics:
        y += h.amplitude * np.cos(2.0 * np.pi * h.frequency_hz * t + h.phase_rad)
    return y


def reconstruct(
    spectrum: Spectrum,
    selected: list[Peak],
    times_ms: np.ndarray,
    values: np.ndarray,
    min_frequency_hz: float = settings.min_frequency_hz,
    coherent_gain: float = settings.coherent_gain,
) -> Optional[Reconstruction]:
    """
    Cosine-sum approximation of the channel from the selected peaks.

    `times_ms` are the Series timestamps (every row, the output is aligned
    to them); `values` are the channel's values, only the finite ones feed
    the mean, which is added once for the whole sum.
    Returns None when no selected frequency lies in [min_frequency_hz, Nyquist].
    """
    nyquist = spectrum.nyquist_hz
    in_range = [p for p in selected if min_frequency_hz <= p.frequency_hz <= nyquist]
    if not in_range:
        return None

    x = np.asarray(values, dtype=float)
    x = x[np.isfinite(x)]
    if x.size == 0:
        return None
    mean = float(np.mean(x))

    harmonics = [recover_harmonic(spectrum, p.frequency_hz, coherent_gain=coherent_gain) for p in in_range]

    return Reconstruction(
        harmonics=harmonics,
        values=synthesize(harmonics, relative_times_s(times_ms), offset=mean),
        mean=mean,
        equation=format_equation(harmonics),
    )
