from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from imu_spectrum.config import settings
from imu_spectrum.errors import InsufficientDataError, UndeterminedRateError


@dataclass(frozen=True, eq=False)
class Spectrum:
    """
    Single-sided spectrum, bins 0..fft_size/2.
    frequencies/magnitudes/phases are index-aligned, length fft_size // 2 + 1.
    Magnitudes are raw |X[k]| (not normalised); see reconstruct.recover_harmonic.
    """

    frequencies: np.ndarray
    magnitudes: np.ndarray
    phases: np.ndarray
    fft_size: int
    sample_rate_hz: float
    n_samples: int

    @property
    def bin_width_hz(self) -> float:
        return self.sample_rate_hz / self.fft_size

    @property
    def nyquist_hz(self) -> float:
        return self.sample_rate_hz / 2.0

    def __len__(self) -> int:
        return int(self.frequencies.size)


def next_pow2(n: int) -> int:
    """2**ceil(log2(max(2, n))) without going through floats."""
    n = max(2, int(n))
    return 1 << (n - 1).bit_length()


def _bit_reverse_indices(n: int) -> np.ndarray:
    levels = n.bit_length() - 1
    idx = np.arange(n, dtype=np.intp)
    rev = np.zeros(n, dtype=np.intp)
    for b in range(levels):
        rev |= ((idx >> b) & 1) << (levels - 1 - b)
    return rev


def radix2_fft(x: np.ndarray) -> np.ndarray:
    """
    In-place iterative radix-2 Cooley-Tukey transform.

    `x` must be a contiguous complex array whose length is a power of two.
    It is overwritten with X[k] = sum_n x[n] * exp(-2j*pi*k*n/N) and returned.
    Bit-reversal permutation first, then log2(N) butterfly stages; each stage
    runs all of its butterflies at once on an (N/size, size) view.
    """
    n = int(x.size)
    if n < 1 or n & (n - 1):
        raise ValueError(f"FFT length must be a power of two, got {n}")
    if not np.iscomplexobj(x) or not x.flags.c_contiguous:
        raise ValueError("radix2_fft needs a contiguous complex array (it works in place)")

    x[:] = x[_bit_reverse_indices(n)]

    size = 2
    while size <= n:
        half = size >> 1
        twiddle = np.exp(-2j * np.pi * np.arange(half) / size)
        blocks = x.reshape(-1, size)
        top = blocks[:, :half].copy()
        bottom = blocks[:, half:] * twiddle
        blocks[:, :half] = top + bottom
        blocks[:, half:] = top - bottom
        size <<= 1
    return x


def channel_values(df: pd.DataFrame, channel: str) -> np.ndarray:
    """Finite values of one channel, in row order."""
    x = df[channel].to_numpy(dtype=float)
    return x[np.isfinite(x)]


def compute_spectrum(values: np.ndarray, sample_rate_hz: float) -> Spectrum:
    """
    Zero-padded power-of-two FFT of `values` at `sample_rate_hz`.

    No window and no mean removal: bin 0 carries the channel mean.
    Non-finite entries are dropped before padding.
    """
    x = np.asarray(values, dtype=float)
    x = x[np.isfinite(x)]

    if x.size < settings.min_spectrum_values:
        raise InsufficientDataError(
            f"Need at least {settings.min_spectrum_values} finite values for a spectrum, got {x.size}."
        )
    if sample_rate_hz is None or not np.isfinite(sample_rate_hz) or sample_rate_hz <= 0:
        raise UndeterminedRateError(f"Invalid sampling rate: {sample_rate_hz!r}")

    n_fft = next_pow2(x.size)
    buf = np.zeros(n_fft, dtype=np.complex128)
    buf[: x.size] = x
    radix2_fft(buf)

    half = n_fft // 2
    re = buf.real[: half + 1]
    im = buf.imag[: half + 1]

    mags = np.hypot(re, im)
    phases = np.arctan2(im, re)
    # atan2 can return exactly -pi for a -0.0 imaginary part; keep (-pi, pi]
    phases[phases <= -np.pi] = np.pi

    freqs = np.arange(half + 1, dtype=float) * float(sample_rate_hz) / n_fft

    return Spectrum(
        frequencies=freqs,
        magnitudes=mags,
        phases=phases,
        fft_size=n_fft,
        sample_rate_hz=float(sample_rate_hz),
        n_samples=int(x.size),
    )
