from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from imu_spectrum.ingest.txt_loader import CHANNELS, TIME_MS
from imu_spectrum.signal.fft_engine import Spectrum

START = pd.Timestamp("2025-03-13 10:00:00")
START_MS = pd.Timestamp("2025-03-13 10:00:00", tz="UTC").value // 1_000_000


def make_frame(times_ms, values: dict) -> pd.DataFrame:
    """Series frame in the loader's layout; channels not given are all-NaN."""
    df = pd.DataFrame({TIME_MS: np.asarray(times_ms, dtype=np.int64)})
    for ch in CHANNELS:
        df[ch] = np.asarray(values[ch], dtype=float) if ch in values else np.nan
    return df


def render_log(offsets_ms, columns: dict) -> str:
    """Tab-delimited log text with 'time' stamps at START + offset."""
    names = list(columns)
    lines = ["\t".join(["time"] + names)]
    for i, off in enumerate(offsets_ms):
        stamp = (START + pd.Timedelta(milliseconds=int(off))).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        cells = [f"{columns[n][i]:.17g}" for n in names]
        lines.append("\t".join([stamp] + cells))
    return "\n".join(lines) + "\n"


def make_spectrum(mags, sample_rate_hz: float = 64.0) -> Spectrum:
    mags = np.asarray(mags, dtype=float)
    fft_size = 2 * (mags.size - 1)
    return Spectrum(
        frequencies=np.arange(mags.size, dtype=float) * sample_rate_hz / fft_size,
        magnitudes=mags,
        phases=np.zeros_like(mags),
        fft_size=fft_size,
        sample_rate_hz=sample_rate_hz,
        n_samples=fft_size,
    )


@pytest.fixture
def example_path():
    from imu_spectrum.config import settings

    return settings.example_path
