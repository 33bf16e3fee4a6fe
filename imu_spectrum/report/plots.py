from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
from matplotlib.figure import Figure

from imu_spectrum.ingest.txt_loader import CHANNELS
from imu_spectrum.signal.fft_engine import Spectrum
from imu_spectrum.signal.peaks import NoiseFloor
from imu_spectrum.signal.reconstruct import Harmonic


def _format_secs(x, _pos=None) -> str:
    """Seconds -> '0s', '12s', '1:05'."""
    if x is None:
        return ""
    try:
        x = float(x)
    except (TypeError, ValueError):
        return ""
    if x < 0:
        x = 0.0
    s = int(round(x))
    if s >= 60:
        return f"{s//60}:{s%60:02d}"
    return f"{s}s"


def _empty_figure(title: str, message: str) -> Figure:
    fig = plt.figure(figsize=(6.6, 2.6), dpi=160)
    ax = fig.add_subplot(111)
    ax.set_title(title, fontsize=11)
    ax.text(0.5, 0.5, message, ha="center", va="center", fontsize=10)
    ax.set_axis_off()
    fig.tight_layout()
    return fig


def plot_channel_timeseries(
    times_s: np.ndarray,
    values: np.ndarray,
    channel: str,
    reconstructed: Optional[np.ndarray] = None,
    title: Optional[str] = None,
) -> Figure:
    """
    Compact time-series chart, x axis in seconds since the first sample.
    Absent (NaN) values show as gaps. The reconstruction, when given, is
    drawn on top of the raw trace.
    """
    title = title or f"{channel} vs Time"
    t = np.asarray(times_s, dtype=float)
    y = np.asarray(values, dtype=float)
    if t.size == 0 or not np.isfinite(y).any():
        return _empty_figure(title, "No data for this channel")

    fig = plt.figure(figsize=(6.6, 2.6), dpi=160)
    ax = fig.add_subplot(111)

    ax.plot(t, y, linewidth=1.2, color="#71717a", label="measured")
    if reconstructed is not None:
        ax.plot(t, reconstructed, linewidth=1.2, color="#2563eb", alpha=0.9, label="reconstructed")
        ax.legend(fontsize=7, loc="upper right", frameon=False)

    ax.set_title(title, fontsize=11, pad=10)
    ax.set_xlabel("Time", fontsize=9)
    ax.set_ylabel(f"{channel}", fontsize=9)

    # Fewer ticks + cleaner labels
    ax.xaxis.set_major_locator(mticker.MaxNLocator(nbins=5, integer=True))
    ax.xaxis.set_major_formatter(mticker.FuncFormatter(_format_secs))

    ax.tick_params(axis="both", labelsize=8)
    ax.grid(True, alpha=0.25)

    fig.tight_layout()
    return fig


def plot_spectrum(
    spectrum: Optional[Spectrum],
    channel: str,
    noise_floor: Optional[NoiseFloor] = None,
    harmonics: Optional[list[Harmonic]] = None,
    title: Optional[str] = None,
) -> Figure:
    """
    Magnitude spectrum with the detection threshold and the selected
    harmonics marked.
    """
    if spectrum is None:
        return _empty_figure(title or f"{channel} Spectrum", "Need at least 4 samples and a valid sampling rate.")

    title = title or f"{channel} Spectrum (Fs={spectrum.sample_rate_hz:.2f} Hz)"

    fig = plt.figure(figsize=(6.6, 2.6), dpi=160)
    ax = fig.add_subplot(111)

    ax.plot(spectrum.frequencies, spectrum.magnitudes, linewidth=1.0, color="#60a5fa")

    if noise_floor is not None:
        ax.axhline(noise_floor.threshold, color="#f97316", linewidth=0.9, linestyle="--", label="threshold")

    for h in harmonics or []:
        ax.plot([h.frequency_hz], [h.magnitude], marker="o", markersize=4, color="#dc2626")
        ax.annotate(
            f"{h.frequency_hz:.2f} Hz",
            (h.frequency_hz, h.magnitude),
            textcoords="offset points",
            xytext=(4, 4),
            fontsize=7,
        )

    ax.set_title(title, fontsize=11, pad=10)
    ax.set_xlabel("Frequency (Hz)", fontsize=9)
    ax.set_ylabel(f"|X(f)| ({CHANNELS.get(channel, '')})", fontsize=9)
    if noise_floor is not None:
        ax.legend(fontsize=7, loc="upper right", frameon=False)

    ax.tick_params(axis="both", labelsize=8)
    ax.grid(True, alpha=0.25)

    fig.tight_layout()
    return fig


def save_figure(fig: Figure, out_path: str) -> str:
    out_path = str(out_path)
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, bbox_inches="tight")
    plt.close(fig)
    return out_path
