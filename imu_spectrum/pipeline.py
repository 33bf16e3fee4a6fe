from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from imu_spectrum.config import settings
from imu_spectrum.errors import InsufficientDataError, SignalError
from imu_spectrum.ingest.txt_loader import CHANNELS, TIME_MS, load_txt
from imu_spectrum.signal.fft_engine import Spectrum, compute_spectrum
from imu_spectrum.signal.harmonics import select_harmonics
from imu_spectrum.signal.metrics import mean_squared_error, r_squared
from imu_spectrum.signal.peaks import NoiseFloor, Peak, detect_peaks, noise_threshold
from imu_spectrum.signal.reconstruct import Harmonic, Reconstruction, reconstruct
from imu_spectrum.signal.validity import estimate_sample_rate, relative_times_s
from imu_spectrum.utils.logging import detail, info, warn


@dataclass(frozen=True, eq=False)
class ChannelAnalysis:
    """
    Everything derived from one (series, channel, fmin, count).
    Stages that could not run leave their fields empty; `notes` says why.
    """

    channel: str
    min_frequency_hz: float
    harmonic_count: int
    times_s: np.ndarray
    # Row-aligned with the series; NaN where the channel is absent
    values: np.ndarray
    sample_rate_hz: Optional[float] = None
    spectrum: Optional[Spectrum] = None
    noise_floor: Optional[NoiseFloor] = None
    peaks: list[Peak] = field(default_factory=list)
    selected: list[Peak] = field(default_factory=list)
    reconstruction: Optional[Reconstruction] = None
    notes: list[str] = field(default_factory=list)

    @property
    def n_samples(self) -> int:
        return int(self.times_s.size)

    @property
    def harmonics(self) -> list[Harmonic]:
        return self.reconstruction.harmonics if self.reconstruction else []

    @property
    def equation(self) -> Optional[str]:
        return self.reconstruction.equation if self.reconstruction else None

    @property
    def mse(self) -> float:
        if self.reconstruction is None:
            return float("nan")
        return mean_squared_error(self.values, self.reconstruction.values)

    @property
    def r2(self) -> float:
        if self.reconstruction is None:
            return float("nan")
        return r_squared(self.values, self.reconstruction.values)


def _degrade(notes: list[str], stage: str, exc: SignalError) -> None:
    msg = f"{stage}: {exc}"
    warn(msg)
    notes.append(msg)


def analyze_channel(
    df: pd.DataFrame,
    channel: str = settings.default_channel,
    min_frequency_hz: float = settings.min_frequency_hz,
    harmonic_count: int = settings.harmonic_count,
) -> ChannelAnalysis:
    """
    Rate -> spectrum -> peaks -> selection -> reconstruction for one channel.

    Never raises for short or degenerate data: a failed stage is noted and
    everything downstream of it is left empty. An unrecognised channel name
    is a KeyError.
    """
    if channel not in CHANNELS:
        raise KeyError(f"Unknown channel '{channel}'. Options: {list(CHANNELS)}")

    times_ms = df[TIME_MS].to_numpy(dtype=np.int64)
    if channel in df.columns:
        values = df[channel].to_numpy(dtype=float)
    else:
        values = np.full(times_ms.size, np.nan)

    notes: list[str] = []
    result = dict(
        channel=channel,
        min_frequency_hz=float(min_frequency_hz),
        harmonic_count=int(harmonic_count),
        times_s=relative_times_s(times_ms),
        values=values,
        notes=notes,
    )

    try:
        rate = estimate_sample_rate(times_ms)
    except SignalError as e:
        _degrade(notes, "Sampling rate", e)
        return ChannelAnalysis(**result)
    result["sample_rate_hz"] = rate
    detail(f"{channel}: ~{rate:.2f} Hz over {times_ms.size:,} samples")

    try:
        spectrum = compute_spectrum(values, rate)
    except SignalError as e:
        _degrade(notes, "Spectrum", e)
        return ChannelAnalysis(**result)
    result["spectrum"] = spectrum

    floor = noise_threshold(spectrum, min_frequency_hz)
    result["noise_floor"] = floor
    if floor is None:
        _degrade(
            notes,
            "Peak detection",
            InsufficientDataError(
                f"fewer than {settings.min_peak_candidates} spectrum bins at or above {min_frequency_hz:g} Hz"
            ),
        )
        return ChannelAnalysis(**result)

    peaks = detect_peaks(spectrum, min_frequency_hz)
    selected = select_harmonics(peaks, harmonic_count)
    result["peaks"] = peaks
    result["selected"] = selected
    detail(f"{channel}: {len(peaks)} peaks above {floor.threshold:.4g}, {len(selected)} selected")

    recon = reconstruct(spectrum, selected, times_ms, values, min_frequency_hz)
    if recon is None:
        notes.append("No harmonics selected; no reconstruction.")
    result["reconstruction"] = recon
    return ChannelAnalysis(**result)


@dataclass
class PipelineOutputs:
    analysis: ChannelAnalysis
    images: list[str]
    pdf_path: Optional[str] = None


def _slug(channel: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", channel).strip("_").lower()


def run_pipeline(
    path: str,
    channel: str = settings.default_channel,
    min_frequency_hz: float = settings.min_frequency_hz,
    harmonic_count: int = settings.harmonic_count,
    out_dir: str = settings.out_dir,
    write_report: bool = True,
) -> PipelineOutputs:
    """
    Load -> analyze -> charts (+ PDF). ParseError propagates so the caller
    can show the message.
    """
    # imported here so the analysis path does not pull in plotting/reportlab
    from imu_spectrum.report.pdf_report import build_pdf_report
    from imu_spectrum.report.plots import plot_channel_timeseries, plot_spectrum, save_figure

    out_dir_p = Path(out_dir)
    out_dir_p.mkdir(parents=True, exist_ok=True)

    df = load_txt(path)
    analysis = analyze_channel(df, channel, min_frequency_hz, harmonic_count)

    slug = _slug(channel)
    recon_values = analysis.reconstruction.values if analysis.reconstruction else None
    images = [
        save_figure(
            plot_channel_timeseries(analysis.times_s, analysis.values, channel, reconstructed=recon_values),
            str(out_dir_p / f"timeseries_{slug}.png"),
        ),
        save_figure(
            plot_spectrum(analysis.spectrum, channel, analysis.noise_floor, analysis.harmonics),
            str(out_dir_p / f"spectrum_{slug}.png"),
        ),
    ]
    info(f"Charts written to {out_dir_p}")

    pdf_path = None
    if write_report:
        pdf_path = build_pdf_report(
            out_pdf=str(out_dir_p / f"spectrum_report_{slug}.pdf"),
            source_name=Path(path).name,
            analysis=analysis,
            images=images,
        )
        info(f"Report generated: {pdf_path}")

    return PipelineOutputs(analysis=analysis, images=images, pdf_path=pdf_path)
