from __future__ import annotations

import math
import os
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from reportlab.lib.colors import black, HexColor
from reportlab.lib.utils import ImageReader

from imu_spectrum.ingest.txt_loader import channel_unit
from imu_spectrum.pipeline import ChannelAnalysis

COLORS = {
    "ok": HexColor("#2E7D32"),
    "degraded": HexColor("#EF6C00"),
    "panel": HexColor("#0F1218"),
    "panel2": HexColor("#141925"),
    "muted": HexColor("#B6C0CF"),
    "text": HexColor("#F2F5FA"),
    "line": HexColor("#2A2F3A"),
}


def _now_str() -> str:
    """
    Generated time in IMU_SPECTRUM_TZ when set (e.g. 'Europe/Berlin'),
    otherwise system local time.
    """
    tzname = os.getenv("IMU_SPECTRUM_TZ")
    if tzname:
        try:
            return datetime.now(ZoneInfo(tzname)).strftime("%Y-%m-%d %H:%M %Z")
        except ZoneInfoNotFoundError:
            pass
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M %Z")


def _wrap_width(
    c: canvas.Canvas,
    x: float,
    y: float,
    text: str,
    max_width: float,
    lh: float = 13,
) -> float:
    """Wrap by actual rendered width. Returns new y after drawing."""
    if not text:
        return y

    words = text.split()
    line = ""
    for w in words:
        candidate = (line + " " + w).strip()
        if c.stringWidth(candidate, c._fontname, c._fontsize) <= max_width:
            line = candidate
        else:
            if line:
                c.drawString(x, y, line)
                y -= lh
            line = w

    if line:
        c.drawString(x, y, line)
        y -= lh

    return y


def _safe_img_paths(paths: list[str]) -> list[str]:
    return [p for p in (paths or []) if p and os.path.exists(p)]


def _pretty_chart_title(path: str) -> str:
    name = os.path.basename(path).replace(".png", "")
    if name.startswith("timeseries_"):
        return "Time Series"
    if name.startswith("spectrum_"):
        return "FFT Magnitude Spectrum"
    return name.replace("_", " ").title()


def _fmt(x: float, spec: str = ".4f") -> str:
    if x is None or (isinstance(x, float) and not math.isfinite(x)):
        return "n/a"
    return format(x, spec)


def _summary_lines(source_name: str, a: ChannelAnalysis) -> list[tuple[str, str]]:
    sp = a.spectrum
    rows = [
        ("Source", source_name),
        ("Channel", f"{a.channel} [{channel_unit(a.channel)}]"),
        ("Samples", f"{a.n_samples:,}"),
        ("Sampling rate", f"{_fmt(a.sample_rate_hz, '.2f')} Hz" if a.sample_rate_hz else "undetermined"),
        ("FFT size", f"{sp.fft_size:,}" if sp else "n/a"),
        ("Bin width", f"{_fmt(sp.bin_width_hz)} Hz" if sp else "n/a"),
        ("Min frequency", f"{a.min_frequency_hz:g} Hz"),
        ("Peaks / requested", f"{len(a.peaks)} found, {len(a.harmonics)} of {a.harmonic_count} used"),
    ]
    if a.reconstruction is not None:
        rows += [
            ("Channel mean", _fmt(a.reconstruction.mean)),
            ("Reconstruction MSE", _fmt(a.mse, ".6g")),
            ("R²", _fmt(a.r2)),
        ]
    return rows


def build_pdf_report(
    out_pdf: str,
    source_name: str,
    analysis: ChannelAnalysis,
    images: list[str],
) -> str:
    os.makedirs(os.path.dirname(out_pdf) or ".", exist_ok=True)

    c = canvas.Canvas(out_pdf, pagesize=letter)
    W, H = letter
    m = 48

    # ===== Header band =====
    band_h = 104
    c.setFillColor(COLORS["panel"])
    c.rect(0, H - band_h, W, band_h, fill=1, stroke=0)

    c.setFont("Helvetica-Bold", 22)
    c.setFillColor(COLORS["text"])
    c.drawString(m, H - 52, "IMU Spectrum")

    c.setFont("Helvetica", 12)
    c.setFillColor(COLORS["muted"])
    c.drawString(m, H - 70, "Harmonic Decomposition Report")

    c.setFont("Helvetica", 10.6)
    c.drawString(m, H - 90, f"File: {source_name}")
    c.drawRightString(W - m, H - 90, f"Generated: {_now_str()}")

    # ===== Summary card =====
    rows = _summary_lines(source_name, analysis)
    row_h = 15
    panel_h = 40 + row_h * len(rows)
    panel_y = H - band_h - 24 - panel_h
    c.setFillColor(COLORS["panel2"])
    c.roundRect(m, panel_y, W - 2 * m, panel_h, 14, fill=1, stroke=0)

    status_ok = analysis.reconstruction is not None
    c.setFont("Helvetica-Bold", 13)
    c.setFillColor(COLORS["ok"] if status_ok else COLORS["degraded"])
    c.drawString(m + 18, panel_y + panel_h - 24, "Reconstruction available" if status_ok else "No reconstruction")

    y = panel_y + panel_h - 44
    for label, value in rows:
        c.setFont("Helvetica", 10.6)
        c.setFillColor(COLORS["muted"])
        c.drawString(m + 18, y, label)
        c.setFillColor(COLORS["text"])
        c.drawString(m + 170, y, value)
        y -= row_h

    # ===== Harmonics table =====
    y = panel_y - 28
    c.setFont("Helvetica-Bold", 12.5)
    c.setFillColor(black)
    c.drawString(m, y, "Selected harmonics")
    y -= 18

    cols = [m, m + 30, m + 140, m + 250, m + 360]
    headers = ["#", "Frequency (Hz)", "Amplitude", "Phase (rad)", "|X(f)|"]
    c.setFont("Helvetica-Bold", 10)
    for x, h in zip(cols, headers):
        c.drawString(x, y, h)
    y -= 4
    c.setStrokeColor(COLORS["line"])
    c.line(m, y, W - m, y)
    y -= 13

    c.setFont("Helvetica", 10)
    if not analysis.harmonics:
        c.drawString(m, y, "None: no spectral peak rose above the noise floor.")
        y -= 13
    for i, h in enumerate(analysis.harmonics, start=1):
        if y < 120:
            break
        cells = [str(i), f"{h.frequency_hz:.4f}", f"{h.amplitude:.4f}", f"{h.phase_rad:+.4f}", f"{h.magnitude:.4g}"]
        for x, v in zip(cols, cells):
            c.drawString(x, y, v)
        y -= 13

    # ===== Equation =====
    if analysis.equation:
        y -= 12
        c.setFont("Helvetica-Bold", 12)
        c.drawString(m, y, "Equation")
        y -= 16
        # Helvetica has no π/φ glyphs
        eq = analysis.equation.replace("π", "pi").replace("·", "*")
        c.setFont("Courier", 9)
        y = _wrap_width(c, m + 8, y, eq, max_width=W - 2 * m - 8, lh=11)
        c.setFont("Helvetica-Oblique", 9)
        y = _wrap_width(
            c, m + 8, y - 4,
            f"The channel mean ({analysis.reconstruction.mean:.4f}) is added once to the sum.",
            max_width=W - 2 * m - 8, lh=11,
        )

    # ===== Notes =====
    if analysis.notes:
        y -= 12
        c.setFont("Helvetica-Bold", 12)
        c.setFillColor(black)
        c.drawString(m, y, "Notes")
        y -= 16
        c.setFont("Helvetica", 10.4)
        for note in analysis.notes[:6]:
            y = _wrap_width(c, m + 8, y, f"• {note}", max_width=W - 2 * m - 8, lh=12)

    c.setFont("Helvetica-Oblique", 8.8)
    c.setFillColor(HexColor("#333333"))
    c.drawString(
        m,
        26,
        "Rectangular window, zero-padded radix-2 FFT; timestamps assumed near-uniform at the median rate.",
    )

    c.showPage()

    # ===== Charts pages =====
    chart_paths = _safe_img_paths(images)
    idx = 0
    while idx < len(chart_paths):
        c.setFont("Helvetica-Bold", 14)
        c.setFillColor(black)
        c.drawString(m, H - 52, "Charts")

        y = H - 80
        slot_h = 250
        gap = 18

        for _ in range(2):
            if idx >= len(chart_paths):
                break
            p = chart_paths[idx]
            idx += 1

            c.setFont("Helvetica-Bold", 11)
            c.setFillColor(black)
            c.drawString(m, y, _pretty_chart_title(p))
            y -= 10

            c.drawImage(
                ImageReader(p),
                m,
                y - slot_h,
                width=W - 2 * m,
                height=slot_h,
                preserveAspectRatio=True,
                mask="auto",
            )
            y -= (slot_h + gap)

        c.showPage()

    c.save()
    return out_pdf
