from __future__ import annotations

import sys
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

# -------------------------------------------------
# Ensure project root importable (local reliability)
# -------------------------------------------------
ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from imu_spectrum.config import settings  # noqa: E402
from imu_spectrum.errors import ParseError  # noqa: E402
from imu_spectrum.ingest.txt_loader import CHANNELS, available_channels, content_key, parse_bytes  # noqa: E402
from imu_spectrum.pipeline import analyze_channel  # noqa: E402
from imu_spectrum.report.plots import plot_channel_timeseries, plot_spectrum  # noqa: E402
from imu_spectrum.signal.fft_engine import channel_values  # noqa: E402
from imu_spectrum.signal.validity import spectrum_is_valid  # noqa: E402
from imu_spectrum.utils.logging import info  # noqa: E402

# -------------------------------------------------
# Page config + styling
# -------------------------------------------------
st.set_page_config(page_title="IMU Spectrum", layout="wide")

CUSTOM_CSS = """
<style>
.block-container {padding-top: 2.0rem; padding-bottom: 2.0rem; max-width: 1180px;}
h1 {letter-spacing: -0.02em;}

.stButton > button {
  border-radius: 14px !important;
  padding: 0.6rem 1.1rem !important;
  font-weight: 650 !important;
}

.imu-eq {
  font-family: ui-monospace, SFMono-Regular, Menlo, monospace;
  font-size: 0.92rem;
  border: 1px solid rgba(255,255,255,0.10);
  background: rgba(255,255,255,0.03);
  border-radius: 14px;
  padding: 12px 14px;
  overflow-x: auto;
}
.hr {height: 1px; background: rgba(255,255,255,0.10); margin: 1.2rem 0;}
</style>
"""
st.markdown(CUSTOM_CSS, unsafe_allow_html=True)


# -------------------------------------------------
# Series snapshot: replaced wholesale on every load
# -------------------------------------------------
def _load(raw: bytes, name: str) -> None:
    try:
        df = parse_bytes(raw)
    except ParseError as e:
        st.session_state["series"] = None
        st.session_state["source_name"] = None
        st.session_state["parse_error"] = str(e)
        return
    info(f"Loaded {len(df):,} rows from {name}")
    st.session_state["series"] = df
    st.session_state["source_name"] = name
    st.session_state["parse_error"] = None


st.session_state.setdefault("series", None)
st.session_state.setdefault("source_name", None)
st.session_state.setdefault("parse_error", None)
st.session_state.setdefault("upload_token", None)

st.title("IMU Spectrum")
st.caption("Time series, FFT and harmonic reconstruction for tab-delimited IMU logs.")

# -------------------------------------------------
# Input row
# -------------------------------------------------
c_file, c_channel, c_example = st.columns([3, 2, 1], gap="medium")

with c_file:
    uploaded = st.file_uploader("Upload .txt (tab-delimited)", type=["txt", "tsv"])

with c_channel:
    channel = st.selectbox(
        "Select column",
        list(CHANNELS),
        index=list(CHANNELS).index(settings.default_channel),
    )

with c_example:
    st.write("")
    if st.button("Load example", use_container_width=True):
        example = Path(settings.example_path)
        if example.exists():
            _load(example.read_bytes(), example.name)
        else:
            st.session_state["parse_error"] = f"Example file not found: {example}"

# Only re-parse when different bytes arrive; reruns keep the current snapshot
if uploaded is not None:
    raw = uploaded.getvalue()
    token = (uploaded.name, content_key(raw))
    if token != st.session_state["upload_token"]:
        st.session_state["upload_token"] = token
        _load(raw, uploaded.name)

with st.sidebar:
    st.subheader("Harmonics")
    fmin = st.number_input(
        "Minimum frequency (Hz)",
        min_value=0.0,
        value=float(settings.min_frequency_hz),
        step=0.1,
        help="Spectrum bins below this frequency are ignored by peak detection.",
    )
    count = st.number_input(
        "Number of harmonics",
        min_value=0,
        max_value=50,
        value=int(settings.harmonic_count),
        step=1,
    )

if st.session_state["parse_error"]:
    st.error(f"Parse error: {st.session_state['parse_error']}")

df: pd.DataFrame | None = st.session_state["series"]
if df is None:
    st.info("Upload a log or load the example to begin.")
    st.stop()

present = available_channels(df)
if channel not in present:
    st.warning(f"{channel} has no numeric values in {st.session_state['source_name']}.")

analysis = analyze_channel(df, channel, float(fmin), int(count))

st.markdown('<div class="hr"></div>', unsafe_allow_html=True)

tab_time, tab_fft, tab_recon = st.tabs(["Time Series", "FFT", "Reconstruction"])

rate_txt = f", ~{analysis.sample_rate_hz:.2f} Hz" if analysis.sample_rate_hz else ""

with tab_time:
    st.subheader(f"Time Series: {channel} ({analysis.n_samples} samples{rate_txt})")
    fig = plot_channel_timeseries(analysis.times_s, analysis.values, channel)
    st.pyplot(fig)
    plt.close(fig)

with tab_fft:
    n_finite = channel_values(df, channel).size
    if not spectrum_is_valid(analysis.sample_rate_hz, n_finite) or analysis.spectrum is None:
        st.info(f"Need at least {settings.min_spectrum_values} samples and a valid sampling rate.")
    else:
        sp = analysis.spectrum
        st.subheader(f"FFT Magnitude Spectrum (Fs={sp.sample_rate_hz:.2f} Hz)")
        st.caption(f"FFT size {sp.fft_size:,} · bin width {sp.bin_width_hz:.4f} Hz · {len(analysis.peaks)} peaks")
        fig = plot_spectrum(sp, channel, analysis.noise_floor, analysis.harmonics)
        st.pyplot(fig)
        plt.close(fig)

with tab_recon:
    if analysis.reconstruction is None:
        st.info("No reconstruction: no harmonics were selected.")
    else:
        recon = analysis.reconstruction
        st.subheader("Selected harmonics")
        st.dataframe(
            pd.DataFrame(
                {
                    "Frequency (Hz)": [round(h.frequency_hz, 4) for h in recon.harmonics],
                    "Amplitude": [round(h.amplitude, 4) for h in recon.harmonics],
                    "Phase (rad)": [round(h.phase_rad, 4) for h in recon.harmonics],
                    "|X(f)|": [h.magnitude for h in recon.harmonics],
                }
            ),
            use_container_width=True,
            hide_index=True,
        )
        st.markdown(f'<div class="imu-eq">{recon.equation}</div>', unsafe_allow_html=True)
        st.caption(f"Mean offset {recon.mean:.4f} · MSE {analysis.mse:.6g} · R² {analysis.r2:.4f}")

        fig = plot_channel_timeseries(
            analysis.times_s,
            analysis.values,
            channel,
            reconstructed=recon.values,
            title=f"{channel}: measured vs reconstructed",
        )
        st.pyplot(fig)
        plt.close(fig)

for note in analysis.notes:
    st.caption(f"Note: {note}")
