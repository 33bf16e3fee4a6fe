import numpy as np
import pytest

from imu_spectrum.signal.fft_engine import compute_spectrum
from imu_spectrum.signal.peaks import Peak, detect_peaks
from imu_spectrum.signal.harmonics import select_harmonics
from imu_spectrum.signal.reconstruct import (
    Harmonic,
    format_equation,
    nearest_bin,
    reconstruct,
    recover_harmonic,
)

# 16 ms spacing keeps timestamps whole milliseconds; bins are FS / N apart
FS = 62.5
N = 64
F5 = 5 * FS / N
F11 = 11 * FS / N


def _two_tone():
    t = np.arange(N) / FS
    x = 1.5 + 0.7 * np.cos(2 * np.pi * F5 * t + 0.3) + 0.2 * np.cos(2 * np.pi * F11 * t - 1.0)
    times_ms = np.arange(N, dtype=np.int64) * 16
    return t, x, times_ms


def _peak_at(sp, f):
    k = int(np.argmin(np.abs(sp.frequencies - f)))
    return Peak(bin_index=k, frequency_hz=float(sp.frequencies[k]), magnitude=float(sp.magnitudes[k]), residual=0.0)


def test_nearest_bin_ties_go_low_and_ends_clamp():
    freqs = np.array([0.0, 1.0, 2.0, 3.0])
    assert nearest_bin(freqs, 1.4) == 1
    assert nearest_bin(freqs, 1.6) == 2
    assert nearest_bin(freqs, 1.5) == 1
    assert nearest_bin(freqs, -1.0) == 0
    assert nearest_bin(freqs, 10.0) == 3


def test_nearest_bin_agrees_with_linear_scan():
    freqs = np.arange(129) * 0.390625
    for f in np.random.default_rng(5).uniform(-1, 52, size=200):
        assert nearest_bin(freqs, f) == int(np.argmin(np.abs(freqs - f)))


def test_recover_amplitude_and_phase_on_bin():
    _, x, _ = _two_tone()
    sp = compute_spectrum(x, FS)

    h = recover_harmonic(sp, F5)
    assert h.bin_index == 5
    assert h.frequency_hz == F5
    assert h.amplitude == pytest.approx(0.7, abs=1e-9)
    assert h.phase_rad == pytest.approx(0.3, abs=1e-9)

    h2 = recover_harmonic(sp, F11)
    assert h2.amplitude == pytest.approx(0.2, abs=1e-9)
    assert h2.phase_rad == pytest.approx(-1.0, abs=1e-9)


def test_dc_amplitude_is_not_doubled():
    _, x, _ = _two_tone()
    dc = recover_harmonic(compute_spectrum(x, FS), 0.0)
    assert dc.bin_index == 0
    assert dc.amplitude == pytest.approx(1.5, abs=1e-9)


def test_coherent_gain_scales_amplitude():
    _, x, _ = _two_tone()
    sp = compute_spectrum(x, FS)
    assert recover_harmonic(sp, F5, coherent_gain=2.0).amplitude == pytest.approx(0.35, abs=1e-9)


def test_reconstruction_adds_mean_once():
    _, x, times_ms = _two_tone()
    sp = compute_spectrum(x, FS)
    rec = reconstruct(sp, [_peak_at(sp, F5), _peak_at(sp, F11)], times_ms, x, 0.0)

    assert rec.mean == pytest.approx(1.5, abs=1e-12)
    assert rec.values.shape == x.shape
    np.testing.assert_allclose(rec.values, x, atol=1e-9)
    assert [h.frequency_hz for h in rec.harmonics] == [F5, F11]


def test_output_aligned_with_every_series_row():
    _, x, times_ms = _two_tone()
    with_gaps = x.copy()
    with_gaps[[3, 17]] = np.nan
    sp = compute_spectrum(with_gaps, FS)
    rec = reconstruct(sp, [_peak_at(sp, F5)], times_ms, with_gaps, 0.0)

    assert rec.values.shape == (N,)
    assert np.all(np.isfinite(rec.values))
    assert rec.mean == pytest.approx(np.nanmean(with_gaps))


def test_nothing_selected_or_out_of_range_gives_none():
    _, x, times_ms = _two_tone()
    sp = compute_spectrum(x, FS)
    assert reconstruct(sp, [], times_ms, x, 0.0) is None
    assert reconstruct(sp, [_peak_at(sp, F5)], times_ms, x, 6.0) is None
    beyond = Peak(bin_index=40, frequency_hz=40.0, magnitude=1.0, residual=0.0)
    assert reconstruct(sp, [beyond], times_ms, x, 0.0) is None


def test_repeated_calls_are_bit_identical():
    t = np.arange(500) / 50.0
    x = 0.4 * np.sin(2 * np.pi * 3.3 * t) + 0.1 * np.cos(2 * np.pi * 9.7 * t) + 2.0
    times_ms = np.round(t * 1000).astype(np.int64)

    def run():
        sp = compute_spectrum(x, 50.0)
        sel = select_harmonics(detect_peaks(sp, 0.5), 3)
        return reconstruct(sp, sel, times_ms, x, 0.5)

    a, b = run(), run()
    assert np.array_equal(a.values, b.values)
    assert a.equation == b.equation


def test_equation_format():
    hs = [
        Harmonic(frequency_hz=5.0, magnitude=1.0, phase_rad=-0.25, amplitude=0.5, bin_index=5),
        Harmonic(frequency_hz=12.345678, magnitude=1.0, phase_rad=0.0, amplitude=0.123456, bin_index=12),
    ]
    assert format_equation(hs) == (
        "y(t) = 0.5000·cos(2π·5.0000·t - 0.2500) + 0.1235·cos(2π·12.3457·t + 0.0000)"
    )
