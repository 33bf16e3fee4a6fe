import numpy as np
import pytest

from imu_spectrum.signal.fft_engine import compute_spectrum
from imu_spectrum.signal.peaks import detect_peaks, noise_threshold

from conftest import make_spectrum


def test_flat_spectrum_has_no_peaks():
    sp = make_spectrum(np.full(33, 2.0))
    assert detect_peaks(sp, 0.0) == []


def test_single_spike_found_with_residual():
    mags = np.ones(33)
    mags[10] = 5.0
    sp = make_spectrum(mags)

    floor = noise_threshold(sp, 0.0)
    assert floor.median == 1.0
    assert floor.mad == 1e-12
    assert floor.threshold == pytest.approx(1.0 + 3e-12)

    peaks = detect_peaks(sp, 0.0)
    assert [p.bin_index for p in peaks] == [10]
    assert peaks[0].frequency_hz == sp.frequencies[10]
    assert peaks[0].magnitude == 5.0
    assert peaks[0].residual == pytest.approx(5.0 - floor.threshold)


def test_plateaus_and_sub_threshold_maxima_are_not_peaks():
    mags = np.ones(33)
    mags[20:28] = 3.0  # flat top
    mags[10] = 1.0 + 1e-13  # strict local max, but under median + 3 * 1e-12
    mags[15] = 1.5
    sp = make_spectrum(mags)

    assert [p.bin_index for p in detect_peaks(sp, 0.0)] == [15]


def test_first_and_last_bins_never_qualify():
    mags = np.ones(33)
    mags[0] = 50.0
    mags[-1] = 50.0
    mags[16] = 4.0
    sp = make_spectrum(mags)

    assert [p.bin_index for p in detect_peaks(sp, 0.0)] == [16]


def test_min_frequency_restricts_candidates():
    mags = np.ones(33)
    mags[3] = 8.0
    mags[20] = 4.0
    sp = make_spectrum(mags)  # 1 Hz per bin

    assert sorted(p.bin_index for p in detect_peaks(sp, 0.0)) == [3, 20]
    assert [p.bin_index for p in detect_peaks(sp, 10.0)] == [20]


def test_fewer_than_five_candidates_gives_no_peaks():
    mags = np.ones(33)
    mags[30] = 9.0
    sp = make_spectrum(mags)

    # bins 29..32 -> 4 candidates
    assert noise_threshold(sp, 29.0) is None
    assert detect_peaks(sp, 29.0) == []
    # bins 28..32 -> 5 candidates
    assert noise_threshold(sp, 28.0).n_candidates == 5
    assert [p.bin_index for p in detect_peaks(sp, 28.0)] == [30]


def test_peaks_ordered_by_residual():
    mags = np.ones(33)
    mags[5] = 3.0
    mags[12] = 9.0
    mags[25] = 6.0
    peaks = detect_peaks(make_spectrum(mags), 0.0)

    assert [p.bin_index for p in peaks] == [12, 25, 5]
    assert all(a.residual >= b.residual for a, b in zip(peaks, peaks[1:]))


def test_two_tone_signal_peaks_on_their_bins():
    fs, n = 128.0, 512
    t = np.arange(n) / fs
    x = 0.8 * np.cos(2 * np.pi * 8.0 * t) + 0.3 * np.cos(2 * np.pi * 20.0 * t + 1.0)
    sp = compute_spectrum(x, fs)

    top = sorted(detect_peaks(sp, 1.0), key=lambda p: p.magnitude, reverse=True)[:2]
    assert sorted(p.frequency_hz for p in top) == [8.0, 20.0]
    for p in detect_peaks(sp, 1.0):
        i = p.bin_index
        assert sp.magnitudes[i] > sp.magnitudes[i - 1]
        assert sp.magnitudes[i] > sp.magnitudes[i + 1]
