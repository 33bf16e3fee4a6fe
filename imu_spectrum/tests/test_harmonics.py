from imu_spectrum.signal.harmonics import select_harmonics
from imu_spectrum.signal.peaks import Peak


def _peak(f, mag, residual=None):
    return Peak(bin_index=int(f * 10), frequency_hz=f, magnitude=mag, residual=mag - 1.0 if residual is None else residual)


PEAKS = [_peak(2.0, 4.0), _peak(7.5, 9.0), _peak(1.1, 2.5), _peak(12.0, 6.0)]


def test_zero_count_is_empty():
    assert select_harmonics(PEAKS, 0) == []
    assert select_harmonics(PEAKS, -3) == []


def test_ranked_by_raw_magnitude():
    assert [p.frequency_hz for p in select_harmonics(PEAKS, 3)] == [7.5, 12.0, 2.0]


def test_magnitude_order_wins_over_residual_order():
    peaks = [_peak(3.0, 5.0, residual=10.0), _peak(4.0, 6.0, residual=1.0)]
    assert [p.frequency_hz for p in select_harmonics(peaks, 1)] == [4.0]


def test_count_above_available_returns_only_what_exists():
    out = select_harmonics(PEAKS, 10)
    assert len(out) == len(PEAKS)
    assert select_harmonics([], 5) == []


def test_near_identical_frequencies_collapse():
    peaks = [_peak(5.0, 9.0), _peak(5.0 + 1e-7, 8.0), _peak(5.1, 7.0)]
    assert [p.frequency_hz for p in select_harmonics(peaks, 5)] == [5.0, 5.1]


def test_input_not_mutated():
    peaks = list(PEAKS)
    select_harmonics(peaks, 2)
    assert peaks == PEAKS
