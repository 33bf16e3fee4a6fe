from __future__ import annotations

from imu_spectrum.config import settings
from imu_spectrum.signal.peaks import Peak


def select_harmonics(
    peaks: list[Peak],
    count: int = settings.harmonic_count,
    tolerance_hz: float = settings.frequency_tolerance_hz,
) -> list[Peak]:
    """
    Keep the `count` strongest peaks by raw magnitude.

    A peak within `tolerance_hz` of the previously kept one is skipped.
    Returns fewer than `count` entries when fewer peaks exist.
    """
    if count <= 0:
        return []

    ordered = sorted(peaks, key=lambda p: p.magnitude, reverse=True)

    kept: list[Peak] = []
    for p in ordered:
        if kept and abs(p.frequency_hz - kept[-1].frequency_hz) <= tolerance_hz:
            continue
        kept.append(p)
        if len(kept) == count:
            break
    return kept
