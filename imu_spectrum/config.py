from pathlib import Path

from pydantic import BaseModel

ROOT_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseModel):
    default_channel: str = "AccX(g)"

    # Spectrum bins below this frequency are ignored by peak detection (Hz)
    min_frequency_hz: float = 0.0
    harmonic_count: int = 5

    # Noise floor: median + mad_k * MAD over the in-range magnitudes
    mad_k: float = 3.0
    mad_floor: float = 1e-12
    min_peak_candidates: int = 5

    min_spectrum_values: int = 4

    # Peaks closer than this are treated as the same harmonic (Hz)
    frequency_tolerance_hz: float = 1e-6

    # Rectangular window only
    coherent_gain: float = 1.0

    equation_decimals: int = 4

    example_path: Path = ROOT_DIR / "data" / "samples" / "example.txt"
    out_dir: str = "data/outputs"

settings = Settings()
