from __future__ import annotations

import hashlib
import io
import re
from pathlib import Path
from typing import Union

import numpy as np
import pandas as pd

from imu_spectrum.errors import ParseError
from imu_spectrum.utils.logging import detail, info

TIME_COLUMN = "time"
TIME_MS = "time_ms"

# Column name -> unit. Any other column in the export is ignored.
CHANNELS: dict[str, str] = {
    "AccX(g)": "g",
    "AccY(g)": "g",
    "AccZ(g)": "g",
    "AsX(°/s)": "°/s",
    "AsY(°/s)": "°/s",
    "AsZ(°/s)": "°/s",
    "AngleX(°)": "°",
    "AngleY(°)": "°",
    "AngleZ(°)": "°",
}

# Calendar date required; a bare clock time like "10:00:00.5" is not a timestamp
_DATE_TIME = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}(?:[ T]\d{1,2}:\d{2}(?::\d{2}(?:\.\d{1,3})?)?)?$")

_EPOCH = pd.Timestamp(0, tz="UTC")
_ONE_MS = pd.Timedelta(milliseconds=1)


def channel_unit(channel: str) -> str:
    return CHANNELS[channel]


def available_channels(df: pd.DataFrame) -> list[str]:
    """Recognised channels holding at least one finite value."""
    out: list[str] = []
    for ch in CHANNELS:
        if ch in df.columns and np.isfinite(df[ch].to_numpy(dtype=float)).any():
            out.append(ch)
    return out


def _clean_cols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    return df


def _read_table(text: str) -> pd.DataFrame:
    """
    Everything is read as text; coercion happens per column afterwards.
    Rows with too many fields are skipped instead of failing the whole file.
    """
    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep="\t",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            on_bad_lines="skip",
            # trailing tabs must not turn the time column into the index
            index_col=False,
        )
    except pd.errors.EmptyDataError as e:
        raise ParseError("File is empty; expected a tab-delimited header row.") from e
    except pd.errors.ParserError as e:
        raise ParseError(f"Could not read tab-delimited table: {e}") from e
    return df.fillna("")


def _parse_time(series: pd.Series) -> pd.Series:
    """
    Returns epoch milliseconds (float, NaN where unparsable).

    Accepts 'YYYY-MM-DD HH:MM:SS' date-times (or 'T' separated) with a
    1-3 digit fractional-second suffix ('.5' is 500 ms, '.05' is 50 ms).
    Anything else, including clock times without a date, is unparsable.
    """
    s = series.astype(str).str.strip()
    s = s.where(s.str.match(_DATE_TIME), "")
    ts = pd.to_datetime(s, errors="coerce", format="ISO8601", utc=True)
    return (ts - _EPOCH) // _ONE_MS


def _coerce_channel(series: pd.Series) -> pd.Series:
    """Empty, non-numeric and non-finite cells stay NaN (absent), never 0."""
    num = pd.to_numeric(series.astype(str).str.strip(), errors="coerce").astype(float)
    return num.where(np.isfinite(num))


def parse_text(text: str) -> pd.DataFrame:
    """
    Returns a Series frame with columns:
      - time_ms (int64, epoch milliseconds, unique and strictly increasing)
      - one float column per recognised channel (NaN = absent)
    """
    df = _clean_cols(_read_table(text))

    if TIME_COLUMN not in df.columns:
        raise ParseError(
            f"Header has no '{TIME_COLUMN}' column. "
            f"Columns found: {list(df.columns)}"
        )

    out = pd.DataFrame({TIME_MS: _parse_time(df[TIME_COLUMN])})
    for ch in CHANNELS:
        out[ch] = _coerce_channel(df[ch]) if ch in df.columns else np.nan

    n_raw = len(out)
    out = out.dropna(subset=[TIME_MS])
    n_timed = len(out)
    if n_timed < n_raw:
        detail(f"Dropped {n_raw - n_timed:,} rows with unparsable time.")

    out[TIME_MS] = out[TIME_MS].astype("int64")

    # Stable sort keeps file order among equal timestamps, so the first one wins
    out = out.sort_values(TIME_MS, kind="stable")
    out = out.drop_duplicates(subset=[TIME_MS], keep="first").reset_index(drop=True)
    if len(out) < n_timed:
        detail(f"Dropped {n_timed - len(out):,} rows with duplicate timestamps.")

    if out.empty:
        raise ParseError(
            "No valid rows after parsing. Ensure the file is tab-delimited "
            f"with a '{TIME_COLUMN}' column of date-times."
        )
    return out


def content_key(raw: bytes) -> str:
    """Identity of an uploaded payload; equal bytes give equal keys."""
    return hashlib.sha256(raw).hexdigest()


def parse_bytes(raw: bytes) -> pd.DataFrame:
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"File is not UTF-8 text: {e}") from e
    return parse_text(text)


def load_txt(path: Union[str, Path]) -> pd.DataFrame:
    info(f"Loading sensor log: {path}")
    df = parse_bytes(Path(path).read_bytes())
    info(f"Loaded {len(df):,} valid rows; channels with data: {available_channels(df)}")
    return df
