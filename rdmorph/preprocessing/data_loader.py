"""Data loading utilities – JSON loader & synthetic district generator."""

from __future__ import annotations

import logging
import math

import numpy as np
import pandas as pd

from rdmorph.preprocessing.merging import merge
from rdmorph.preprocessing.records import GeometryRecord, MergedUnit, OutcomeRecord
from rdmorph.utils.config import (
    BASELINE_LEVEL,
    DEFAULT_N_UNITS,
    DEFAULT_SHARE_INSIDE,
    DISTANCE_COL,
    INSIDE_COL,
    MISSING_RATE,
    NOISE_SD,
    OUTCOME_COLS,
    OUTCOMES_FILE,
    POLYGON_COL,
    POLYGONS_FILE,
    RANDOM_SEED,
    SIDE_SLOPE,
    SYNTHETIC_LAT_RANGE,
    SYNTHETIC_LON_RANGE,
    TREATED_COL,
    TRUE_DISCONTINUITY,
    UNIT_COL,
)

logger = logging.getLogger(__name__)


def _nullable(value) -> float | None:
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


# ── Frame → records ───────────────────────────────────────────────────────────
def geometries_from_frame(df: pd.DataFrame) -> list[GeometryRecord]:
    """Convert a ``ubigeo / mita / polygon`` frame into geometry records."""
    return [
        GeometryRecord(
            unit_id=int(row[UNIT_COL]),
            treated=int(row[TREATED_COL]),
            polygon=tuple((float(lat), float(lon)) for lat, lon in row[POLYGON_COL]),
        )
        for row in df.to_dict(orient="records")
    ]


def outcomes_from_frame(df: pd.DataFrame) -> list[OutcomeRecord]:
    """Convert an outcome frame into records; NaN cells become None."""
    records = []
    for row in df.to_dict(orient="records"):
        records.append(
            OutcomeRecord(
                unit_id=int(row[UNIT_COL]),
                distance=_nullable(row.get(DISTANCE_COL)),
                is_inside=bool(row.get(INSIDE_COL, False)),
                **{c: _nullable(row.get(c)) for c in OUTCOME_COLS},
            )
        )
    return records


# ── Synthetic data ────────────────────────────────────────────────────────────
def generate_synthetic_units(
    n: int = DEFAULT_N_UNITS,
    share_inside: float = DEFAULT_SHARE_INSIDE,
    seed: int = RANDOM_SEED,
    noise: bool = True,
    missing_rate: float = MISSING_RATE,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Generate districts on both sides of a boundary with *known* jumps.

    In plot space (inside distances positive, outside negative) each outcome
    follows a separate straight line per side. At the boundary the inside
    line sits ``TRUE_DISCONTINUITY`` above the outside one, so a per-side
    linear fit on noise-free data recovers the jump exactly.

    Returns
    -------
    tuple of pd.DataFrame
        ``(polygons, outcomes)`` in the raw JSON column layout. Stored
        distances carry a random sign, as the raw data does not follow the
        plot-space convention.
    """
    rng = np.random.default_rng(seed)
    n_inside = int(round(n * share_inside))
    inside = np.zeros(n, dtype=bool)
    inside[:n_inside] = True

    dist = rng.uniform(0.5, 50.0, n)
    stored_sign = rng.choice([-1.0, 1.0], size=n)

    # Boundary runs north-south through the middle of the study box
    lon_mid = sum(SYNTHETIC_LON_RANGE) / 2
    lat = rng.uniform(*SYNTHETIC_LAT_RANGE, n)
    lon = lon_mid + np.where(inside, 1.0, -1.0) * dist / 100.0
    half = 0.04
    polygons = [
        [[la - half, lo - half], [la - half, lo + half], [la + half, lo + half], [la + half, lo - half]]
        for la, lo in zip(lat, lon)
    ]

    unit_ids = 100_000 + np.arange(n)
    outcomes = {}
    for col in OUTCOME_COLS:
        slope = np.where(inside, SIDE_SLOPE[col]["inside"], SIDE_SLOPE[col]["outside"])
        values = (
            BASELINE_LEVEL[col]
            + TRUE_DISCONTINUITY[col] * inside
            + slope * dist
        )
        if noise:
            values = values + rng.normal(0, NOISE_SD[col], n)
        if missing_rate > 0:
            values = np.where(rng.random(n) < missing_rate, np.nan, values)
        outcomes[col] = values

    distance = dist * stored_sign
    if missing_rate > 0:
        distance = np.where(rng.random(n) < missing_rate / 2, np.nan, distance)

    polygons_df = pd.DataFrame(
        {UNIT_COL: unit_ids, TREATED_COL: inside.astype(int), POLYGON_COL: polygons}
    )
    outcomes_df = pd.DataFrame(
        {UNIT_COL: unit_ids, DISTANCE_COL: distance, INSIDE_COL: inside, **outcomes}
    )
    return polygons_df, outcomes_df


# ── Loading ───────────────────────────────────────────────────────────────────
def load_dataset(
    polygons_path: str | None = None,
    outcomes_path: str | None = None,
    **kwargs,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Load the polygon and outcome JSON files or fall back to synthetic data.

    Parameters
    ----------
    polygons_path, outcomes_path : str or None
        Paths to JSON arrays of objects. If either is *None*, synthetic data
        is generated.
    **kwargs
        Forwarded to ``generate_synthetic_units`` when a path is missing.
    """
    if polygons_path is not None and outcomes_path is not None:
        return pd.read_json(polygons_path), pd.read_json(outcomes_path)
    return generate_synthetic_units(**kwargs)


def load_units(
    polygons_path: str | None = None,
    outcomes_path: str | None = None,
    **kwargs,
) -> list[MergedUnit]:
    """Load both collections and merge them into units."""
    polygons_df, outcomes_df = load_dataset(polygons_path, outcomes_path, **kwargs)
    units = merge(geometries_from_frame(polygons_df), outcomes_from_frame(outcomes_df))
    logger.info("Loaded %d units (%d with outcome data)", len(units), len(outcomes_df))
    return units


def load_default_units(**kwargs) -> list[MergedUnit]:
    """Units from ``data/raw`` when both JSON files are present, else synthetic."""
    if POLYGONS_FILE.exists() and OUTCOMES_FILE.exists():
        return load_units(str(POLYGONS_FILE), str(OUTCOMES_FILE))
    logger.info("No raw files under %s, generating synthetic districts", POLYGONS_FILE.parent)
    return load_units(**kwargs)
