"""Central configuration for the map ↔ RD morph engine."""

from pathlib import Path

# ── Paths ──────────────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DATA_RAW = PROJECT_ROOT / "data" / "raw"
FIGURES_DIR = PROJECT_ROOT / "figures"

POLYGONS_FILE = DATA_RAW / "districtPolygons.json"
OUTCOMES_FILE = DATA_RAW / "mitaData.json"

# ── Reproducibility ───────────────────────────────────────────────────────────
RANDOM_SEED = 42

# ── Column names (raw JSON layout) ─────────────────────────────────────────────
UNIT_COL = "ubigeo"
TREATED_COL = "mita"
POLYGON_COL = "polygon"
DISTANCE_COL = "distance"
INSIDE_COL = "isInside"
OUTCOME_COLS = ["consumption", "stunting", "roads"]

# ── Paper estimates (Dell 2010, used verbatim) ─────────────────────────────────
PAPER_COEFFICIENTS = {
    "consumption": -0.25,  # log points
    "stunting": 0.06,      # proportion
    "roads": -36.0,        # meters/km²
}

OUTCOME_LABELS = {
    "consumption": "Log household consumption (2001)",
    "stunting": "Child stunting rate (2005)",
    "roads": "Road density (meters/km², 2006)",
}
MAP_TITLE = "The mita boundary"

# How each outcome is scaled for display and how its effect is formatted
PERCENT_OUTCOMES = {"stunting"}
LOG_OUTCOMES = {"consumption"}
LEVEL_UNITS = {"roads": "m/km²"}

# ── Layout ─────────────────────────────────────────────────────────────────────
DEFAULT_DIMENSIONS = {"width": 700, "height": 500}
DEFAULT_MARGIN = {"top": 40, "right": 30, "bottom": 50, "left": 60}

X_DOMAIN = (-50.0, 50.0)      # km from the boundary
STUNTING_Y_DOMAIN = (0.0, 100.0)
Y_PADDING = (0.95, 1.05)

# ── Animation (ms) ─────────────────────────────────────────────────────────────
MORPH_DURATION = 3000
ZOOM_DURATION = 1500
BORDER_FADE_DURATION = 400

# ── Progress regions ───────────────────────────────────────────────────────────
MAP_REGION_END = 0.3
MORPH_START = 0.2
MORPH_END = 0.9
DOT_FADE_START = 0.2
DOT_FADE_END = 0.8
LABEL_FADE_START = 0.7
AXIS_FADE_START = 0.8

# ── Opacity / marker sizes ─────────────────────────────────────────────────────
DISTRICT_OPACITY = 0.85
DOT_OPACITY = 0.8
MAP_FADE_OPACITY = 0.5
DIMMED_FACTOR = 0.5
DOT_RADIUS = 5.0
MIN_MORPH_RADIUS = 5.0

# Wide view shows this many times the study-region extent when no outline is given
WIDE_ZOOM_FACTOR = 4.0

# ── Boundary highlighting (km) ─────────────────────────────────────────────────
BOUNDARY_THRESHOLD = 10.0
VERY_CLOSE_THRESHOLD = 5.0

# ── Regression ─────────────────────────────────────────────────────────────────
FIT_EPSILON = 1e-10
CURVE_STEP = 1.0

# ── Colors ─────────────────────────────────────────────────────────────────────
COLORS = {
    "treated": "#222939",
    "treated_stroke": "#1A202C",
    "untreated": "#A0AEC0",
    "untreated_stroke": "#718096",
    "effect_line": "#F7FAFC",
    "effect_bg": "#1A202C",
}

# ── Synthetic data defaults ────────────────────────────────────────────────────
DEFAULT_N_UNITS = 400
DEFAULT_SHARE_INSIDE = 0.6
MISSING_RATE = 0.1

# Known discontinuity (inside minus outside at the boundary) per outcome,
# in the raw units each outcome is stored in.
TRUE_DISCONTINUITY = {
    "consumption": -0.25,
    "stunting": 0.06,
    "roads": -36.0,
}
# Baseline level at the boundary on the untreated side
BASELINE_LEVEL = {
    "consumption": 5.5,
    "stunting": 0.35,
    "roads": 120.0,
}
# Slope per km of |distance|, per side
SIDE_SLOPE = {
    "consumption": {"inside": -0.004, "outside": 0.003},
    "stunting": {"inside": 0.001, "outside": -0.0008},
    "roads": {"inside": -0.5, "outside": 0.4},
}
NOISE_SD = {
    "consumption": 0.05,
    "stunting": 0.02,
    "roads": 8.0,
}
# Bounding box of the synthetic study region (lat, lon)
SYNTHETIC_LAT_RANGE = (-16.0, -12.0)
SYNTHETIC_LON_RANGE = (-74.0, -70.0)
