from .records import GeometryRecord, MergedUnit, OutcomeRecord, ScatterPoint
from .merging import merge, polygon_centroid
from .scatter import flip_distance, outcome_y, project, project_all, scale_outcome
from .data_loader import generate_synthetic_units, load_dataset, load_default_units, load_units
