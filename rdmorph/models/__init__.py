from .effects import format_effect, paper_effect
from .regression import FittedLine, TreatmentEffect, compute_effect, fit_linear, fit_quadratic
