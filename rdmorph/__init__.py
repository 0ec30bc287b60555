"""Map ↔ regression-discontinuity morph engine."""

__version__ = "0.1.0"
