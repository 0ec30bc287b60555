from .config import *
from .types import HighlightMode, Outcome, Phase, ZoomLevel
