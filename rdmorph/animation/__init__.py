from .interpolation import blend_line, blend_position, blend_projection, ease_in_out_quad, ProjectionView
from .scheduler import ControlState, Frame, PhaseScheduler, TransitionContext, classify_transition, should_preserve
from .driver import AnimationDriver, FrameLoop, ManualClock
from .session import VisualizationSession
