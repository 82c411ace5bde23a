"""Per-conversation mode arbitration: AI responder and human intervention."""

from src.modes.arbiter import ModeArbiter
from src.modes.models import AIModeStatus, DisplayMode, InterventionState

__all__ = ["AIModeStatus", "DisplayMode", "InterventionState", "ModeArbiter"]
