"""Follow-up schedule mirror: models, countdown view, and host commands."""

from src.followups.models import EligibilityCheck, FollowUp, FollowUpState
from src.followups.service import FollowUpService
from src.followups.view import Countdown, FollowUpView, TickResult

__all__ = [
    "Countdown",
    "EligibilityCheck",
    "FollowUp",
    "FollowUpService",
    "FollowUpState",
    "FollowUpView",
    "TickResult",
]
