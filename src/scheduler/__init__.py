"""Timer system — interval and one-shot jobs grouped by scope."""

from src.scheduler.engine import TimerEngine

__all__ = ["TimerEngine"]
