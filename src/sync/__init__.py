"""Synchronization of the local stores with the host process."""

from src.sync.controller import SyncController
from src.sync.models import ConversationRow, EngineSnapshot, SelectionView

__all__ = ["ConversationRow", "EngineSnapshot", "SelectionView", "SyncController"]
