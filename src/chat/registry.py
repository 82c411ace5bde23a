"""ConversationRegistry — known conversations and the single selected one."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from src.chat.models import Conversation

logger = logging.getLogger(__name__)


class ConversationRegistry:
    """Holds the conversation list and which conversation is active.

    The selected id is the only source of truth for "which conversation is
    open". Selecting bumps :attr:`epoch`, which pulls use to detect that the
    selection moved while they were in flight.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._selected_id: str | None = None
        self._epoch = 0

    # -- Conversations ---------------------------------------------------------

    def replace_all(self, conversations: Iterable[Conversation]) -> list[Conversation]:
        """Replace the list with a host snapshot. Returns the kept conversations.

        Chats without a preview or a valid activity instant are not listed.
        The selected conversation stays selected even when the snapshot omits it.
        """
        kept = [c for c in conversations if c.is_listable]
        self._conversations = {c.id: c for c in kept}
        return kept

    def forget(self, conversation_id: str) -> bool:
        """Drop a conversation after the host confirmed it was cleared."""
        return self._conversations.pop(conversation_id, None) is not None

    def get(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def list(self) -> list[Conversation]:
        """Conversations ordered by most recent activity first."""
        return sorted(
            self._conversations.values(),
            key=lambda c: c.last_activity or 0,
            reverse=True,
        )

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._conversations

    # -- Selection -------------------------------------------------------------

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def selected(self) -> Conversation | None:
        if self._selected_id is None:
            return None
        return self._conversations.get(self._selected_id)

    @property
    def epoch(self) -> int:
        return self._epoch

    def select(self, conversation_id: str | None) -> str | None:
        """Make *conversation_id* the active conversation. Returns the previous id."""
        previous = self._selected_id
        self._selected_id = conversation_id
        self._epoch += 1
        if previous != conversation_id:
            logger.debug("Selection %s -> %s (epoch %d)", previous, conversation_id, self._epoch)
        return previous

    def is_current(self, conversation_id: str | None, epoch: int) -> bool:
        """Whether a pull issued for *conversation_id* at *epoch* may still apply."""
        return self._selected_id == conversation_id and self._epoch == epoch

    def clear(self) -> None:
        self._conversations.clear()
        self.select(None)
