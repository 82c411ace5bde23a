"""Log implementation of the NotificationChannel protocol."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.notifications.channels import Toast

logger = logging.getLogger(__name__)

_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "error": logging.ERROR,
}


class LogChannel:
    """Writes toasts to the log. Default channel when no UI is attached."""

    @property
    def name(self) -> str:
        return "log"

    async def show(self, toast: Toast) -> bool:
        logger.log(
            _LEVELS.get(toast.level, logging.INFO),
            "[toast:%s] %s (%s)",
            toast.level,
            toast.text,
            toast.identity.key,
        )
        return True

    async def dismiss(self, toast: Toast) -> bool:
        logger.debug("[toast] dismissed %s", toast.identity.key)
        return True
