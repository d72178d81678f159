"""Attention indicator and notification primitives used by the alert trigger."""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    def set_attention_indicator(self, text: str) -> None:
        """Show ``text`` on the attention badge. Setting the same text twice is a no-op."""
        ...

    @abstractmethod
    def clear_attention_indicator(self) -> None:
        ...

    @abstractmethod
    def raise_notification(self, notification_id: str, title: str, body: str) -> None:
        ...


class LoggingNotifier(Notifier):
    """Keeps the badge text in memory and writes notifications to the log."""

    def __init__(self):
        self.indicator = ""

    def set_attention_indicator(self, text: str) -> None:
        if text != self.indicator:
            logger.info("Attention indicator set to %r", text)
        self.indicator = text

    def clear_attention_indicator(self) -> None:
        self.indicator = ""

    def raise_notification(self, notification_id: str, title: str, body: str) -> None:
        logger.warning("[%s] %s: %s", notification_id, title, body)
