"""
User Messages

Structured notices meant for the player/operator rather than the log
file. The host decides how to display them (chat, console, toast);
without a handler they are written to the log.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class MessageStyle(Enum):
    NORMAL = "normal"
    ERROR = "error"


@dataclass(frozen=True)
class UserMessage:
    text: str
    style: MessageStyle = MessageStyle.NORMAL

    @classmethod
    def error(cls, text: str) -> "UserMessage":
        return cls(text, MessageStyle.ERROR)


MessageHandler = Callable[[UserMessage], None]


def log_message(message: UserMessage) -> None:
    """Default handler: route user messages to the log."""
    if message.style is MessageStyle.ERROR:
        logger.error("%s", message.text)
    else:
        logger.info("%s", message.text)


BACKUP_COMPLETE = UserMessage("Backup complete.")


def native_git_missing(action: str) -> UserMessage:
    return UserMessage.error(
        f"Unable to {action}: native mode enabled but git or git-lfs is not installed."
    )
