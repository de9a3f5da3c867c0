from typing import Any, Callable, Optional

from pydantic import BaseModel

from logger import frontend_logger as logger

FALLBACK_MESSAGE = "An unknown error occurred"


class Notification(BaseModel):
    """Transient message shown to the user."""
    title: str = "Error"
    description: str
    color: str = "red"
    timeout: int = 5000  # milliseconds


Notifier = Callable[[Notification], None]


def error_message(error: Any) -> str:
    """Best display text for anything that was raised or reported as an error."""
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    if isinstance(error, str) and error:
        return error
    if isinstance(error, BaseException) and str(error):
        return str(error)
    return FALLBACK_MESSAGE


def handle_error(error: Any, context: Optional[str] = None,
                 notify: Optional[Notifier] = None) -> Notification:
    logger.error(f"[{context or 'Global'}] Error: {error!r}")

    notification = Notification(description=error_message(error))
    if notify is not None:
        notify(notification)
    return notification
