"""Per-phase business logic invoked by the dispatcher."""

from .callbacks import handle_callback
from .commands import handle_bot_mention, handle_command, is_bot_mention, parse_command
from .context import HandlerContext
from .suggestions import handle_general_message
from .topics import handle_topic_name_entry
from .warnings import handle_non_general_message

__all__ = [
    "HandlerContext",
    "handle_bot_mention",
    "handle_callback",
    "handle_command",
    "handle_general_message",
    "handle_non_general_message",
    "handle_topic_name_entry",
    "is_bot_mention",
    "parse_command",
]
