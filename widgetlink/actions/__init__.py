"""
Action execution for ActionConnection widgets.
"""

from .handler import (
    ActionHandler,
    ActionOutcome,
    default_success_message,
    format_action_error,
)

__all__ = [
    "ActionHandler",
    "ActionOutcome",
    "default_success_message",
    "format_action_error",
]
