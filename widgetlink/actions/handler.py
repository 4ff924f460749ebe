"""
Action execution.

ActionConnection only declares an action/record pair; resolution never
runs it. When the user triggers the action (a button click, a menu item),
the host calls ActionHandler.execute() with the resolved ActionConfig.

The handler tracks which actions are in progress so buttons can show a
spinner, runs the action through the domain's ActionRunner capability,
and turns the outcome into a message for the user.

Usage:
    handler = ActionHandler()
    state = widget.state
    outcome = handler.execute(state.action_config, {"status": "shipped"}, context)
    if outcome.success:
        flash(outcome.message)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from widgetlink.connections.errors import DomainError, format_error
from widgetlink.forms.handle import errors_from_validation
from widgetlink.session.context import ActionRunner

if TYPE_CHECKING:
    from widgetlink.connections.state import ActionConfig
    from widgetlink.session.context import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_SUCCESS_MESSAGES = {
    "create": "Created successfully",
    "update": "Updated successfully",
    "destroy": "Deleted successfully",
}


def default_success_message(action: str) -> str:
    return DEFAULT_SUCCESS_MESSAGES.get(action, "Action completed successfully")


def format_action_error(exc: Exception) -> str:
    """Format an action failure, listing field errors for validation failures."""
    if isinstance(exc, ValidationError):
        errors = errors_from_validation(exc)
        return ", ".join(
            f"{name}: {message}" for name, messages in errors.items() for message in messages
        )
    return format_error(exc) or "An error occurred"


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    """Result of executing a declared action."""

    success: bool
    action: str
    message: str = ""
    data: Any = None
    error: str | None = None
    action_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "action_id": self.action_id,
            "message": self.message,
            "error": self.error,
        }


@dataclass
class ActionHandler:
    """
    Executes declared actions and tracks in-progress ones.

    Attributes:
        loading_actions: action ids currently executing
    """

    loading_actions: set[str] = field(default_factory=set)

    def is_loading(self, action_id: str) -> bool:
        return action_id in self.loading_actions

    def execute(
        self,
        config: ActionConfig,
        params: Mapping[str, Any] | None,
        context: SessionContext,
        *,
        action_id: str | None = None,
        success_message: str | None = None,
        error_message: str | None = None,
    ) -> ActionOutcome:
        """
        Run an action.

        Failures are returned as unsuccessful outcomes, never raised, so a
        failed click cannot crash the session.

        Args:
            config: ActionConfig from the widget's resolved state
            params: User-supplied parameters
            context: Session capabilities (needs a domain with run_action)
            action_id: Key for loading tracking; defaults to the action name
            success_message: Overrides the default success message
            error_message: Overrides the formatted error
        """
        action_id = action_id or config.action
        domain = context.domain

        if not isinstance(domain, ActionRunner):
            logger.warning(f"[actions] No action runner for '{config.action}'")
            return ActionOutcome(
                success=False,
                action=config.action,
                action_id=action_id,
                error=error_message or "Actions are not available in this session",
            )

        self.loading_actions.add(action_id)
        try:
            data = domain.run_action(config.action, config.record_ref, dict(params or {}))
        except (DomainError, ValidationError, ValueError) as e:
            logger.info(f"[actions] {config.action} failed: {type(e).__name__}: {e}")
            return ActionOutcome(
                success=False,
                action=config.action,
                action_id=action_id,
                error=error_message or format_action_error(e),
            )
        except Exception as e:
            logger.error(f"[actions] {config.action} raised: {e}", exc_info=True)
            return ActionOutcome(
                success=False,
                action=config.action,
                action_id=action_id,
                error=error_message or "An error occurred",
            )
        finally:
            self.loading_actions.discard(action_id)

        logger.info(f"[actions] {config.action} completed (id={action_id})")
        return ActionOutcome(
            success=True,
            action=config.action,
            action_id=action_id,
            message=success_message or default_success_message(config.action),
            data=data,
        )
