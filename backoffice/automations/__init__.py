"""
Rule-driven automations.

Typed definitions, next-run scheduling, the action executor, the engine
that runs due and event-triggered automations, and the lifecycle service.
"""

from .actions import ActionExecutionError, ActionExecutor, render_template
from .engine import AutomationEngine
from .models import AutomationConfigError, AutomationDefinition, parse_action, parse_conditions, parse_trigger
from .schedule import calculate_next_run
from .service import AutomationNotFoundError, AutomationService

__all__ = [
    "ActionExecutionError",
    "ActionExecutor",
    "AutomationConfigError",
    "AutomationDefinition",
    "AutomationEngine",
    "AutomationNotFoundError",
    "AutomationService",
    "calculate_next_run",
    "parse_action",
    "parse_conditions",
    "parse_trigger",
    "render_template",
]
