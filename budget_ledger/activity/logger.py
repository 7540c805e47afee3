"""
Activity Logger

DESIGN DECISION: Every balance-affecting action is logged as one typed
ActivityEvent. This provides:
1. Traceability of every balance change
2. Debugging capability for recurring runs
3. One place to see why an action failed

The activity logger:
- Logs locally through structlog only; events are never stored
- Never raises, so logging cannot fail a ledger action
"""

from typing import Optional

import structlog

from budget_ledger.models.activity import (
    ActivityEvent,
    ActivityEventBuilder,
    ActivitySeverity,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

_fallback_logger = structlog.get_logger("budget_ledger.activity.failures")


class ActivityLogger:
    """Central activity logging service."""

    def __init__(self, logger_name: str = "budget_ledger.activity"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: ActivityEvent) -> None:
        """Log an activity event at the level its severity calls for."""
        try:
            log_dict = event.to_log_dict()

            if event.severity == ActivitySeverity.ERROR:
                self._logger.error("activity_event", **log_dict)
            elif event.severity == ActivitySeverity.WARNING:
                self._logger.warning("activity_event", **log_dict)
            elif event.severity == ActivitySeverity.DEBUG:
                self._logger.debug("activity_event", **log_dict)
            else:
                self._logger.info("activity_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            _fallback_logger.error(
                "activity_log_failed",
                error=str(e),
                event_id=str(event.event_id),
                event_type=event.event_type.value,
            )

    def log_action_failed(
        self,
        user_id: Optional[str],
        action: str,
        error: Exception,
    ) -> None:
        """Log a user action that did not go through."""
        self.log(ActivityEventBuilder.action_failed(user_id, action, error))
