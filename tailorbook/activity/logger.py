"""
Activity Logger

DESIGN DECISION: Every significant shop action is logged as a
structured event. This gives:
1. Traceability of money movements and destructive commands
2. Debugging capability for sync failures
3. One correlation ID per session so related events can be grouped

The activity logger:
- Is synchronous; it only writes to the local structured log
- Picks the log level from the event severity
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from tailorbook.models.activity import ActivityEvent, ActivitySeverity


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


class ActivityLogger:
    """
    Central activity logging service.

    Events are stamped with the session correlation ID (if one is set)
    and written to the structured log.
    """

    def __init__(self, correlation_id: Optional[UUID] = None):
        self._logger = structlog.get_logger("tailorbook.activity")
        self.correlation_id = correlation_id
        self.events: list[ActivityEvent] = []
        self._keep_events = False

    def record_events(self, enabled: bool = True) -> None:
        """Keep logged events in `self.events` (useful for inspection in tests)."""
        self._keep_events = enabled

    def log(self, event: ActivityEvent) -> ActivityEvent:
        """Log an activity event and return it."""
        if event.correlation_id is None and self.correlation_id is not None:
            event.correlation_id = self.correlation_id

        log_dict = event.to_log_dict()

        if event.severity == ActivitySeverity.ERROR:
            self._logger.error("activity_event", **log_dict)
        elif event.severity == ActivitySeverity.WARNING:
            self._logger.warning("activity_event", **log_dict)
        elif event.severity == ActivitySeverity.DEBUG:
            self._logger.debug("activity_event", **log_dict)
        else:
            self._logger.info("activity_event", **log_dict)

        if self._keep_events:
            self.events.append(event)
        return event


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a session and pass it to the ActivityLogger.
    """
    return uuid4()
