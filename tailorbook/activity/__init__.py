"""Activity logging package."""

from tailorbook.activity.logger import ActivityLogger, create_correlation_id

__all__ = ["ActivityLogger", "create_correlation_id"]
