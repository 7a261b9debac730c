"""Legal retention policies."""

from .retention_policy import RetentionResolver

__all__ = ["RetentionResolver"]
