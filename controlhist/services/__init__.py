from .git_history import GitHistoryService, iso_timestamp

__all__ = ["GitHistoryService", "iso_timestamp"]
