"""Source scheduling: collection lanes and background refresh."""

from .apsched_adapter import APSchedulerAdapter
from .lanes import CollectionReport, SourceScheduler

__all__ = ["APSchedulerAdapter", "CollectionReport", "SourceScheduler"]
