"""Realtime notification use cases."""

from .observer import ChangeObserver, ClassificationError, RoutedNotification
from .service import ConnectionStatus, RealtimeService
from .stats import (
    StatsAggregator,
    StatsSource,
    compute_dashboard_stats,
    repository_stats_source,
)

__all__ = [
    "ChangeObserver",
    "ClassificationError",
    "ConnectionStatus",
    "RealtimeService",
    "RoutedNotification",
    "StatsAggregator",
    "StatsSource",
    "compute_dashboard_stats",
    "repository_stats_source",
]
