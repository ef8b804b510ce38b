"""Notifications module."""

from .aggregator import INotificationAggregator, NotificationAggregator

__all__ = ["INotificationAggregator", "NotificationAggregator"]
