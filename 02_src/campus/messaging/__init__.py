"""Messaging module."""

from .service import IMessagingService, MessagingService

__all__ = ["IMessagingService", "MessagingService"]
