"""Outbound notification adapters."""

from querybridge.adapters.notifications.email import EmailConfig, EmailNotifier

__all__ = ["EmailConfig", "EmailNotifier"]
