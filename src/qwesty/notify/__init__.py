"""Notification — webhook rendering and delivery."""

from qwesty.notify.webhook import DeliveryReport, WebhookNotifier

__all__ = ["DeliveryReport", "WebhookNotifier"]
