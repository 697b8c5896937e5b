#Marks notifications as a package.
#Re-exports the webhook publisher so callers import from notifications
#without knowing internal file names.
#No business logic.

from .webhook import WebhookNotifier, WebhookError, job_payload, bid_payload

__all__ = [
    "WebhookNotifier",
    "WebhookError",
    "job_payload",
    "bid_payload",
]
