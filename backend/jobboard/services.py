"""
Process-wide Marketplace used by the API views and the scheduler command.
Built lazily from the environment: ALLOCATION_* policy overrides, and a webhook
notifier only when WEBHOOK_URL is configured.

State lives in the jobboard tables, so every process that builds one (the API
workers, run_scheduler) sees the same jobs, bids, drivers and fairness counts.
"""
import logging
import threading

from dispatch.marketplace import Marketplace
from dispatch.policy import policy_from_env
from notifications import webhook

from .stores import AcceptedBidFairness, DatabaseDriverStore, DatabaseJobStore

logger = logging.getLogger(__name__)

_marketplace = None
_lock = threading.Lock()


def build_marketplace(policy=None, notifier=None):
    policy = policy or policy_from_env()
    if notifier is None:
        if webhook.WEBHOOK_URL:
            notifier = webhook.WebhookNotifier()
        else:
            logger.info("WEBHOOK_URL not set, marketplace events will not be published")
    return Marketplace(
        policy=policy,
        job_store=DatabaseJobStore(default_lock_timeout=policy.lock_timeout_seconds),
        driver_store=DatabaseDriverStore(),
        fairness=AcceptedBidFairness(policy.fairness_window),
        notifier=notifier,
    )


def get_marketplace():
    global _marketplace
    with _lock:
        if _marketplace is None:
            _marketplace = build_marketplace()
        return _marketplace


def reset_marketplace(marketplace=None):
    """
    Swap the process-wide instance (tests, or a reload after config changes).
    """
    global _marketplace
    with _lock:
        _marketplace = marketplace
    return marketplace
