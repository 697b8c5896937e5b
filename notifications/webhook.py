#Purpose: The outbound webhook "adapter/client".
#Sole responsibility: tell the surrounding product (email/SMS/payments services)
#that a marketplace transition has committed.
#Encapsulates webhook-specific details:
#event envelope + JSON payload shapes
#timeouts / error handling
#fire-and-forget delivery on a background pool so a slow or dead receiver
#never holds up a bid, an allocation or a cancellation
#It should not contain marketplace rules.

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

import requests
from dotenv import load_dotenv

from jobs.models import Bid, RouteJob, utcnow

# Read the receiver URL from environment
# Example in .env:
# WEBHOOK_URL=http://localhost:3000/api/internal/marketplace-events
load_dotenv()
WEBHOOK_URL = os.getenv("WEBHOOK_URL")

logger = logging.getLogger(__name__)


class WebhookError(Exception):
    """Custom exception for webhook delivery errors."""
    pass


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if hasattr(value, "value"):  # enums
        return value.value
    return value


def job_payload(job: RouteJob) -> Dict[str, Any]:
    return {key: _plain(value) for key, value in vars(job).items()}


def bid_payload(bid: Bid) -> Dict[str, Any]:
    return {key: _plain(value) for key, value in vars(bid).items()}


class WebhookNotifier:
    """
    Webhook publisher

    Sole responsibility:
    - POST {"event": ..., "sent_at": ..., "data": {...}} to one URL
    - never raise into the marketplace from publish(); failures are logged

    """
    def __init__(self, url: Optional[str] = None, timeout: float = 5, max_workers: int = 2):
        self.url = url or WEBHOOK_URL
        self.timeout = timeout  # seconds to wait for the receiver before giving up

        if not self.url:
            raise ValueError("Webhook URL not set. Please set WEBHOOK_URL in the .env file.")

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="webhook")

    #----------------
    # Delivery
    #----------------
    def build_event(self, event_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "event": event_type,
            "sent_at": utcnow().isoformat(),
            "data": data,
        }

    def send(self, event_type: str, data: Dict[str, Any]) -> None:
        """
        Synchronous delivery. Raises WebhookError if the receiver can't be reached
        or answers with an error status.
        """
        try:
            response = requests.post(self.url, json=self.build_event(event_type, data), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise WebhookError(f"Failed to deliver {event_type}: {e}") from e

    def publish(self, event_type: str, data: Dict[str, Any]) -> Future:
        """
        Fire-and-forget delivery on the background pool.
        """
        return self._executor.submit(self._deliver, event_type, data)

    def _deliver(self, event_type: str, data: Dict[str, Any]) -> bool:
        try:
            self.send(event_type, data)
            return True
        except WebhookError as e:
            logger.warning("Webhook delivery failed: %s", e)
            return False

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    #----------------
    # Marketplace events
    #----------------
    def job_created(self, job: RouteJob) -> Future:
        return self.publish("job.created", {"job": job_payload(job)})

    def bid_placed(self, bid: Bid) -> Future:
        return self.publish("bid.placed", {"bid": bid_payload(bid)})

    def bid_withdrawn(self, bid: Bid) -> Future:
        return self.publish("bid.withdrawn", {"bid": bid_payload(bid)})

    def job_assigned(self, job: RouteJob, winning_bid: Bid, rejected_bids: Iterable[Bid]) -> Future:
        return self.publish("job.assigned", {
            "job": job_payload(job),
            "winning_bid": bid_payload(winning_bid),
            "rejected_bid_ids": [bid.id for bid in rejected_bids],
        })

    def job_cancelled(self, job: RouteJob, rejected_bids: Iterable[Bid]) -> Future:
        return self.publish("job.cancelled", {
            "job": job_payload(job),
            "rejected_bid_ids": [bid.id for bid in rejected_bids],
        })

    def job_started(self, job: RouteJob) -> Future:
        return self.publish("job.started", {"job": job_payload(job)})

    def job_completed(self, job: RouteJob) -> Future:
        return self.publish("job.completed", {"job": job_payload(job)})

    def operator_alert(self, job_id: str, message: str) -> Future:
        return self.publish("operator.alert", {"job_id": job_id, "message": message})
