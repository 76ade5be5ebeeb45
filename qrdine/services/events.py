"""In-process pub/sub for order and payment notifications.

Services publish only after their unit of work has committed; the transport
that fans these out to staff screens subscribes here.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger("qrdine.events")

ORDER_CREATED = "order.created"
ORDER_ITEMS_ADDED = "order.items_added"
ORDER_STATUS_UPDATED = "order.status_updated"
ORDER_READY = "order.ready"
PAYMENT_CONFIRMED = "payment.confirmed"

Handler = Callable[[Dict[str, Any]], None]


class EventBus:
    """Dispatch named events to subscriber callbacks."""

    def __init__(self) -> None:
        self._subs: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subs[name].append(handler)

    def publish(self, name: str, payload: Dict[str, Any]) -> None:
        """Call every subscriber of ``name``; a failing subscriber is logged and skipped."""
        logger.info("event %s %s", name, payload.get("order_id"))
        for handler in self._subs.get(name, []):
            try:
                handler(payload)
            except Exception:
                logger.exception("subscriber failed for %s", name)


event_bus = EventBus()
