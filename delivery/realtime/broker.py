"""Notification broker: per-user fan-out of order events to SSE streams.

Request handlers publish here after a successful database write. Delivery is
best-effort: publishers never wait on a subscriber, a full mailbox drops the
frame, and a user without an open stream simply misses the hint (clients
reconcile from the API on reconnect).
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from delivery.realtime.encoder import encode_event
from delivery.realtime.errors import NotConnected
from delivery.realtime.mailbox import Mailbox
from delivery.realtime.registry import SubscriberRegistry

logger = logging.getLogger(__name__)

ORDER_UPDATE = "order_update"
ORDER_DELETED = "order_deleted"


@dataclass(frozen=True)
class BroadcastResult:
    delivered: int = 0
    dropped: int = 0

    @property
    def recipients(self) -> int:
        return self.delivered + self.dropped


def _order_field(order: Any, *names: str) -> Any:
    if isinstance(order, Mapping):
        for name in names:
            if name in order:
                return order[name]
        return None
    for name in names:
        if hasattr(order, name):
            return getattr(order, name)
    return None


class NotificationBroker:
    def __init__(self, registry: Optional[SubscriberRegistry] = None, capacity: int = 10) -> None:
        self.registry = registry if registry is not None else SubscriberRegistry(capacity)

    # -- connection lifecycle --------------------------------------------
    def connect(self, user_id: int) -> Mailbox:
        mailbox, previous = self.registry.replace(user_id)
        if previous is not None:
            logger.info("subscriber reconnected, previous stream closed", extra={"user_id": user_id})
        else:
            logger.info("subscriber connected", extra={"user_id": user_id})
        return mailbox

    def disconnect(self, user_id: int, mailbox: Optional[Mailbox] = None) -> None:
        if self.registry.unregister(user_id, mailbox):
            logger.info("subscriber disconnected", extra={"user_id": user_id})

    def close(self) -> None:
        n = self.registry.close_all()
        if n:
            logger.info("broker closed", extra={"subscribers": n})

    # -- publishing -------------------------------------------------------
    def notify_one(self, user_id: int, event_type: str, payload: Any) -> bool:
        """Queue an event for one user.

        Returns True when queued and False when the user's mailbox was full
        (the frame is dropped, which still counts as a successful send).
        Raises NotConnected if the user has no open stream and
        EncodingFailure if the payload cannot be serialized.
        """
        frame = encode_event(event_type, payload)
        mailbox = self.registry.lookup(user_id)
        if mailbox is None:
            raise NotConnected(user_id)
        return self._offer(mailbox, frame, event_type)

    def broadcast_all(self, event_type: str, payload: Any) -> BroadcastResult:
        frame = encode_event(event_type, payload)
        delivered = dropped = 0
        for _, mailbox in self.registry.snapshot():
            if self._offer(mailbox, frame, event_type):
                delivered += 1
            else:
                dropped += 1
        logger.info(
            "broadcast sent",
            extra={"event": event_type, "delivered": delivered, "dropped": dropped},
        )
        return BroadcastResult(delivered=delivered, dropped=dropped)

    def notify_order_update(self, order: Any) -> int:
        """Send order_update to the order owner and, if assigned, its delivery agent."""
        recipients = [_order_field(order, "user_id", "userId")]
        delivery_id = _order_field(order, "delivery_id", "deliveryId")
        if delivery_id is not None:
            recipients.append(delivery_id)
        return self._notify_many(recipients, ORDER_UPDATE, order)

    def notify_order_deleted(self, order_id: int, user_id: Optional[int], delivery_id: Optional[int] = None) -> int:
        return self._notify_many([user_id, delivery_id], ORDER_DELETED, {"id": order_id})

    def stats(self) -> Dict[str, Any]:
        snap = self.registry.snapshot()
        return {
            "connected": len(snap),
            "subscribers": [
                {"user_id": uid, "queued": len(mb), "dropped": mb.dropped}
                for uid, mb in sorted(snap, key=lambda kv: kv[0])
            ],
        }

    def _notify_many(self, user_ids, event_type: str, payload: Any) -> int:
        frame = encode_event(event_type, payload)
        queued = 0
        seen = set()
        for uid in user_ids:
            if uid is None or uid in seen:
                continue
            seen.add(uid)
            mailbox = self.registry.lookup(uid)
            if mailbox is None:
                logger.debug("subscriber not connected", extra={"user_id": uid, "event": event_type})
                continue
            if self._offer(mailbox, frame, event_type):
                queued += 1
        return queued

    def _offer(self, mailbox: Mailbox, frame: bytes, event_type: str) -> bool:
        if mailbox.offer(frame):
            logger.debug("event queued", extra={"user_id": mailbox.user_id, "event": event_type})
            return True
        logger.warning(
            "mailbox full or closed, event dropped",
            extra={"user_id": mailbox.user_id, "event": event_type, "dropped": mailbox.dropped},
        )
        return False
