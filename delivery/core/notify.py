from __future__ import annotations
import logging
from typing import Callable, Optional, TypeVar

from delivery.realtime.broker import NotificationBroker
from delivery.realtime.errors import EncodingFailure, NotificationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def publish_safely(fn: Callable[..., T], *args, **kwargs) -> Optional[T]:
    """Run a broker call as a side effect of a committed write.

    Notification failures are logged and never reach the HTTP response.
    """
    try:
        return fn(*args, **kwargs)
    except EncodingFailure:
        logger.exception("notification payload could not be encoded")
    except NotificationError as e:
        logger.info("notification skipped: %s", e)
    return None


def notify_order_changed(broker: NotificationBroker, order) -> Optional[int]:
    return publish_safely(broker.notify_order_update, order)


def notify_order_removed(
    broker: NotificationBroker, order_id: int, user_id: int, delivery_id: Optional[int]
) -> Optional[int]:
    return publish_safely(broker.notify_order_deleted, order_id, user_id, delivery_id)
