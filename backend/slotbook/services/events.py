"""
backend/slotbook/services/events.py

Event emitter: pushes booking events to a Redis queue for an external
notification consumer (LINE / e-mail delivery lives outside this service).

Queue:
- events:p2p: instant delivery (booking notifications to specific users)

Without Redis, events are only logged.
"""

import json
import time
import logging

from redis import Redis

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


class EventEmitter:
    def __init__(self, redis: Redis | None = None, enabled: bool = True, queue: str = P2P_QUEUE):
        self.redis = redis
        self.enabled = enabled
        self.queue = queue

    def emit_event(self, event_type: str, payload: dict) -> bool:
        """
        Emit a p2p event.

        Returns:
            False if the push failed; errors are logged, never raised
        """
        if not self.enabled:
            return True

        event = {
            "type": event_type,
            **payload,
            "ts": int(time.time()),
        }
        if self.redis is None:
            logger.info(f"Event (no queue): {event_type} {payload}")
            return True

        try:
            self.redis.rpush(self.queue, json.dumps(event, ensure_ascii=False))
            logger.info(f"Event emitted: {event_type} → {self.queue}")
            return True
        except Exception as e:
            logger.error(f"Failed to emit event {event_type}: {e}")
            return False
