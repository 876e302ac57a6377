"""
Outbound event sink.

Services emit events through an object with an ``emit(name, payload)``
method handed to their constructor. Emission is fire-and-forget: a failing
receiver is logged and never breaks the operation that produced the event.

    service = PricingService(events=RecordingEventSink())
    service.lock_price(subscription_id)
    service.events.names()  # ["subscription.price.locked"]
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Protocol

from django.db import transaction

from retainly.core.signals import engine_event

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def emit(self, name: str, payload: dict[str, Any]) -> None: ...


class SignalEventSink:
    """Send ``engine_event`` once the current transaction commits."""

    def emit(self, name: str, payload: dict[str, Any]) -> None:
        transaction.on_commit(lambda: self._send(name, payload))

    def _send(self, name: str, payload: dict[str, Any]) -> None:
        responses = engine_event.send_robust(
            sender=self.__class__,
            name=name,
            payload=payload,
        )
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.error(
                    "Event receiver %r failed for %s",
                    receiver,
                    name,
                    exc_info=response,
                )


class RecordingEventSink:
    """Keep emitted events in memory. Used by tests."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, name: str, payload: dict[str, Any]) -> None:
        self.events.append((name, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, name: str) -> list[dict[str, Any]]:
        return [payload for event_name, payload in self.events if event_name == name]
