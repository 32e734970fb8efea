from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Type


logger = logging.getLogger(__name__)

Handler = Callable[[object], None]


@dataclass(frozen=True)
class _Subscription:
    priority: int
    order: int
    handler: Handler

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", getattr(self.handler, "__name__", repr(self.handler)))


class EventBus:
    """Synchronous in-process bus for arc and alignment events.

    A subscription to a base event class also receives its subclasses, so the
    choice log can listen on ``ArcEvent`` once. Handlers run by ``priority``,
    then by subscription order. One failing handler never stops the others;
    its error is logged and kept until the next publish.
    """

    def __init__(self) -> None:
        self._by_type: Dict[Type[object], List[_Subscription]] = {}
        self._counter = itertools.count()
        self._errors: List[Exception] = []

    def subscribe(self, event_type: Type[object], handler: Handler, *, priority: int = 100) -> None:
        subscription = _Subscription(priority=int(priority), order=next(self._counter), handler=handler)
        self._by_type.setdefault(event_type, []).append(subscription)

    def unsubscribe(self, event_type: Type[object], handler: Handler) -> bool:
        subscriptions = self._by_type.get(event_type, [])
        kept = [row for row in subscriptions if row.handler != handler]
        self._by_type[event_type] = kept
        return len(kept) != len(subscriptions)

    def _subscriptions_for(self, event: object) -> List[_Subscription]:
        matched = [row for klass in type(event).__mro__ for row in self._by_type.get(klass, ())]
        return sorted(matched, key=lambda row: (row.priority, row.order))

    def publish(self, event: object) -> None:
        errors: List[Exception] = []
        for subscription in self._subscriptions_for(event):
            try:
                subscription.handler(event)
            except Exception as exc:
                errors.append(exc)
                logger.exception(
                    "Event handler failed and was isolated",
                    extra={
                        "event_type": type(event).__name__,
                        "handler": subscription.handler_name,
                        "priority": subscription.priority,
                    },
                )
        self._errors = errors

    def last_publish_errors(self) -> List[Exception]:
        return list(self._errors)
