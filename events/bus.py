"""
In-process publish/subscribe bus.

Contract excerpts:
- Handlers for one event run in descending priority; equal priorities keep
  subscription order and run concurrently with each other.
- Wildcard ("*") subscribers run after the named handlers and receive the
  payload with the event name injected under "event".
- A handler failure is logged and never reaches the publisher or aborts
  sibling handlers.
- `max_calls` counts deliveries. A subscription that reached its limit is
  removed.
- Every published event is appended to a bounded history; the oldest
  record is evicted past capacity.
- Payloads are checked against the schema registered for the event name.
  A mismatch logs a warning and is still delivered, unless the bus was
  built with `strict_validation=True`.

Delivery is at-most-once and in-process. There is no persistence and no
cross-publish ordering.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from itertools import groupby
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Set, Type, Union

from pydantic import BaseModel, ValidationError

from domain.errors import EventPayloadError, PublishTimeoutError
from domain.time import Clock, utc_now

from .schemas import EVENT_SCHEMAS, WILDCARD, EventName

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[None, Awaitable[None]]]
Predicate = Callable[[Any], bool]
EventKey = Union[str, EventName]

DEFAULT_MAX_HISTORY = 1000


@dataclass(frozen=True, slots=True)
class EventRecord:
    name: str
    payload: Any
    timestamp: datetime


@dataclass(eq=False)
class _Subscription:
    event_name: str
    handler: Handler
    predicate: Optional[Predicate]
    max_calls: int
    priority: int
    seq: int
    call_count: int = 0

    @property
    def exhausted(self) -> bool:
        return self.max_calls > 0 and self.call_count >= self.max_calls


def _key(event_name: Any) -> str:
    value = getattr(event_name, "value", event_name)
    if not isinstance(value, str) or not value:
        raise ValueError("event name must be a non-empty string")
    return value


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventBus:
    """
    Injected event bus. Create one per application (or per test).

    Example:
        bus = EventBus()
        bus.subscribe("order:created", on_created, priority=10)
        await bus.publish("order:created", OrderCreatedPayload(...))
    """

    def __init__(
        self,
        *,
        max_history: int = DEFAULT_MAX_HISTORY,
        strict_validation: bool = False,
        schemas: Optional[Mapping[str, Type[BaseModel]]] = None,
        clock: Clock = utc_now,
    ):
        if max_history < 1:
            raise ValueError("max_history must be >= 1")
        self._strict = strict_validation
        self._clock = clock
        self._schemas: Dict[str, Type[BaseModel]] = dict(EVENT_SCHEMAS if schemas is None else schemas)
        self._subscriptions: Dict[str, List[_Subscription]] = {}
        self._history: Deque[EventRecord] = deque(maxlen=max_history)
        self._lock = threading.Lock()
        self._seq = itertools.count()
        self._pending: Set[asyncio.Task] = set()

    @property
    def strict_validation(self) -> bool:
        return self._strict

    def register_schema(self, event_name: EventKey, schema: Type[BaseModel]) -> None:
        with self._lock:
            self._schemas[_key(event_name)] = schema

    # -- subscriptions -----------------------------------------------------

    def subscribe(
        self,
        event_name: EventKey,
        handler: Handler,
        *,
        predicate: Optional[Predicate] = None,
        max_calls: int = 0,
        priority: int = 0,
    ) -> Callable[[], None]:
        """
        Register `handler` for `event_name` (or "*" for every event).

        `predicate` filters payloads before delivery; filtered payloads do
        not count against `max_calls`. Returns a callable that removes
        exactly this subscription.
        """

        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        name = _key(event_name)
        sub = _Subscription(
            event_name=name,
            handler=handler,
            predicate=predicate,
            max_calls=max_calls,
            priority=priority,
            seq=next(self._seq),
        )
        with self._lock:
            subs = list(self._subscriptions.get(name, ()))
            subs.append(sub)
            subs.sort(key=lambda s: (-s.priority, s.seq))
            self._subscriptions[name] = subs

        def unsubscribe() -> None:
            self._remove(sub)

        return unsubscribe

    def subscribe_once(
        self,
        event_name: EventKey,
        handler: Handler,
        *,
        predicate: Optional[Predicate] = None,
        priority: int = 0,
    ) -> Callable[[], None]:
        return self.subscribe(event_name, handler, predicate=predicate, max_calls=1, priority=priority)

    def subscribe_many(
        self,
        event_names: List[EventKey],
        handler: Handler,
        *,
        predicate: Optional[Predicate] = None,
        max_calls: int = 0,
        priority: int = 0,
    ) -> Callable[[], None]:
        """Subscribe one handler to several events; the returned callable removes all of them."""

        removers = [
            self.subscribe(name, handler, predicate=predicate, max_calls=max_calls, priority=priority)
            for name in event_names
        ]

        def unsubscribe_all() -> None:
            for remove in removers:
                remove()

        return unsubscribe_all

    def unsubscribe(self, event_name: EventKey, handler: Optional[Handler] = None) -> None:
        """Remove every subscription of `handler` for the event, or all of them when handler is None."""

        name = _key(event_name)
        with self._lock:
            subs = self._subscriptions.get(name)
            if not subs:
                return
            if handler is None:
                del self._subscriptions[name]
                return
            remaining = [s for s in subs if s.handler != handler]
            if remaining:
                self._subscriptions[name] = remaining
            else:
                del self._subscriptions[name]

    def subscription_count(self, event_name: EventKey) -> int:
        name = _key(event_name)
        with self._lock:
            return sum(1 for s in self._subscriptions.get(name, ()) if not s.exhausted)

    def _remove(self, sub: _Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.event_name)
            if not subs or sub not in subs:
                return
            remaining = [s for s in subs if s is not sub]
            if remaining:
                self._subscriptions[sub.event_name] = remaining
            else:
                del self._subscriptions[sub.event_name]

    def _prune(self, name: str) -> None:
        with self._lock:
            subs = self._subscriptions.get(name)
            if not subs:
                return
            remaining = [s for s in subs if not s.exhausted]
            if remaining:
                self._subscriptions[name] = remaining
            else:
                del self._subscriptions[name]

    # -- publishing --------------------------------------------------------

    async def publish(self, event_name: EventKey, payload: Any, *, timeout: Optional[float] = None) -> None:
        """
        Deliver `payload` to every matching handler and wait for them.

        Raises EventPayloadError (strict mode only) before anything is
        delivered or recorded. Raises PublishTimeoutError when `timeout`
        elapses first; handlers keep running in the background.
        """

        record = self._record(_key(event_name), payload)
        task = asyncio.get_running_loop().create_task(self._dispatch(record))
        self._track(task)
        if timeout is None:
            await asyncio.shield(task)
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError as exc:
            raise PublishTimeoutError(
                f"Handlers for '{record.name}' did not finish within {timeout}s"
            ) from exc

    def publish_async(self, event_name: EventKey, payload: Any) -> asyncio.Task:
        """
        Schedule delivery without waiting. Must be called from a running loop.

        Failures, including strict validation errors, are logged.
        """

        task = asyncio.get_running_loop().create_task(self._publish_logged(event_name, payload))
        self._track(task)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled delivery, including ones scheduled while waiting."""

        current = asyncio.current_task()
        while True:
            pending = [t for t in self._pending if t is not current and not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _publish_logged(self, event_name: EventKey, payload: Any) -> None:
        try:
            await self.publish(event_name, payload)
        except Exception:
            logger.exception(
                "Fire-and-forget publish failed",
                extra={"event_name": getattr(event_name, "value", event_name)},
            )

    def _track(self, task: asyncio.Task) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _record(self, name: str, payload: Any) -> EventRecord:
        self._validate(name, payload)
        record = EventRecord(name=name, payload=payload, timestamp=self._clock())
        with self._lock:
            self._history.append(record)
        return record

    def _validate(self, name: str, payload: Any) -> None:
        with self._lock:
            schema = self._schemas.get(name)
        if schema is None or isinstance(payload, schema):
            return
        try:
            if isinstance(payload, BaseModel):
                schema.model_validate(payload.model_dump(by_alias=True))
            else:
                schema.model_validate(payload)
        except ValidationError as exc:
            if self._strict:
                raise EventPayloadError(f"Invalid payload for '{name}': {exc}") from exc
            logger.warning(
                "Event payload failed validation; delivering anyway",
                extra={"event_name": name, "errors": exc.errors(include_url=False)},
            )

    async def _dispatch(self, record: EventRecord) -> None:
        with self._lock:
            named = list(self._subscriptions.get(record.name, ()))
            wildcard = list(self._subscriptions.get(WILDCARD, ())) if record.name != WILDCARD else []

        await self._run_groups(record.name, named, record.payload)
        if wildcard:
            await self._run_groups(record.name, wildcard, _with_event_name(record.name, record.payload))

        self._prune(record.name)
        if wildcard:
            self._prune(WILDCARD)

    async def _run_groups(self, name: str, subs: List[_Subscription], payload: Any) -> None:
        for _priority, group in groupby(subs, key=lambda s: s.priority):
            runnable = [s for s in group if self._claim(name, s, payload)]
            if runnable:
                await asyncio.gather(*(self._invoke(name, s, payload) for s in runnable))

    def _claim(self, name: str, sub: _Subscription, payload: Any) -> bool:
        if sub.predicate is not None:
            try:
                if not sub.predicate(payload):
                    return False
            except Exception:
                logger.exception(
                    "Event filter failed",
                    extra={"event_name": name, "handler": _handler_name(sub.handler)},
                )
                return False
        with self._lock:
            if sub.exhausted:
                return False
            sub.call_count += 1
        return True

    async def _invoke(self, name: str, sub: _Subscription, payload: Any) -> None:
        try:
            result = sub.handler(payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(
                "Event handler failed",
                extra={"event_name": name, "handler": _handler_name(sub.handler)},
            )

    # -- history -----------------------------------------------------------

    def history(self, event_name: Optional[EventKey] = None) -> List[EventRecord]:
        with self._lock:
            records = list(self._history)
        if event_name is None:
            return records
        name = _key(event_name)
        return [r for r in records if r.name == name]

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()

    def reset(self) -> None:
        """Drop every subscription and the history. Scheduled deliveries are not cancelled."""

        with self._lock:
            self._subscriptions.clear()
            self._history.clear()


def _with_event_name(name: str, payload: Any) -> Dict[str, Any]:
    if isinstance(payload, BaseModel):
        return {"event": name, **payload.model_dump(by_alias=True)}
    if isinstance(payload, Mapping):
        return {"event": name, **payload}
    return {"event": name, "payload": payload}


__all__ = ["EventBus", "EventRecord", "Handler", "Predicate", "DEFAULT_MAX_HISTORY"]
