"""
Dispatch pipeline events.

Every request is carried through the pipeline by one `DispatchEvent`.
Listeners (guards, failure strategies) attach to named stages on an
`EventBus` and mutate the event in place. The bus runs them in priority
order and hands back whatever they returned.
"""

from __future__ import annotations

import inspect
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from gatekeeper.core.http import HttpResponse, Request, Response, RouteMatch, Router, ViewModel


# Handlers may be plain functions or coroutines
EventHandler = Callable[["DispatchEvent"], Any]


class Stage(str, Enum):
    """Lifecycle stages of the dispatch pipeline."""

    ROUTE = "route"                    # after the router resolved the target
    DISPATCH = "dispatch"              # allowed request, before the endpoint runs
    DISPATCH_ERROR = "dispatch.error"  # the error stage
    FINISH = "finish"                  # response chosen, request ending


class DispatchError(str, Enum):
    """The error kinds a dispatch event can carry."""

    CONTROLLER = "error-unauthorized-controller"
    ROUTE = "error-unauthorized-route"
    EXCEPTION = "error-exception"
    ROUTER_NO_MATCH = "error-router-no-match"


class GuardOutcome(str, Enum):
    """Per-guard state of a single request."""

    UNCHECKED = "unchecked"
    ALLOWED = "allowed"
    DENIED = "denied"
    ERROR_TRIGGERED = "error_triggered"


_TRANSITIONS: dict[GuardOutcome, set[GuardOutcome]] = {
    GuardOutcome.UNCHECKED: {GuardOutcome.ALLOWED, GuardOutcome.DENIED},
    GuardOutcome.DENIED: {GuardOutcome.ERROR_TRIGGERED},
    GuardOutcome.ALLOWED: set(),
    GuardOutcome.ERROR_TRIGGERED: set(),
}


class InvalidTransition(RuntimeError):
    """Raised when a guard outcome is moved along an illegal edge."""
    pass


@dataclass
class DispatchEvent:
    """
    The per-request dispatch context.

    Owned by the in-flight request and discarded when it completes. The
    error kind is stored as the `error` parameter so that view models can
    pick it up together with the other diagnostic parameters.
    """

    name: str = Stage.ROUTE.value
    request: Request | None = None
    response: Response | None = None
    route_match: RouteMatch | None = None
    router: Router | None = None
    result: Any = None
    view_model: ViewModel = field(default_factory=ViewModel)
    params: dict[str, Any] = field(default_factory=dict)

    # Bus the pipeline runs on (guards re-trigger the error stage here)
    bus: EventBus | None = None

    # Tracing
    id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    _outcomes: dict[str, GuardOutcome] = field(default_factory=dict, repr=False)
    _propagation_stopped: bool = field(default=False, repr=False)

    # -------------------------------------------------------------------------
    # Parameters
    # -------------------------------------------------------------------------

    def get_param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    def set_param(self, name: str, value: Any) -> None:
        self.params[name] = value

    @property
    def error(self) -> str | None:
        """The error kind, or None while the request is healthy."""
        return self.params.get("error")

    @error.setter
    def error(self, value: DispatchError | str | None) -> None:
        if isinstance(value, DispatchError):
            value = value.value
        self.params["error"] = value

    @property
    def is_error(self) -> bool:
        return bool(self.error)

    @property
    def http_response(self) -> HttpResponse | None:
        """The response, when it is HTTP-shaped."""
        return self.response if isinstance(self.response, HttpResponse) else None

    # -------------------------------------------------------------------------
    # Propagation
    # -------------------------------------------------------------------------

    def stop_propagation(self, flag: bool = True) -> None:
        self._propagation_stopped = flag

    @property
    def propagation_stopped(self) -> bool:
        return self._propagation_stopped

    # -------------------------------------------------------------------------
    # Guard outcomes
    # -------------------------------------------------------------------------

    def outcome(self, guard_id: str) -> GuardOutcome:
        return self._outcomes.get(guard_id, GuardOutcome.UNCHECKED)

    def transition(self, guard_id: str, outcome: GuardOutcome) -> None:
        """Move a guard to its next state; each edge can be taken once."""
        current = self.outcome(guard_id)
        if outcome not in _TRANSITIONS[current]:
            raise InvalidTransition(
                f"Guard '{guard_id}' cannot go from {current.value} to {outcome.value}"
            )
        self._outcomes[guard_id] = outcome


class ResponseCollection(list):
    """Return values of the handlers run by one trigger."""

    def __init__(self, *args: Any):
        super().__init__(*args)
        self.stopped = False

    def last(self) -> Any:
        return self[-1] if self else None


@dataclass(eq=False)
class Subscription:
    """Opaque handle for one attached listener."""

    stage: str
    handler: EventHandler
    priority: int = 1
    seq: int = 0

    def matches(self, stage: str) -> bool:
        return self.stage == stage


class EventBus:
    """
    In-memory, in-process event bus for the dispatch pipeline.

    Higher priorities run first; equal priorities run in attach order.
    Exceptions raised by handlers are not caught here.
    """

    def __init__(self):
        self._subscriptions: list[Subscription] = []
        self._seq = 0

    def attach(
        self,
        stage: Stage | str,
        handler: EventHandler,
        priority: int = 1,
    ) -> Subscription:
        """
        Attach a handler to a stage.

        Returns:
            The subscription handle (pass it to `detach`)
        """
        if isinstance(stage, Stage):
            stage = stage.value
        self._seq += 1
        subscription = Subscription(
            stage=stage,
            handler=handler,
            priority=priority,
            seq=self._seq,
        )
        self._subscriptions.append(subscription)
        return subscription

    def detach(self, subscription: Subscription) -> bool:
        """Remove a subscription. Returns False if it was not attached."""
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            return True
        return False

    def listeners(self, stage: Stage | str) -> list[Subscription]:
        """Subscriptions for a stage in the order they will run."""
        if isinstance(stage, Stage):
            stage = stage.value
        matching = [s for s in self._subscriptions if s.matches(stage)]
        return sorted(matching, key=lambda s: (-s.priority, s.seq))

    async def trigger(
        self,
        event: DispatchEvent,
        stage: Stage | str | None = None,
    ) -> ResponseCollection:
        """
        Run every handler attached to the event's stage.

        If `stage` is given the event is renamed to it first. Handlers see
        the same event object, so changes one makes are visible to the next.
        """
        if stage is not None:
            event.name = stage.value if isinstance(stage, Stage) else stage

        responses = ResponseCollection()
        event.stop_propagation(False)

        # Snapshot so handlers may attach/detach while we iterate
        for subscription in self.listeners(event.name):
            result = subscription.handler(event)
            if inspect.isawaitable(result):
                result = await result
            responses.append(result)

            if event.propagation_stopped:
                responses.stopped = True
                break

        return responses


# Singleton event bus for the application
_default_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the default event bus instance."""
    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus


def reset_event_bus() -> None:
    """Reset the default event bus (useful for testing)."""
    global _default_bus
    _default_bus = None
