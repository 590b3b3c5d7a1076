"""
Core module - the dispatch pipeline primitives.

This module contains:
- events: Dispatch events, stages and the event bus
- http: Request, response, route match and view model value types
- registry: Guard and strategy registry
"""

from gatekeeper.core.events import (
    DispatchError,
    DispatchEvent,
    EventBus,
    GuardOutcome,
    InvalidTransition,
    ResponseCollection,
    Stage,
    Subscription,
    get_event_bus,
    reset_event_bus,
)

from gatekeeper.core.http import (
    ConsoleRequest,
    HttpRequest,
    HttpResponse,
    Request,
    Response,
    RouteMatch,
    Router,
    ViewModel,
)

from gatekeeper.core.registry import (
    Registry,
    RegistryError,
    get_registry,
    reset_registry,
)

__all__ = [
    # Events
    "DispatchError",
    "DispatchEvent",
    "EventBus",
    "GuardOutcome",
    "InvalidTransition",
    "ResponseCollection",
    "Stage",
    "Subscription",
    "get_event_bus",
    "reset_event_bus",
    # HTTP
    "ConsoleRequest",
    "HttpRequest",
    "HttpResponse",
    "Request",
    "Response",
    "RouteMatch",
    "Router",
    "ViewModel",
    # Registry
    "Registry",
    "RegistryError",
    "get_registry",
    "reset_registry",
]
