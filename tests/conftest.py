"""
Shared fixtures: an in-memory bus, a scriptable authorization service and
a factory for routed dispatch events.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from gatekeeper.core.events import DispatchEvent, EventBus, reset_event_bus
from gatekeeper.core.http import ConsoleRequest, HttpRequest, RouteMatch
from gatekeeper.core.registry import reset_registry


class FakeAuthorize:
    """Authorization service double that records every question asked."""

    def __init__(self, allowed: Callable[[str], bool] | set[str] | None = None, identity: Any = None):
        self.allowed = allowed if allowed is not None else set()
        self.identity = identity
        self.checked: list[str] = []

    def is_allowed(self, resource: str, privilege: str | None = None) -> bool:
        self.checked.append(resource)
        if callable(self.allowed):
            return self.allowed(resource)
        return resource in self.allowed

    def get_identity(self) -> Any:
        return self.identity


class FakeRouter:
    def __init__(self, routes: dict[str, str] | None = None):
        self.routes = routes or {"login": "/login"}
        self.assembled: list[str] = []

    def assemble(self, params: dict[str, Any], options: dict[str, Any]) -> str:
        self.assembled.append(options["name"])
        return self.routes[options["name"]]


@pytest.fixture(autouse=True)
def _reset_singletons():
    reset_event_bus()
    reset_registry()
    yield
    reset_event_bus()
    reset_registry()


@pytest.fixture
def bus():
    """Fresh event bus."""
    return EventBus()


@pytest.fixture
def authorize():
    """Authorization service that denies everything until told otherwise."""
    return FakeAuthorize()


@pytest.fixture
def router():
    return FakeRouter()


@pytest.fixture
def make_event(bus, router):
    """
    Build a routed dispatch event.

    make_event("users", "edit", method="POST", route="user-edit")
    """

    def _make(
        controller: str | None = None,
        action: str | None = None,
        method: str = "GET",
        route: str | None = None,
        console: bool = False,
    ) -> DispatchEvent:
        request = ConsoleRequest(argv=["run"]) if console else HttpRequest(method=method)
        return DispatchEvent(
            request=request,
            route_match=RouteMatch(
                matched_route_name=route,
                params={"controller": controller, "action": action},
            ),
            router=router,
            bus=bus,
        )

    return _make


@pytest.fixture
def error_spy(bus):
    """Records every event that reaches the error stage."""
    seen: list[dict[str, Any]] = []

    def _spy(event: DispatchEvent) -> str:
        seen.append(dict(event.params))
        return "spied"

    bus.attach("dispatch.error", _spy, priority=100)
    return seen
