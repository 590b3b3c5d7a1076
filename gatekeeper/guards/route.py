"""
Route guard - rules name routes instead of controllers.
"""

from __future__ import annotations

from gatekeeper.core.events import DispatchError, DispatchEvent
from gatekeeper.guards.base import AbstractGuard, RuleSpec
from gatekeeper.guards.resources import route_resource_name


class RouteGuard(AbstractGuard):
    """Guards named routes (`route/<name>`)."""

    guard_id = "route"
    error = DispatchError.ROUTE
    target_field = "routes"

    def extract_resources(self, spec: RuleSpec) -> list[str]:
        return [route_resource_name(route) for route in spec.routes]

    async def on_route(self, event: DispatchEvent) -> None:
        if not self._should_check(event):
            return

        route = event.route_match.matched_route_name
        if route is None:
            return

        service = self._service()
        resource = route_resource_name(route)

        if service.is_allowed(resource):
            self.allow(event, resource)
            return

        await self.deny(
            event,
            {
                "route": route,
                "identity": service.get_identity(),
            },
            resource=route,
        )
