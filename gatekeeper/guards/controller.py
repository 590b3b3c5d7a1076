"""
Controller guard.

Rules name controllers (and optionally actions); requests are checked
against the controller and action the router resolved.
"""

from __future__ import annotations

import logging

from gatekeeper.core.events import DispatchError, DispatchEvent
from gatekeeper.core.http import HttpRequest
from gatekeeper.guards.base import AbstractGuard, RuleSpec
from gatekeeper.guards.resources import controller_resource_name

logger = logging.getLogger(__name__)


class ControllerGuard(AbstractGuard):
    """
    Guards controller/action pairs.

    A request is allowed when any of these resources is allowed, checked
    in order:

    1. the whole controller (`controller/<c>`)
    2. the routed action (`controller/<c>:<action>`), if there is one
    3. the HTTP method (`controller/<c>:<method>`)

    so a rule without actions grants the entire controller, and RESTful
    controllers without actions can be guarded per HTTP method.
    """

    guard_id = "controller"
    error = DispatchError.CONTROLLER
    target_field = "controllers"

    def extract_resources(self, spec: RuleSpec) -> list[str]:
        return [
            controller_resource_name(controller, action)
            for controller in spec.controllers
            for action in spec.actions
        ]

    def get_resource_name(self, controller: str, action: str | None = None) -> str:
        return controller_resource_name(controller, action)

    def _candidates(self, controller: str, action: str | None, method: str | None) -> list[str]:
        candidates = [controller_resource_name(controller)]
        if action:
            candidates.append(controller_resource_name(controller, action))
        if method:
            candidates.append(controller_resource_name(controller, method))
        return candidates

    async def on_route(self, event: DispatchEvent) -> None:
        if not self._should_check(event):
            return

        controller = event.route_match.get_param("controller")
        if controller is None:
            # Not a controller dispatch; the route guard covers such routes
            logger.debug(f"No controller on route match (request {event.id})")
            return

        service = self._service()
        action = event.route_match.get_param("action")
        request = event.request
        method = request.method if isinstance(request, HttpRequest) else None

        for resource in self._candidates(controller, action, method):
            if service.is_allowed(resource):
                self.allow(event, resource)
                return

        await self.deny(
            event,
            {
                "identity": service.get_identity(),
                "controller": controller,
                "action": action,
            },
            resource=controller_resource_name(controller, action or method),
        )
