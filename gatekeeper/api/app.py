"""
FastAPI integration.

`install_guards()` puts the dispatch pipeline in front of a FastAPI app:
every request that resolves to an endpoint runs the route stage (where the
guards listen), and authorization failures are answered with the response
the configured strategy built.

    app = FastAPI()
    config = load_config()
    install_guards(app, config, identify=lambda request: current_user(request))

Resource naming for FastAPI endpoints:

- controller: the endpoint's module (`app.api.users`)
- action: the endpoint function's name (`update_user`)
- route: the route name (`update_user` unless `name=` was given)

Every routed endpoint is guarded, including FastAPI's own `/docs` and
`/openapi.json` routes; grant them in the rules or disable them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi import FastAPI
from fastapi import Request as FastAPIRequest
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.responses import Response as StarletteResponse
from starlette.routing import Match

from gatekeeper.acl.authorize import (
    Authorize,
    ContextIdentityProvider,
    Identity,
    IdentityProvider,
)
from gatekeeper.config_loader import GatekeeperConfig
from gatekeeper.core.events import DispatchError, DispatchEvent, EventBus, Stage
from gatekeeper.core.http import HttpRequest, RouteMatch, ViewModel
from gatekeeper.exceptions import UnAuthorizedException

logger = logging.getLogger(__name__)

# identify(request) -> Identity | None
Identify = Callable[[FastAPIRequest], "Identity | None"]
# renderer(view_model) -> str (HTML) or JSON-serializable data
ViewRenderer = Callable[[ViewModel], Any]

REDIRECT_CODES = {301, 302, 303, 307, 308}


# =============================================================================
# Adapters
# =============================================================================


class StarletteRouter:
    """Assembles URLs from route names using the app's router."""

    def __init__(self, app: FastAPI):
        self.app = app

    def assemble(self, params: dict[str, Any], options: dict[str, Any]) -> str:
        return str(self.app.url_path_for(options["name"], **params))


class JsonViewRenderer:
    """Default renderer: the template name plus the view variables as JSON."""

    def __call__(self, model: ViewModel) -> dict[str, Any]:
        variables = dict(model.variables)
        if variables.get("identity") is not None:
            variables["identity"] = str(variables["identity"])
        return {"template": model.template, **variables}


def match_route(app: FastAPI, scope: dict[str, Any]) -> RouteMatch | None:
    """
    Resolve the endpoint a request will reach.

    Mounted sub-applications have no endpoint and are not matched.
    """
    for route in app.router.routes:
        endpoint = getattr(route, "endpoint", None)
        if endpoint is None:
            continue

        match, child_scope = route.matches(scope)
        if match != Match.FULL:
            continue

        params = dict(child_scope.get("path_params", {}))
        params["controller"] = endpoint.__module__
        params["action"] = endpoint.__name__
        return RouteMatch(matched_route_name=getattr(route, "name", None), params=params)

    return None


def to_http_request(request: FastAPIRequest) -> HttpRequest:
    return HttpRequest(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        query=dict(request.query_params),
    )


def to_starlette_response(event: DispatchEvent, renderer: ViewRenderer) -> StarletteResponse:
    """Turn the response a strategy built into a Starlette response."""
    response = event.http_response
    if response is None:
        logger.warning(
            f"Request {event.id} failed with {event.error} but no strategy produced "
            "a response - answering 403"
        )
        return JSONResponse({"detail": "Forbidden", "error": event.error}, status_code=403)

    location = response.get_header("Location")
    if response.status_code in REDIRECT_CODES and location:
        result: StarletteResponse = RedirectResponse(location, status_code=response.status_code)
    elif event.view_model.children:
        body = renderer(event.view_model.children[-1])
        if isinstance(body, str):
            result = HTMLResponse(body, status_code=response.status_code)
        else:
            result = JSONResponse(body, status_code=response.status_code)
    else:
        result = StarletteResponse(content=response.content, status_code=response.status_code)

    for name, values in response.headers.items():
        if name.lower() == "location" and "location" in result.headers:
            continue
        for value in values:
            result.headers.append(name, value)

    return result


# =============================================================================
# Installation
# =============================================================================


def install_guards(
    app: FastAPI,
    config: GatekeeperConfig,
    authorize: Authorize | None = None,
    identity_provider: IdentityProvider | None = None,
    identify: Identify | None = None,
    renderer: ViewRenderer | None = None,
    bus: EventBus | None = None,
) -> EventBus:
    """
    Guard a FastAPI app with the configured guards and strategy.

    Args:
        app: The application to guard
        config: Guards and strategy (see `gatekeeper.config_loader`)
        authorize: Authorization service; built from `config` when omitted
        identity_provider: Identity source for the built service
        identify: Maps a request to its identity (anonymous when omitted)
        renderer: Renders the 403 view model
        bus: Event bus to attach to (a fresh one when omitted)

    Returns:
        The event bus the listeners were attached to
    """
    bus = bus or EventBus()
    identity_provider = identity_provider or ContextIdentityProvider()
    renderer = renderer or JsonViewRenderer()
    router = StarletteRouter(app)

    if authorize is None:
        authorize = config.build_authorize(identity_provider)
    else:
        for guard in config.guards:
            guard.authorize = authorize

    config.attach_all(bus)

    @app.middleware("http")
    async def gatekeeper_middleware(request: FastAPIRequest, call_next):
        event = DispatchEvent(
            request=to_http_request(request),
            route_match=match_route(app, request.scope),
            router=router,
            bus=bus,
        )

        if event.route_match is None:
            # Error listeners hear about it; the framework answers 404 / 405
            event.error = DispatchError.ROUTER_NO_MATCH
            await bus.trigger(event, Stage.DISPATCH_ERROR)
            response = await call_next(request)
            await bus.trigger(event, Stage.FINISH)
            return response

        token = None
        if isinstance(identity_provider, ContextIdentityProvider):
            token = identity_provider.set_identity(identify(request) if identify else None)

        try:
            await bus.trigger(event, Stage.ROUTE)
            if event.is_error:
                response = to_starlette_response(event, renderer)
            else:
                await bus.trigger(event, Stage.DISPATCH)
                try:
                    response = await call_next(request)
                except UnAuthorizedException as exc:
                    event.error = DispatchError.EXCEPTION
                    event.set_param("identity", authorize.get_identity())
                    event.set_param("exception", exc)
                    await bus.trigger(event, Stage.DISPATCH_ERROR)
                    response = to_starlette_response(event, renderer)

            await bus.trigger(event, Stage.FINISH)
            return response
        finally:
            if token is not None:
                identity_provider.reset(token)

    app.state.gatekeeper_bus = bus
    app.state.gatekeeper_authorize = authorize
    return bus
