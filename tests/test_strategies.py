"""
Tests for the failure strategies: redirect to login, render a 403 page.
"""

import pytest

from gatekeeper.core.events import DispatchError, DispatchEvent, Stage
from gatekeeper.core.http import HttpResponse, Response, RouteMatch, ViewModel
from gatekeeper.exceptions import ConfigurationError, UnAuthorizedException
from gatekeeper.view.base import is_authorization_error
from gatekeeper.view.redirection import RedirectionStrategy
from gatekeeper.view.unauthorized import UnauthorizedStrategy


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def failed_event(router):
    """
    An event that reached the error stage.

    failed_event(DispatchError.ROUTE, route="admin")
    """

    def _make(error=DispatchError.CONTROLLER, **params):
        event = DispatchEvent(
            name=Stage.DISPATCH_ERROR.value,
            response=HttpResponse(),
            route_match=RouteMatch(matched_route_name="secure"),
            router=router,
        )
        event.error = error
        for name, value in params.items():
            event.set_param(name, value)
        return event

    return _make


class OtherResponse(Response):
    """A response that is not HTTP-shaped."""
    pass


# =============================================================================
# Authorization errors
# =============================================================================


class TestIsAuthorizationError:
    def test_guard_errors(self, failed_event):
        assert is_authorization_error(failed_event(DispatchError.CONTROLLER))
        assert is_authorization_error(failed_event(DispatchError.ROUTE))

    def test_unauthorized_exception(self, failed_event):
        event = failed_event(DispatchError.EXCEPTION, exception=UnAuthorizedException("no"))
        assert is_authorization_error(event)

    def test_other_exception(self, failed_event):
        event = failed_event(DispatchError.EXCEPTION, exception=RuntimeError("db down"))
        assert not is_authorization_error(event)

    def test_router_no_match(self, failed_event):
        assert not is_authorization_error(failed_event(DispatchError.ROUTER_NO_MATCH))


# =============================================================================
# RedirectionStrategy
# =============================================================================


class TestRedirectionStrategy:
    def test_attach_detach(self, bus):
        strategy = RedirectionStrategy()

        strategy.attach(bus, priority=50)
        listeners = bus.listeners(Stage.DISPATCH_ERROR)
        assert len(listeners) == 1
        assert listeners[0].priority == -5000

        strategy.detach(bus)
        assert bus.listeners(Stage.DISPATCH_ERROR) == []

    def test_defaults(self):
        strategy = RedirectionStrategy()

        assert strategy.redirect_route == "login"
        assert strategy.redirect_uri is None

    def test_empty_uri_means_route(self):
        strategy = RedirectionStrategy(redirect_uri="")
        assert strategy.redirect_uri is None

    def test_redirect_to_route(self, failed_event, router):
        event = failed_event()

        RedirectionStrategy().on_dispatch_error(event)

        assert event.http_response.status_code == 302
        assert event.http_response.headers["Location"] == ["/login"]
        assert router.assembled == ["login"]

    def test_redirect_to_named_route(self, failed_event, router):
        router.routes["signin"] = "/auth/signin"
        event = failed_event(DispatchError.ROUTE)

        RedirectionStrategy(redirect_route="signin").on_dispatch_error(event)

        assert event.http_response.get_header("Location") == "/auth/signin"

    def test_redirect_to_uri(self, failed_event, router):
        event = failed_event()

        RedirectionStrategy(redirect_uri="http://www.example.org/").on_dispatch_error(event)

        assert event.http_response.status_code == 302
        assert event.http_response.get_header("Location") == "http://www.example.org/"
        assert router.assembled == []

    def test_creates_response_when_missing(self, failed_event):
        event = failed_event()
        event.response = None

        RedirectionStrategy().on_dispatch_error(event)

        assert isinstance(event.response, HttpResponse)
        assert event.response.status_code == 302

    def test_unauthorized_exception(self, failed_event):
        event = failed_event(DispatchError.EXCEPTION, exception=UnAuthorizedException("no"))

        RedirectionStrategy().on_dispatch_error(event)

        assert event.http_response.status_code == 302

    def test_ignores_existing_result(self, failed_event):
        event = failed_event()
        event.result = HttpResponse(status_code=200)

        RedirectionStrategy().on_dispatch_error(event)

        assert event.http_response.status_code == 200
        assert event.http_response.headers == {}

    def test_ignores_non_http_response(self, failed_event):
        event = failed_event()
        event.response = OtherResponse()

        RedirectionStrategy().on_dispatch_error(event)

        assert isinstance(event.response, OtherResponse)

    def test_ignores_missing_route_match(self, failed_event):
        event = failed_event()
        event.route_match = None

        RedirectionStrategy().on_dispatch_error(event)

        assert event.http_response.status_code == 200

    def test_ignores_unrelated_exception(self, failed_event):
        event = failed_event(DispatchError.EXCEPTION, exception=RuntimeError("db down"))

        RedirectionStrategy().on_dispatch_error(event)

        assert event.http_response.status_code == 200
        assert event.http_response.get_header("Location") is None

    def test_route_without_router(self, failed_event):
        event = failed_event()
        event.router = None

        with pytest.raises(ConfigurationError):
            RedirectionStrategy().on_dispatch_error(event)


# =============================================================================
# UnauthorizedStrategy
# =============================================================================


class TestUnauthorizedStrategy:
    @pytest.fixture
    def strategy(self):
        return UnauthorizedStrategy(template="error/403")

    def test_template_is_required(self):
        with pytest.raises(ConfigurationError):
            UnauthorizedStrategy(template="")

    def test_template_can_change(self, strategy):
        strategy.template = "errors/forbidden"
        assert strategy.template == "errors/forbidden"

    def test_controller_error(self, strategy, failed_event):
        event = failed_event(
            DispatchError.CONTROLLER,
            identity="bob",
            controller="users",
            action="edit",
        )

        strategy.on_dispatch_error(event)

        assert event.http_response.status_code == 403
        child = event.view_model.children[-1]
        assert child.template == "error/403"
        assert child.variables == {
            "error": "error-unauthorized-controller",
            "identity": "bob",
            "controller": "users",
            "action": "edit",
        }

    def test_route_error(self, strategy, failed_event):
        event = failed_event(DispatchError.ROUTE, identity=None, route="admin")

        strategy.on_dispatch_error(event)

        assert event.view_model.children[-1].variables == {
            "error": "error-unauthorized-route",
            "identity": None,
            "route": "admin",
        }

    def test_unauthorized_exception(self, strategy, failed_event):
        event = failed_event(
            DispatchError.EXCEPTION,
            exception=UnAuthorizedException("Only the author may publish"),
        )

        strategy.on_dispatch_error(event)

        assert event.http_response.status_code == 403
        variables = event.view_model.children[-1].variables
        assert variables["error"] == "error-unauthorized"
        assert variables["reason"] == "Only the author may publish"

    def test_keeps_existing_children(self, strategy, failed_event):
        event = failed_event()
        event.view_model.add_child(ViewModel(template="layout/nav"))

        strategy.on_dispatch_error(event)

        assert [c.template for c in event.view_model.children] == ["layout/nav", "error/403"]

    def test_ignores_response_result(self, strategy, failed_event):
        event = failed_event()
        event.result = HttpResponse()

        strategy.on_dispatch_error(event)

        assert event.view_model.children == []
        assert event.http_response.status_code == 200

    def test_ignores_non_http_response(self, strategy, failed_event):
        event = failed_event()
        event.response = OtherResponse()

        strategy.on_dispatch_error(event)

        assert event.view_model.children == []

    def test_ignores_unrelated_exception(self, strategy, failed_event):
        event = failed_event(DispatchError.EXCEPTION, exception=RuntimeError("db down"))

        strategy.on_dispatch_error(event)

        assert event.view_model.children == []
        assert event.http_response.status_code == 200

    def test_ignores_router_no_match(self, strategy, failed_event):
        event = failed_event(DispatchError.ROUTER_NO_MATCH)

        strategy.on_dispatch_error(event)

        assert event.view_model.children == []

    @pytest.mark.asyncio
    async def test_runs_after_other_error_listeners(self, strategy, bus, failed_event):
        def custom_page(event):
            event.result = HttpResponse(status_code=401)

        strategy.attach(bus)
        bus.attach(Stage.DISPATCH_ERROR, custom_page)
        event = failed_event()

        await bus.trigger(event, Stage.DISPATCH_ERROR)

        assert event.view_model.children == []
        assert event.http_response.status_code == 200
