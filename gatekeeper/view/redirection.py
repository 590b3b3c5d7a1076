"""
Redirection strategy - sends unauthorized user agents to a login page.
"""

from __future__ import annotations

import logging

from gatekeeper.core.events import DispatchEvent
from gatekeeper.core.http import HttpResponse
from gatekeeper.exceptions import ConfigurationError
from gatekeeper.view.base import DispatchErrorStrategy, is_authorization_error

logger = logging.getLogger(__name__)


class RedirectionStrategy(DispatchErrorStrategy):
    """
    Answers authorization failures with `302 Found`.

    The target is `redirect_uri` when set, otherwise the URL the router
    assembles for `redirect_route`.
    """

    strategy_id = "redirect"

    def __init__(self, redirect_route: str = "login", redirect_uri: str | None = None):
        super().__init__()
        self.redirect_route = redirect_route
        self.redirect_uri = redirect_uri

    @property
    def redirect_route(self) -> str:
        return self._redirect_route

    @redirect_route.setter
    def redirect_route(self, value: str) -> None:
        self._redirect_route = str(value)

    @property
    def redirect_uri(self) -> str | None:
        return self._redirect_uri

    @redirect_uri.setter
    def redirect_uri(self, value: str | None) -> None:
        self._redirect_uri = str(value) if value else None

    def on_dispatch_error(self, event: DispatchEvent) -> None:
        response = event.response

        # Someone else already decided the outcome
        if isinstance(event.result, HttpResponse):
            return
        if response is not None and not isinstance(response, HttpResponse):
            return
        if event.route_match is None or not is_authorization_error(event):
            return

        url = self.redirect_uri
        if url is None:
            if event.router is None:
                raise ConfigurationError(
                    f"Cannot assemble route '{self.redirect_route}' without a router"
                )
            url = event.router.assemble({}, {"name": self.redirect_route})

        response = response or HttpResponse()
        response.add_header_line("Location", url)
        response.status_code = 302
        event.response = response

        logger.info(f"Redirecting request {event.id} ({event.error}) to {url}")
