"""
Request, response and view value types carried by a dispatch event.

These are deliberately small: the host framework (FastAPI in
`gatekeeper.api.app`) translates its own objects into these at the edge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


# =============================================================================
# Requests
# =============================================================================


class Request:
    """Base request type. Only `HttpRequest` is governed by the guards."""
    pass


@dataclass
class HttpRequest(Request):
    """An HTTP request as seen by the pipeline."""

    method: str = "GET"
    path: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)


@dataclass
class ConsoleRequest(Request):
    """A command-line invocation routed through the same pipeline."""

    argv: list[str] = field(default_factory=list)


# =============================================================================
# Responses
# =============================================================================


class Response:
    """Base response type (anything a handler may leave as the outcome)."""
    pass


@dataclass
class HttpResponse(Response):
    """An HTTP response under construction."""

    status_code: int = 200
    headers: dict[str, list[str]] = field(default_factory=dict)
    content: Any = None

    def add_header_line(self, name: str, value: str) -> None:
        """Append a header value, keeping earlier values for the same name."""
        self.headers.setdefault(name, []).append(value)

    def get_header(self, name: str) -> str | None:
        """First value of a header, if set."""
        values = self.headers.get(name)
        return values[0] if values else None


# =============================================================================
# Routing and views
# =============================================================================


@dataclass
class RouteMatch:
    """Result of resolving a request against the router."""

    matched_route_name: str | None = None
    params: dict[str, Any] = field(default_factory=dict)

    def get_param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)


@dataclass
class ViewModel:
    """A template name plus the variables it is rendered with."""

    variables: dict[str, Any] = field(default_factory=dict)
    template: str | None = None
    children: list[ViewModel] = field(default_factory=list)

    def add_child(self, child: ViewModel) -> None:
        self.children.append(child)


class Router(Protocol):
    """The part of the host router the redirect strategy needs."""

    def assemble(self, params: dict[str, Any], options: dict[str, Any]) -> str:
        """Build the URL of the route named by `options["name"]`."""
        ...
