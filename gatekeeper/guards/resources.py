"""
Canonical resource names.

Both the rule compiler and the dispatch guards build names through these
functions, so a rule and a request naming the same target always agree.
"""

from __future__ import annotations

CONTROLLER_PREFIX = "controller/"
ROUTE_PREFIX = "route/"


def controller_resource_name(controller: str, action: str | None = None) -> str:
    """
    Resource name for a controller, optionally narrowed to an action.

    The action (or HTTP method) segment is lower-cased; the controller
    keeps its configured case.

        controller_resource_name("Users")          -> "controller/Users"
        controller_resource_name("Users", "GET")   -> "controller/Users:get"
    """
    if action is not None:
        return f"{CONTROLLER_PREFIX}{controller}:{action.lower()}"
    return f"{CONTROLLER_PREFIX}{controller}"


def route_resource_name(route: str) -> str:
    """Resource name for a named route."""
    return f"{ROUTE_PREFIX}{route}"
