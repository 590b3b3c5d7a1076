"""
Dispatch guards - compile rules, check routed requests.
"""

from gatekeeper.guards.base import AbstractGuard, AllowRule, RuleSpec
from gatekeeper.guards.controller import ControllerGuard
from gatekeeper.guards.resources import controller_resource_name, route_resource_name
from gatekeeper.guards.route import RouteGuard

__all__ = [
    "AbstractGuard",
    "AllowRule",
    "RuleSpec",
    "ControllerGuard",
    "RouteGuard",
    "controller_resource_name",
    "route_resource_name",
]
