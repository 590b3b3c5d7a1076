"""
Declarative, rule-based authorization guards for a dispatch pipeline.

Guards compile compact rule specs into allow rules, check every routed
request against an authorization service, and hand denials to a failure
strategy that redirects to a login page or renders a 403 page.

The FastAPI adapter lives in `gatekeeper.api` and is imported on demand.
"""

from gatekeeper.acl import (
    AuthorizeService,
    ContextIdentityProvider,
    Identity,
    StaticIdentityProvider,
)
from gatekeeper.config_loader import ConfigLoader, GatekeeperConfig, load_config
from gatekeeper.core import DispatchError, DispatchEvent, EventBus, Stage
from gatekeeper.exceptions import ConfigurationError, GatekeeperError, UnAuthorizedException
from gatekeeper.guards import ControllerGuard, RouteGuard, RuleSpec
from gatekeeper.view import RedirectionStrategy, UnauthorizedStrategy

__version__ = "0.1.0"

__all__ = [
    # Guards
    "ControllerGuard",
    "RouteGuard",
    "RuleSpec",
    # Strategies
    "RedirectionStrategy",
    "UnauthorizedStrategy",
    # Authorization
    "AuthorizeService",
    "ContextIdentityProvider",
    "Identity",
    "StaticIdentityProvider",
    # Pipeline
    "DispatchError",
    "DispatchEvent",
    "EventBus",
    "Stage",
    # Config
    "ConfigLoader",
    "GatekeeperConfig",
    "load_config",
    # Errors
    "ConfigurationError",
    "GatekeeperError",
    "UnAuthorizedException",
]
