"""
Exceptions raised by gatekeeper.

Configuration problems surface while guards are being built. Authorization
failures are not raised out of the guards; they travel on the dispatch
event as an `UnAuthorizedException` parameter.
"""

from __future__ import annotations


class GatekeeperError(Exception):
    """Base class for gatekeeper errors."""
    pass


class ConfigurationError(GatekeeperError):
    """Raised when guard rules or strategy settings are malformed."""
    pass


class UnAuthorizedException(GatekeeperError):
    """
    The current identity may not access the requested resource.

    Guards attach an instance to the dispatch event under the `exception`
    parameter. Application code may also raise it from an endpoint; the
    HTTP adapter then routes it through the error stage.
    """
    pass
