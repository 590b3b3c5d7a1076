from gatekeeper.view.base import DispatchErrorStrategy, is_authorization_error
from gatekeeper.view.redirection import RedirectionStrategy
from gatekeeper.view.unauthorized import UnauthorizedStrategy

__all__ = [
    "DispatchErrorStrategy",
    "is_authorization_error",
    "RedirectionStrategy",
    "UnauthorizedStrategy",
]
