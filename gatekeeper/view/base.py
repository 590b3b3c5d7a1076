"""
Shared plumbing for the dispatch-error strategies.

A strategy listens on the error stage, after every other error listener,
and turns an authorization failure into a final response. It leaves the
event alone when another listener already produced an outcome, and when
the error has nothing to do with authorization.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from gatekeeper.core.events import DispatchError, DispatchEvent, EventBus, Stage, Subscription
from gatekeeper.exceptions import UnAuthorizedException


def is_authorization_error(event: DispatchEvent) -> bool:
    """
    Whether the event carries an error a strategy should resolve.

    Guard denials always qualify; an application exception only does when
    it is an `UnAuthorizedException`.
    """
    error = event.error
    if error in (DispatchError.CONTROLLER.value, DispatchError.ROUTE.value):
        return True
    if error == DispatchError.EXCEPTION.value:
        return isinstance(event.get_param("exception"), UnAuthorizedException)
    return False


class DispatchErrorStrategy(ABC):
    """Base class for listeners that resolve authorization failures."""

    strategy_id: str = ""

    PRIORITY = -5000

    def __init__(self):
        self._listeners: list[Subscription] = []

    def attach(self, bus: EventBus, priority: int = 1) -> None:
        """
        Listen on the error stage.

        `priority` is accepted for interface symmetry with the guards; the
        strategy always runs at `PRIORITY` so it sees the final error state.
        """
        self._listeners.append(
            bus.attach(Stage.DISPATCH_ERROR, self.on_dispatch_error, self.PRIORITY)
        )

    def detach(self, bus: EventBus) -> None:
        """Remove the subscriptions this strategy registered on `bus`."""
        for subscription in list(self._listeners):
            if bus.detach(subscription):
                self._listeners.remove(subscription)

    @abstractmethod
    def on_dispatch_error(self, event: DispatchEvent) -> None:
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
