"""
Unauthorized strategy - renders a 403 page for authorization failures.
"""

from __future__ import annotations

import logging
from typing import Any

from gatekeeper.core.events import DispatchError, DispatchEvent
from gatekeeper.core.http import HttpResponse, Response, ViewModel
from gatekeeper.exceptions import ConfigurationError, UnAuthorizedException
from gatekeeper.view.base import DispatchErrorStrategy

logger = logging.getLogger(__name__)


class UnauthorizedStrategy(DispatchErrorStrategy):
    """
    Answers authorization failures with `403 Forbidden`.

    A child view model using `template` is added to the event's view model.
    Its variables are the error kind and identity, plus:

    - controller errors: `controller`, `action`
    - route errors: `route`
    - unauthorized exceptions: `reason`, with `error` set to
      `error-unauthorized`
    """

    strategy_id = "unauthorized"

    def __init__(self, template: str):
        super().__init__()
        self.template = template

    @property
    def template(self) -> str:
        return self._template

    @template.setter
    def template(self, value: str) -> None:
        if not value:
            raise ConfigurationError("The unauthorized strategy needs a template")
        self._template = str(value)

    def on_dispatch_error(self, event: DispatchEvent) -> None:
        response = event.response

        # Do nothing if the result is a response object
        if isinstance(event.result, Response):
            return
        if response is not None and not isinstance(response, HttpResponse):
            return

        variables = self._view_variables(event)
        if variables is None:
            return

        model = ViewModel(variables=variables, template=self.template)
        response = response or HttpResponse()

        event.view_model.add_child(model)
        response.status_code = 403
        event.response = response

        logger.info(f"Rendering {self.template} (403) for request {event.id} ({event.error})")

    def _view_variables(self, event: DispatchEvent) -> dict[str, Any] | None:
        variables: dict[str, Any] = {
            "error": event.get_param("error"),
            "identity": event.get_param("identity"),
        }

        error = event.error
        if error == DispatchError.CONTROLLER.value:
            variables["controller"] = event.get_param("controller")
            variables["action"] = event.get_param("action")
        elif error == DispatchError.ROUTE.value:
            variables["route"] = event.get_param("route")
        elif error == DispatchError.EXCEPTION.value:
            exception = event.get_param("exception")
            if not isinstance(exception, UnAuthorizedException):
                return None
            variables["reason"] = str(exception)
            variables["error"] = "error-unauthorized"
        else:
            # Not ours - keep the 403 template away from other errors
            return None

        return variables
