"""
Guard base - rule compilation and pipeline wiring shared by all guards.

A guard is built from a list of rule specs such as:

    {"controller": ["users", "groups"], "action": ["edit", "delete"], "roles": "admin"}

and expands them into primitive allow rules, one per (controller, action)
pair. The same guard is then attached to the dispatch pipeline, where it
asks the authorization service whether the current request is permitted.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from gatekeeper.core.events import (
    DispatchError,
    DispatchEvent,
    EventBus,
    GuardOutcome,
    Stage,
    Subscription,
)
from gatekeeper.core.http import HttpRequest
from gatekeeper.exceptions import ConfigurationError, UnAuthorizedException

if TYPE_CHECKING:
    from gatekeeper.acl.authorize import Authorize

logger = logging.getLogger(__name__)


# =============================================================================
# Rule specs and allow rules
# =============================================================================


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return [value]
    return list(value)


class RuleSpec(BaseModel):
    """
    One configured rule, before expansion.

    Every target field accepts a single string or a list. Singular and
    plural keys are both accepted (`controller` / `controllers`).
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    controllers: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("controller", "controllers"),
    )
    # `None` stands for "no action": the rule covers the whole controller
    actions: list[str | None] = Field(
        default_factory=lambda: [None],
        validation_alias=AliasChoices("action", "actions"),
    )
    routes: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("route", "routes"),
    )
    roles: list[str] = Field(validation_alias=AliasChoices("roles", "role"))
    assertion: str | None = None

    @field_validator("controllers", "routes", mode="before")
    @classmethod
    def _targets_as_list(cls, value: Any) -> list[Any]:
        return _as_list(value)

    @field_validator("actions", mode="before")
    @classmethod
    def _actions_as_list(cls, value: Any) -> list[Any]:
        # An explicit empty list names no actions, so the rule grants nothing
        if value is None:
            return [None]
        return _as_list(value)

    @field_validator("roles", mode="before")
    @classmethod
    def _roles_as_list(cls, value: Any) -> list[Any]:
        roles = _as_list(value)
        if not roles:
            raise ValueError("at least one role is required")
        return roles


@dataclass(frozen=True)
class AllowRule:
    """A primitive grant of a role set to a resource."""

    roles: tuple[str, ...]
    resource: str
    privilege: None = None
    assertion: str | None = None

    def to_list(self) -> list[Any]:
        """
        The positional form ACL backends take.

        `[roles, resource]`, or `[roles, resource, None, assertion]` when an
        assertion is set - the assertion slot is left out entirely otherwise.
        """
        rule: list[Any] = [list(self.roles), self.resource]
        if self.assertion is not None:
            rule.extend([self.privilege, self.assertion])
        return rule


# =============================================================================
# AbstractGuard
# =============================================================================


class AbstractGuard(ABC):
    """
    Base class for dispatch guards.

    Subclasses say which rule field names their targets, how a spec
    expands into resource names, and how a routed request is checked.
    """

    guard_id: str = ""
    error: DispatchError
    target_field: str = ""

    DEFAULT_PRIORITY = -1000

    def __init__(
        self,
        rules: Iterable[Mapping[str, Any] | RuleSpec] = (),
        authorize: Authorize | None = None,
    ):
        self.authorize = authorize
        self._listeners: list[Subscription] = []
        self._resources: dict[str, None] = {}
        self._allow_rules: list[AllowRule] = []

        for index, raw in enumerate(rules):
            spec = self._parse_rule(raw, index)
            for resource in self.extract_resources(spec):
                self._resources.setdefault(resource, None)
                self._allow_rules.append(
                    AllowRule(
                        roles=tuple(spec.roles),
                        resource=resource,
                        assertion=spec.assertion,
                    )
                )

    def _parse_rule(self, raw: Mapping[str, Any] | RuleSpec, index: int) -> RuleSpec:
        if isinstance(raw, RuleSpec):
            spec = raw
        else:
            try:
                spec = RuleSpec.model_validate(dict(raw))
            except (TypeError, ValueError, ValidationError) as e:
                raise ConfigurationError(
                    f"Invalid {self.guard_id} guard rule #{index}: {e}"
                ) from e

        if not getattr(spec, self.target_field):
            raise ConfigurationError(
                f"Invalid {self.guard_id} guard rule #{index}: "
                f"'{self.target_field}' is required"
            )
        return spec

    @abstractmethod
    def extract_resources(self, spec: RuleSpec) -> list[str]:
        """Resource names covered by one rule spec, in traversal order."""
        pass

    @abstractmethod
    async def on_route(self, event: DispatchEvent) -> None:
        """Check a routed request; trigger the error stage on denial."""
        pass

    # -------------------------------------------------------------------------
    # Compiled output
    # -------------------------------------------------------------------------

    def get_resources(self) -> list[str]:
        """Distinct resource names, in first-seen order."""
        return list(self._resources)

    @property
    def allow_rules(self) -> list[AllowRule]:
        return list(self._allow_rules)

    def get_rules(self) -> dict[str, list[list[Any]]]:
        """Allow rules in positional form, keyed like an ACL rule config."""
        return {"allow": [rule.to_list() for rule in self._allow_rules]}

    # -------------------------------------------------------------------------
    # Pipeline wiring
    # -------------------------------------------------------------------------

    def attach(self, bus: EventBus, priority: int = DEFAULT_PRIORITY) -> None:
        """Listen on the route stage, after the regular route listeners."""
        self._listeners.append(bus.attach(Stage.ROUTE, self.on_route, priority))

    def detach(self, bus: EventBus) -> None:
        """Remove the subscriptions this guard registered on `bus`."""
        for subscription in list(self._listeners):
            if bus.detach(subscription):
                self._listeners.remove(subscription)

    # -------------------------------------------------------------------------
    # Helpers for subclasses
    # -------------------------------------------------------------------------

    def _service(self) -> Authorize:
        if self.authorize is None:
            raise ConfigurationError(
                f"The {self.guard_id} guard has no authorization service"
            )
        return self.authorize

    def _should_check(self, event: DispatchEvent) -> bool:
        """Only routed HTTP requests that have not already failed, once each."""
        if not isinstance(event.request, HttpRequest):
            return False
        if event.route_match is None or event.is_error:
            return False
        return event.outcome(self.guard_id) is GuardOutcome.UNCHECKED

    async def deny(
        self,
        event: DispatchEvent,
        params: Mapping[str, Any],
        resource: str,
    ) -> None:
        """
        Record a denial on the event and run the error stage once.

        The guard never raises the denial; failure strategies listening on
        the error stage turn it into a response.
        """
        if event.bus is None:
            raise ConfigurationError(f"Request {event.id} is not bound to an event bus")

        event.transition(self.guard_id, GuardOutcome.DENIED)

        event.error = self.error
        for name, value in params.items():
            event.set_param(name, value)
        event.set_param(
            "exception",
            UnAuthorizedException(f"You are not authorized to access {resource}"),
        )

        logger.info(
            f"Denied {resource} for identity {params.get('identity')!r} "
            f"(request {event.id})"
        )

        event.transition(self.guard_id, GuardOutcome.ERROR_TRIGGERED)
        await event.bus.trigger(event, Stage.DISPATCH_ERROR)

    def allow(self, event: DispatchEvent, resource: str) -> None:
        event.transition(self.guard_id, GuardOutcome.ALLOWED)
        logger.debug(f"Allowed {resource} (request {event.id})")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(rules={len(self._allow_rules)})>"
