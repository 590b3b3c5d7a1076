"""
Authorization service - the oracle guards consult.

Guards only rely on the `Authorize` protocol: `is_allowed(resource)` and
`get_identity()`. `AuthorizeService` is a small in-memory implementation
fed from the guards' compiled rules plus any extra allow/deny rules. Roles
are flat; there is no role inheritance.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence

from gatekeeper.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "guest"


# =============================================================================
# Identity
# =============================================================================


@dataclass(frozen=True)
class Identity:
    """An authenticated identity and the roles it holds."""

    subject: str
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def __str__(self) -> str:
        return self.subject


class IdentityProvider(Protocol):
    """Where the oracle learns who is asking."""

    def get_identity(self) -> Identity | None:
        ...

    def get_identity_roles(self) -> list[str]:
        ...


class StaticIdentityProvider:
    """Always reports the same identity (CLI tools, tests)."""

    def __init__(self, identity: Identity | None = None, default_role: str = DEFAULT_ROLE):
        self.identity = identity
        self.default_role = default_role

    def get_identity(self) -> Identity | None:
        return self.identity

    def get_identity_roles(self) -> list[str]:
        if self.identity is None or not self.identity.roles:
            return [self.default_role]
        return sorted(self.identity.roles)


_current_identity: ContextVar[Identity | None] = ContextVar("gatekeeper_identity", default=None)


class ContextIdentityProvider:
    """
    Reports the identity bound to the current request context.

    The HTTP adapter calls `set_identity()` when a request starts and
    `reset()` when it ends, so concurrent requests never see each other.
    """

    def __init__(self, default_role: str = DEFAULT_ROLE):
        self.default_role = default_role

    def set_identity(self, identity: Identity | None) -> Token:
        return _current_identity.set(identity)

    def reset(self, token: Token) -> None:
        _current_identity.reset(token)

    def get_identity(self) -> Identity | None:
        return _current_identity.get()

    def get_identity_roles(self) -> list[str]:
        identity = _current_identity.get()
        if identity is None or not identity.roles:
            return [self.default_role]
        return sorted(identity.roles)


# =============================================================================
# Oracle
# =============================================================================


class Authorize(Protocol):
    """The contract guards consume."""

    def is_allowed(self, resource: str, privilege: str | None = None) -> bool:
        ...

    def get_identity(self) -> Any:
        ...


class ResourceProvider(Protocol):
    def get_resources(self) -> list[str]:
        ...


class RuleProvider(Protocol):
    def get_rules(self) -> Mapping[str, Sequence[Sequence[Any]]]:
        ...


# assertion(identity, resource, privilege) -> bool
Assertion = Callable[[Any, str, "str | None"], bool]


@dataclass(frozen=True)
class _Rule:
    roles: frozenset[str]
    resource: str
    privilege: str | None = None
    assertion: Assertion | None = None

    def applies(self, role: str, resource: str, privilege: str | None, identity: Any) -> bool:
        if role not in self.roles or resource != self.resource:
            return False
        if self.privilege is not None and self.privilege != privilege:
            return False
        if self.assertion is not None:
            return bool(self.assertion(identity, resource, privilege))
        return True


class AuthorizeService:
    """
    In-memory authorization oracle.

    A role is allowed a resource when an allow rule for it applies and no
    deny rule for that same role does. The identity is allowed when any of
    its roles is. Unknown resources are denied, never raised.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        resource_providers: Iterable[ResourceProvider] = (),
        rule_providers: Iterable[RuleProvider] = (),
        assertions: Mapping[str, Assertion] | None = None,
    ):
        self.identity_provider = identity_provider
        self._assertions: dict[str, Assertion] = dict(assertions or {})
        self._resources: set[str] = set()
        self._allow: list[_Rule] = []
        self._deny: list[_Rule] = []

        for provider in resource_providers:
            for resource in provider.get_resources():
                self.add_resource(resource)

        for provider in rule_providers:
            self.load_rules(provider.get_rules())

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def add_resource(self, resource: str) -> None:
        self._resources.add(resource)

    def load_rules(self, rules: Mapping[str, Sequence[Sequence[Any]]]) -> None:
        """Load rules in positional form: `{"allow": [[roles, resource, ...]], "deny": [...]}`."""
        for kind in ("allow", "deny"):
            for rule in rules.get(kind, []):
                self._add_rule(kind, *rule)

    def allow(
        self,
        roles: str | Iterable[str],
        resource: str,
        privilege: str | None = None,
        assertion: str | None = None,
    ) -> None:
        self._add_rule("allow", roles, resource, privilege, assertion)

    def deny(
        self,
        roles: str | Iterable[str],
        resource: str,
        privilege: str | None = None,
        assertion: str | None = None,
    ) -> None:
        self._add_rule("deny", roles, resource, privilege, assertion)

    def _add_rule(
        self,
        kind: str,
        roles: str | Iterable[str],
        resource: str,
        privilege: str | None = None,
        assertion: str | None = None,
    ) -> None:
        if isinstance(roles, str):
            roles = [roles]

        callback = None
        if assertion is not None:
            if assertion not in self._assertions:
                raise ConfigurationError(f"Unknown assertion '{assertion}' on {resource}")
            callback = self._assertions[assertion]

        self.add_resource(resource)
        rule = _Rule(
            roles=frozenset(roles),
            resource=resource,
            privilege=privilege,
            assertion=callback,
        )
        (self._allow if kind == "allow" else self._deny).append(rule)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def resources(self) -> set[str]:
        return set(self._resources)

    def get_identity(self) -> Identity | None:
        return self.identity_provider.get_identity()

    def is_allowed(self, resource: str, privilege: str | None = None) -> bool:
        if resource not in self._resources:
            logger.debug(f"Unknown resource {resource} - denying")
            return False

        identity = self.get_identity()
        for role in self.identity_provider.get_identity_roles():
            if any(r.applies(role, resource, privilege, identity) for r in self._deny):
                continue
            if any(r.applies(role, resource, privilege, identity) for r in self._allow):
                return True

        return False
