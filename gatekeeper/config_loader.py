"""
Guard configuration loader.

Reads the YAML guard configuration and builds the guards, the failure
strategy and the authorization service from it:

    guards:
      controller:
        - controller: app.api.pages
          roles: [guest, user]
        - controller: app.api.admin
          action: [edit, delete]
          roles: admin
      route:
        - route: [home, login]
          roles: guest

    strategy:
      type: redirect          # or "unauthorized"
      redirect_route: login

    rules:
      deny:
        - [[user], "route/login"]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from gatekeeper.acl.authorize import Assertion, AuthorizeService, IdentityProvider
from gatekeeper.config import Settings, get_settings
from gatekeeper.core.events import EventBus
from gatekeeper.core.registry import Registry, RegistryError, get_registry
from gatekeeper.exceptions import ConfigurationError
from gatekeeper.guards.base import AbstractGuard
from gatekeeper.view.base import DispatchErrorStrategy

logger = logging.getLogger(__name__)


@dataclass
class GatekeeperConfig:
    """Everything built from one configuration document."""

    guards: list[AbstractGuard] = field(default_factory=list)
    strategy: DispatchErrorStrategy | None = None
    # Extra positional rules: {"allow": [...], "deny": [...]}
    rules: dict[str, list[list[Any]]] = field(default_factory=dict)

    @property
    def listeners(self) -> list[AbstractGuard | DispatchErrorStrategy]:
        listeners: list[AbstractGuard | DispatchErrorStrategy] = list(self.guards)
        if self.strategy is not None:
            listeners.append(self.strategy)
        return listeners

    def get_guard(self, guard_id: str) -> AbstractGuard | None:
        for guard in self.guards:
            if guard.guard_id == guard_id:
                return guard
        return None

    def build_authorize(
        self,
        identity_provider: IdentityProvider,
        assertions: Mapping[str, Assertion] | None = None,
    ) -> AuthorizeService:
        """
        Build the authorization service from the guards' rules and bind
        every guard to it.
        """
        service = AuthorizeService(
            identity_provider,
            resource_providers=self.guards,
            rule_providers=self.guards,
            assertions=assertions,
        )
        service.load_rules(self.rules)

        for guard in self.guards:
            guard.authorize = service

        return service

    def attach_all(self, bus: EventBus) -> None:
        for listener in self.listeners:
            listener.attach(bus)

    def detach_all(self, bus: EventBus) -> None:
        for listener in self.listeners:
            listener.detach(bus)


class ConfigLoader:
    """
    Loads the guard configuration file and builds listeners from it.

    Strategy options missing from the file fall back to `Settings`.
    """

    def __init__(
        self,
        path: Path | str | None = None,
        settings: Settings | None = None,
        registry: Registry | None = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or get_registry()
        self.path = Path(path if path is not None else self.settings.guards_config)

    def load(self) -> GatekeeperConfig:
        """Read and build the configuration file."""
        if not self.path.exists():
            raise ConfigurationError(f"Guard configuration not found: {self.path}")

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.path}: {e}") from e

        config = self.from_dict(data or {})
        logger.info(
            f"Loaded {len(config.guards)} guards from {self.path} "
            f"(strategy: {config.strategy!r})"
        )
        return config

    def from_dict(self, data: Mapping[str, Any]) -> GatekeeperConfig:
        """Build a configuration from an already-parsed document."""
        if not isinstance(data, Mapping):
            raise ConfigurationError("Guard configuration must be a mapping")

        return GatekeeperConfig(
            guards=self.build_guards(data.get("guards") or {}),
            strategy=self.build_strategy(data.get("strategy")),
            rules=self._parse_rules(data.get("rules") or {}),
        )

    def build_guards(self, section: Mapping[str, Any]) -> list[AbstractGuard]:
        if not isinstance(section, Mapping):
            raise ConfigurationError("'guards' must map guard ids to rule lists")

        guards = []
        for guard_id, rules in section.items():
            try:
                factory = self.registry.get_guard(guard_id)
            except RegistryError as e:
                raise ConfigurationError(str(e)) from e

            if not isinstance(rules, list):
                raise ConfigurationError(f"Rules for guard '{guard_id}' must be a list")
            guards.append(factory(rules))

        return guards

    def build_strategy(self, section: Any) -> DispatchErrorStrategy | None:
        """
        Build the failure strategy.

        `section` may be a mapping with a `type` key, a bare strategy id,
        `False` to disable strategies, or missing to use the settings.
        """
        if section is False:
            return None
        if section is None:
            section = {}
        if isinstance(section, str):
            section = {"type": section}
        if not isinstance(section, Mapping):
            raise ConfigurationError("'strategy' must be a mapping or a strategy id")

        options = dict(section)
        strategy_id = options.pop("type", None) or self.settings.unauthorized_strategy

        defaults: dict[str, dict[str, Any]] = {
            "unauthorized": {"template": self.settings.template},
            "redirect": {
                "redirect_route": self.settings.redirect_route,
                "redirect_uri": self.settings.redirect_uri,
            },
        }
        options = {**defaults.get(strategy_id, {}), **options}

        try:
            factory = self.registry.get_strategy(strategy_id)
        except RegistryError as e:
            raise ConfigurationError(str(e)) from e

        try:
            return factory(**options)
        except TypeError as e:
            raise ConfigurationError(f"Invalid options for strategy '{strategy_id}': {e}") from e

    def _parse_rules(self, section: Any) -> dict[str, list[list[Any]]]:
        if not isinstance(section, Mapping):
            raise ConfigurationError("'rules' must map 'allow'/'deny' to rule lists")

        rules: dict[str, list[list[Any]]] = {}
        for kind, entries in section.items():
            if kind not in ("allow", "deny"):
                raise ConfigurationError(f"Unknown rule kind '{kind}'")
            if not isinstance(entries, list) or not all(
                isinstance(entry, list) and 2 <= len(entry) <= 4 for entry in entries
            ):
                raise ConfigurationError(
                    f"'{kind}' rules must be lists of [roles, resource, privilege?, assertion?]"
                )
            rules[kind] = entries

        return rules


def load_config(
    path: Path | str | None = None,
    settings: Settings | None = None,
) -> GatekeeperConfig:
    """Convenience function to load the guard configuration."""
    loader = ConfigLoader(path, settings=settings)
    return loader.load()
