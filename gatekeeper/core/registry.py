"""
Registry for guards and failure strategies.

Configuration refers to listeners by id ("controller", "route",
"redirect", "unauthorized"); the registry maps those ids to the classes
that build them. Applications can register their own guards the same way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from gatekeeper.guards.base import AbstractGuard
    from gatekeeper.view.base import DispatchErrorStrategy


class RegistryError(Exception):
    """Raised when there's an error with the registry."""
    pass


GuardFactory = Callable[..., "AbstractGuard"]
StrategyFactory = Callable[..., "DispatchErrorStrategy"]


class Registry:
    """Central registry of listener factories, keyed by id."""

    def __init__(self):
        self._guards: dict[str, GuardFactory] = {}
        self._strategies: dict[str, StrategyFactory] = {}

    # =========================================================================
    # Guards
    # =========================================================================

    def register_guard(self, guard_id: str, factory: GuardFactory) -> None:
        """Register a guard factory by id."""
        if guard_id in self._guards:
            raise RegistryError(f"Guard '{guard_id}' is already registered")
        self._guards[guard_id] = factory

    def get_guard(self, guard_id: str) -> GuardFactory:
        """Get a guard factory by id."""
        if guard_id not in self._guards:
            raise RegistryError(f"Guard '{guard_id}' not found")
        return self._guards[guard_id]

    def list_guards(self) -> list[str]:
        return list(self._guards.keys())

    # =========================================================================
    # Strategies
    # =========================================================================

    def register_strategy(self, strategy_id: str, factory: StrategyFactory) -> None:
        """Register a failure strategy factory by id."""
        if strategy_id in self._strategies:
            raise RegistryError(f"Strategy '{strategy_id}' is already registered")
        self._strategies[strategy_id] = factory

    def get_strategy(self, strategy_id: str) -> StrategyFactory:
        """Get a failure strategy factory by id."""
        if strategy_id not in self._strategies:
            raise RegistryError(f"Strategy '{strategy_id}' not found")
        return self._strategies[strategy_id]

    def list_strategies(self) -> list[str]:
        return list(self._strategies.keys())


def register_builtins(registry: Registry) -> Registry:
    """Register the guards and strategies gatekeeper ships with."""
    from gatekeeper.guards.controller import ControllerGuard
    from gatekeeper.guards.route import RouteGuard
    from gatekeeper.view.redirection import RedirectionStrategy
    from gatekeeper.view.unauthorized import UnauthorizedStrategy

    registry.register_guard(ControllerGuard.guard_id, ControllerGuard)
    registry.register_guard(RouteGuard.guard_id, RouteGuard)
    registry.register_strategy(RedirectionStrategy.strategy_id, RedirectionStrategy)
    registry.register_strategy(UnauthorizedStrategy.strategy_id, UnauthorizedStrategy)
    return registry


# Singleton registry for the application
_default_registry: Registry | None = None


def get_registry() -> Registry:
    """Get the default registry instance (built-ins already registered)."""
    global _default_registry
    if _default_registry is None:
        _default_registry = register_builtins(Registry())
    return _default_registry


def reset_registry() -> None:
    """Reset the default registry (useful for testing)."""
    global _default_registry
    _default_registry = None
