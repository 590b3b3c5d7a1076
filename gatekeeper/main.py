"""
Gatekeeper - demo entry point.

Loads the bundled guard configuration, pushes a few requests through the
dispatch pipeline as different identities, and prints what happened.

    python -m gatekeeper.main
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from gatekeeper.acl.authorize import Identity, StaticIdentityProvider
from gatekeeper.config import get_settings
from gatekeeper.config_loader import load_config
from gatekeeper.core.events import DispatchEvent, EventBus, Stage
from gatekeeper.core.http import HttpRequest, RouteMatch

DEMO_CONFIG = Path(__file__).parent.parent / "config" / "gatekeeper.yaml"

DEMO_ROUTES = {
    "home": "/",
    "login": "/login",
}


class DemoRouter:
    def assemble(self, params: dict[str, Any], options: dict[str, Any]) -> str:
        return DEMO_ROUTES[options["name"]]


def owns_article(identity: Identity | None, resource: str, privilege: str | None) -> bool:
    return identity is not None and identity.subject == "ada"


async def dispatch(
    bus: EventBus,
    route: str,
    controller: str,
    action: str | None,
    method: str = "GET",
) -> DispatchEvent:
    event = DispatchEvent(
        request=HttpRequest(method=method),
        route_match=RouteMatch(
            matched_route_name=route,
            params={"controller": controller, "action": action},
        ),
        router=DemoRouter(),
        bus=bus,
    )
    await bus.trigger(event, Stage.ROUTE)
    return event


async def demo():
    print("=" * 60)
    print("GATEKEEPER DEMO")
    print("=" * 60)
    print()

    config = load_config(DEMO_CONFIG)
    identities = StaticIdentityProvider()
    authorize = config.build_authorize(identities, assertions={"owns_article": owns_article})

    print("Compiled resources:")
    for guard in config.guards:
        for resource in guard.get_resources():
            print(f"  • {resource}")
    print()

    bus = EventBus()
    config.attach_all(bus)

    requests = [
        (None, "home", "demo.pages", "index"),
        (None, "article-edit", "demo.articles", "edit"),
        (Identity("bob", frozenset({"editor"})), "article-edit", "demo.articles", "edit"),
        (Identity("bob", frozenset({"editor"})), "article", "demo.articles", "publish"),
        (Identity("ada", frozenset({"editor"})), "article", "demo.articles", "publish"),
    ]

    for identity, route, controller, action in requests:
        identities.identity = identity
        event = await dispatch(bus, route, controller, action)
        who = identity.subject if identity else "anonymous"
        target = f"{controller}:{action} via {route}"

        if not event.is_error:
            print(f"  ✓ {who:<10} {target}")
            continue

        response = event.http_response
        status = response.status_code if response else "-"
        print(f"  ✗ {who:<10} {target} -> {status} ({event.error})")
        for child in event.view_model.children:
            print(f"      template={child.template} reason={event.get_param('exception')}")

    config.detach_all(bus)
    print()
    print(f"Authorization service knows {len(authorize.resources)} resources")


def main():
    load_dotenv()
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(demo())


if __name__ == "__main__":
    main()
