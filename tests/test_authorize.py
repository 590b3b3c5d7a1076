"""
Tests for the in-memory authorization service and identity providers.
"""

import asyncio

import pytest

from gatekeeper.acl.authorize import (
    AuthorizeService,
    ContextIdentityProvider,
    Identity,
    StaticIdentityProvider,
)
from gatekeeper.exceptions import ConfigurationError
from gatekeeper.guards.controller import ControllerGuard
from gatekeeper.guards.route import RouteGuard


def editor(subject="bob"):
    return Identity(subject, frozenset({"editor"}))


# =============================================================================
# Identity providers
# =============================================================================


class TestIdentityProviders:
    def test_anonymous_gets_default_role(self):
        provider = StaticIdentityProvider()

        assert provider.get_identity() is None
        assert provider.get_identity_roles() == ["guest"]

    def test_custom_default_role(self):
        assert StaticIdentityProvider(default_role="anonymous").get_identity_roles() == ["anonymous"]

    def test_identity_roles_sorted(self):
        identity = Identity("ada", frozenset({"user", "editor"}))
        provider = StaticIdentityProvider(identity)

        assert provider.get_identity_roles() == ["editor", "user"]
        assert str(identity) == "ada"
        assert identity.has_role("editor")

    def test_context_provider_set_and_reset(self):
        provider = ContextIdentityProvider()

        token = provider.set_identity(editor())
        assert provider.get_identity_roles() == ["editor"]

        provider.reset(token)
        assert provider.get_identity() is None
        assert provider.get_identity_roles() == ["guest"]

    @pytest.mark.asyncio
    async def test_context_provider_isolates_tasks(self):
        provider = ContextIdentityProvider()

        async def as_identity(identity):
            provider.set_identity(identity)
            await asyncio.sleep(0)
            return provider.get_identity()

        ada, bob = Identity("ada"), Identity("bob")
        results = await asyncio.gather(as_identity(ada), as_identity(bob))

        assert results == [ada, bob]


# =============================================================================
# AuthorizeService
# =============================================================================


class TestAuthorizeService:
    def test_allow(self):
        provider = StaticIdentityProvider(editor())
        service = AuthorizeService(provider)
        service.allow("editor", "controller/articles:edit")

        assert service.is_allowed("controller/articles:edit")
        assert "controller/articles:edit" in service.resources

    def test_other_role_denied(self):
        service = AuthorizeService(StaticIdentityProvider())
        service.allow(["editor"], "controller/articles:edit")

        assert not service.is_allowed("controller/articles:edit")

    def test_unknown_resource_is_denied(self):
        service = AuthorizeService(StaticIdentityProvider(editor()))

        assert not service.is_allowed("controller/nowhere")

    def test_deny_beats_allow_for_same_role(self):
        service = AuthorizeService(StaticIdentityProvider(Identity("u", frozenset({"user"}))))
        service.allow("user", "route/login")
        service.deny("user", "route/login")

        assert not service.is_allowed("route/login")

    def test_deny_is_per_role(self):
        identity = Identity("u", frozenset({"user", "guest"}))
        service = AuthorizeService(StaticIdentityProvider(identity))
        service.allow(["guest", "user"], "route/login")
        service.deny("user", "route/login")

        assert service.is_allowed("route/login")

    def test_privilege(self):
        service = AuthorizeService(StaticIdentityProvider(editor()))
        service.allow("editor", "document", privilege="read")

        assert service.is_allowed("document", "read")
        assert not service.is_allowed("document", "write")
        assert not service.is_allowed("document")

    def test_assertion(self):
        def is_ada(identity, resource, privilege):
            return identity is not None and identity.subject == "ada"

        provider = StaticIdentityProvider(editor("bob"))
        service = AuthorizeService(provider, assertions={"is_ada": is_ada})
        service.allow("editor", "controller/articles:publish", assertion="is_ada")

        assert not service.is_allowed("controller/articles:publish")

        provider.identity = editor("ada")
        assert service.is_allowed("controller/articles:publish")

    def test_unknown_assertion(self):
        service = AuthorizeService(StaticIdentityProvider())

        with pytest.raises(ConfigurationError, match="missing"):
            service.allow("guest", "route/home", assertion="missing")

    def test_get_identity(self):
        identity = editor()
        assert AuthorizeService(StaticIdentityProvider(identity)).get_identity() is identity

    def test_load_rules(self):
        service = AuthorizeService(StaticIdentityProvider())
        service.load_rules({
            "allow": [[["guest"], "route/home"], [["guest"], "route/login", None, None]],
            "deny": [[["guest"], "route/login"]],
        })

        assert service.is_allowed("route/home")
        assert not service.is_allowed("route/login")

    def test_fed_by_guards(self):
        controller = ControllerGuard([
            {"controller": "articles", "action": ["edit", "delete"], "roles": "editor"},
            {"controller": "pages", "roles": "guest"},
        ])
        route = RouteGuard([{"route": "home", "roles": ["guest", "editor"]}])

        service = AuthorizeService(
            StaticIdentityProvider(editor()),
            resource_providers=[controller, route],
            rule_providers=[controller, route],
        )

        assert service.resources == {
            "controller/articles:edit",
            "controller/articles:delete",
            "controller/pages",
            "route/home",
        }
        assert service.is_allowed("controller/articles:delete")
        assert service.is_allowed("route/home")
        assert not service.is_allowed("controller/pages")

    def test_independent_rules_for_one_resource(self):
        guard = ControllerGuard([
            {"controller": "shared", "roles": "user"},
            {"controller": "shared", "roles": "auditor"},
        ])
        provider = StaticIdentityProvider(Identity("a", frozenset({"auditor"})))
        service = AuthorizeService(provider, rule_providers=[guard])

        assert service.is_allowed("controller/shared")
