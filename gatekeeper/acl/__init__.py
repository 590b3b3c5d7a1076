from gatekeeper.acl.authorize import (
    Authorize,
    AuthorizeService,
    ContextIdentityProvider,
    Identity,
    IdentityProvider,
    StaticIdentityProvider,
)

__all__ = [
    "Authorize",
    "AuthorizeService",
    "ContextIdentityProvider",
    "Identity",
    "IdentityProvider",
    "StaticIdentityProvider",
]
