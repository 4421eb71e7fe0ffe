"""Authentication for the product stores.

- BasicAuthenticator: user/password account of the catalog store
- AnonymousAuthenticator: unsigned access, used by the tile store and by
  catalog searches run without an account
"""

from s2ctl.auth.anonymous import AnonymousAuthenticator
from s2ctl.auth.base import Authenticator
from s2ctl.auth.basic import BasicAuthenticator
from s2ctl.registry import Registry

registry = Registry[Authenticator](name="authenticator")
registry.register("basic", BasicAuthenticator)
registry.register("anonymous", AnonymousAuthenticator)


def create_authenticator(username: str | None = None, password: str | None = None) -> Authenticator:
    """Basic authenticator when both credentials are given, anonymous otherwise."""
    if username and password:
        return registry.create("basic", username=username, password=password)
    return registry.create("anonymous")


__all__ = ["Authenticator", "AnonymousAuthenticator", "BasicAuthenticator", "create_authenticator"]
