from s2ctl.auth.base import Authenticator


class AnonymousAuthenticator(Authenticator):
    """
    No credentials: requests go out unsigned, as the public tile store
    and anonymous catalog listings expect.
    """

    anonymous = True

    def authenticate(self) -> bool:
        return True

    def ensure_authenticated(self, refresh: bool = False) -> bool:
        return True

    @property
    def auth_headers(self) -> dict[str, str]:
        return {}

    @property
    def auth_session(self) -> None:
        return None
