import base64
import logging

from s2ctl.auth.base import Authenticator
from s2ctl.errors import ConfigurationError

log = logging.getLogger(__name__)


class BasicAuthenticator(Authenticator):
    """HTTP Basic authentication with the catalog account."""

    def __init__(self, username: str | None, password: str | None):
        if not username or not password:
            raise ConfigurationError("Username and password must be set for the catalog store")
        self.username = username
        self.password = password
        self.token: str | None = None

    def authenticate(self) -> bool:
        credentials = f"{self.username}:{self.password}".encode("utf-8")
        self.token = "Basic " + base64.b64encode(credentials).decode("ascii")
        log.debug("Prepared basic authentication token for user %s", self.username)
        return True

    def ensure_authenticated(self, refresh: bool = False) -> bool:
        if self.token is None or refresh:
            return self.authenticate()
        return True

    @property
    def auth_headers(self) -> dict[str, str]:
        self.ensure_authenticated()
        return {"Authorization": self.token}

    @property
    def auth_session(self) -> tuple[str, str]:
        return self.username, self.password
