"""Unit tests for authentication classes."""

import base64

import pytest

from s2ctl.auth import AnonymousAuthenticator, BasicAuthenticator, create_authenticator
from s2ctl.errors import ConfigurationError


class TestBasicAuthenticator:
    """Tests for BasicAuthenticator."""

    def test_auth_headers(self):
        """Test auth_headers returns a Basic token."""
        authenticator = BasicAuthenticator("alice", "secret")
        headers = authenticator.auth_headers
        expected = base64.b64encode(b"alice:secret").decode("ascii")
        assert headers == {"Authorization": f"Basic {expected}"}

    def test_auth_session(self):
        """Test auth_session returns the credentials tuple used by requests."""
        assert BasicAuthenticator("alice", "secret").auth_session == ("alice", "secret")

    def test_ensure_authenticated(self):
        authenticator = BasicAuthenticator("alice", "secret")
        assert authenticator.token is None
        assert authenticator.ensure_authenticated() is True
        assert authenticator.token is not None
        assert authenticator.anonymous is False

    @pytest.mark.parametrize("username,password", [("alice", None), (None, "secret"), ("", "")])
    def test_missing_credentials(self, username, password):
        with pytest.raises(ConfigurationError):
            BasicAuthenticator(username, password)


class TestAnonymousAuthenticator:
    """Tests for AnonymousAuthenticator."""

    def test_unsigned(self):
        authenticator = AnonymousAuthenticator()
        assert authenticator.anonymous is True
        assert authenticator.authenticate() is True
        assert authenticator.auth_headers == {}
        assert authenticator.auth_session is None


class TestCreateAuthenticator:
    def test_with_credentials(self):
        assert isinstance(create_authenticator("alice", "secret"), BasicAuthenticator)

    def test_without_credentials(self):
        assert isinstance(create_authenticator("alice", None), AnonymousAuthenticator)
        assert isinstance(create_authenticator(), AnonymousAuthenticator)
