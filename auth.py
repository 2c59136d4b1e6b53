"""
auth.py
Authentication (Supabase auth): sign in/up/out, session gate, route policy.
"""

from __future__ import annotations

import logging

import httpx
from supabase import AuthError, Client

from errors import AuthFailedError

logger = logging.getLogger(__name__)

LOGIN = "login"
LIST = "list"
ADD = "add"
DETAIL = "detail"
PROTECTED_ROUTES = (LIST, ADD, DETAIL)


def _credentials(email: str, password: str) -> dict:
    return {"email": email.strip(), "password": password}


def sign_in(client: Client, email: str, password: str):
    try:
        res = client.auth.sign_in_with_password(_credentials(email, password))
    except AuthError as e:
        logger.info("Sign in refused for %s: %s", email, e.message)
        raise AuthFailedError(e.message) from e
    except httpx.HTTPError as e:
        raise AuthFailedError("Falha de conexão com o servidor de autenticação.") from e
    return res.session


def sign_up(client: Client, email: str, password: str):
    """
    Returns the new session, or None when the project requires e-mail
    confirmation before the first login.
    """
    try:
        res = client.auth.sign_up(_credentials(email, password))
    except AuthError as e:
        logger.info("Sign up refused for %s: %s", email, e.message)
        raise AuthFailedError(e.message) from e
    except httpx.HTTPError as e:
        raise AuthFailedError("Falha de conexão com o servidor de autenticação.") from e
    return res.session


def sign_out(client: Client) -> None:
    try:
        client.auth.sign_out()
    except AuthError as e:
        raise AuthFailedError(e.message) from e


class SessionGate:
    """
    Mirrors the provider's current session.
    start() fetches it once and subscribes to changes; close() unsubscribes.
    """

    def __init__(self, client: Client):
        self._client = client
        self._subscription = None
        self.session = None

    def start(self) -> "SessionGate":
        if self._subscription is not None:
            return self
        try:
            self.session = self._client.auth.get_session()
        except AuthError as e:
            # expired/invalid refresh token: behave as logged out
            logger.warning("Could not restore session: %s", e.message)
            self.session = None
        self._subscription = self._client.auth.on_auth_state_change(self._on_change)
        return self

    def _on_change(self, event, session) -> None:
        logger.info("Auth state changed: %s", event)
        self.session = session

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def user_id(self) -> str | None:
        if self.session is None or self.session.user is None:
            return None
        return self.session.user.id

    @property
    def email(self) -> str | None:
        if self.session is None or self.session.user is None:
            return None
        return self.session.user.email

    def __enter__(self) -> "SessionGate":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()


def resolve_route(route: str, authenticated: bool) -> str:
    if not authenticated:
        return LOGIN
    if route in PROTECTED_ROUTES:
        return route
    return LIST
