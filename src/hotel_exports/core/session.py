"""Session credentials for authenticated export requests.

Holds the bearer token and the optional API key. A 401 from the API
invalidates the session: the token is cleared, the user-facing reason is
recorded, and every registered session-expired handler is called so the
host can force a re-login.
"""

from collections.abc import Callable

from loguru import logger

from hotel_exports.core.config import Settings

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."

SessionExpiredHandler = Callable[[str], None]


class SessionStore:
    """In-memory credential store shared by the transport and export client.

    Args:
        token: Bearer token, or None when not logged in.
        api_key: Optional secondary key for metered-access accounts.
    """

    def __init__(self, token: str | None = None, api_key: str | None = None) -> None:
        self._token = token
        self._api_key = api_key
        self._auth_error_message: str | None = None
        self._handlers: list[SessionExpiredHandler] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionStore":
        return cls(token=settings.api_token, api_key=settings.api_key)

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def api_key(self) -> str | None:
        return self._api_key

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    @property
    def auth_error_message(self) -> str | None:
        """Reason recorded by the last invalidation, shown on the login prompt."""
        return self._auth_error_message

    def login(self, token: str, api_key: str | None = None) -> None:
        """Store fresh credentials and clear any previous expiry message."""
        self._token = token
        if api_key is not None:
            self._api_key = api_key
        self._auth_error_message = None

    def on_session_expired(self, handler: SessionExpiredHandler) -> Callable[[], None]:
        """Register a handler called with the user-facing message on invalidation.

        Returns:
            A callable that unregisters the handler. Calling it twice is a no-op.
        """
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def invalidate(self, message: str = SESSION_EXPIRED_MESSAGE) -> None:
        """Clear the token and notify handlers.

        The API key is kept: it identifies the account, not the session.
        """
        logger.warning("Session invalidated: {}", message)
        self._token = None
        self._auth_error_message = message
        for handler in list(self._handlers):
            handler(message)
