"""
Abstract Auth Interface

The ledger never authenticates anyone itself. It only needs a stable,
opaque user id; whichever identity provider is plugged in implements this
interface. The session object is the only place that asks for it.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from budget_ledger.errors import LedgerError


AuthListener = Callable[[Optional[str]], None]


class AuthProvider(ABC):
    """Abstract interface for an identity provider."""

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        """
        Id of the signed-in user.

        Returns:
            The user id, or None when nobody is signed in
        """
        pass

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> str:
        """
        Register a new user and sign them in.

        Returns:
            The new user's id

        Raises:
            AuthError: If registration is rejected
        """
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> str:
        """
        Sign in an existing user.

        Returns:
            The user's id

        Raises:
            AuthError: If the credentials are rejected
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        pass

    @abstractmethod
    def on_auth_state_changed(self, listener: AuthListener) -> Callable[[], None]:
        """
        Register a listener called with the new user id (None on sign-out).

        Returns:
            A callable that unregisters the listener
        """
        pass


class AuthError(LedgerError):
    """Authentication failed."""
    pass
