"""Cashier terminal client: the terminal-held cart and its HTTP calls."""

from .client import APIClient, ApiError, ConnectionFailedError
from .session_store import SessionStore, StoredSession
from .terminal import CashierTerminal, CheckoutInProgressError, NotSignedInError

__all__ = [
    'APIClient', 'ApiError', 'ConnectionFailedError',
    'SessionStore', 'StoredSession',
    'CashierTerminal', 'CheckoutInProgressError', 'NotSignedInError',
]
