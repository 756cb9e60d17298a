from flask import session

from errors import ValidationError
from utils.currency import BASE_CURRENCY, CurrencyContext, normalize_currency_code

CURRENCY_SESSION_KEY = 'selected_currency'


class SessionPreferenceStore:
    """
    Key-value store for customer preferences backed by the signed session cookie,
    so the values stay on the client and survive reloads.
    """

    def get(self, key, default=None):
        return session.get(key, default)

    def set(self, key, value):
        session.permanent = True
        session[key] = value


class CurrencyPreferenceService:
    """
    Reads and writes the customer's display currency through an injected store.
    Any object with get(key, default) and set(key, value) can be used as the store.
    """

    def __init__(self, store=None):
        self.store = store if store is not None else SessionPreferenceStore()

    def current(self):
        """
        Returns the CurrencyContext for the saved preference, falling back to the base
        currency when nothing (or an unsupported code) is saved.
        """
        saved = self.store.get(CURRENCY_SESSION_KEY, BASE_CURRENCY)
        try:
            return CurrencyContext(saved)
        except ValidationError:
            return CurrencyContext(BASE_CURRENCY)

    def select(self, currency):
        """Validates and persists a new display currency; returns the new context."""
        code = normalize_currency_code(currency)
        self.store.set(CURRENCY_SESSION_KEY, code)
        return CurrencyContext(code)
