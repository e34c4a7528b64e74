"""
session.py — Current-User Session

The session is the single writer of the stored auth token. The storefront
client only needs its contract: whether a valid token exists, who the user
is, and the user's saved address.
"""

import logging

from .errors import StorefrontError

log = logging.getLogger(__name__)


class SessionContext:
    def __init__(self, api, storage):
        self.api = api
        self.storage = storage
        self.user = None

    @property
    def is_authenticated(self):
        return self.user is not None and bool(self.storage.token)

    @property
    def email(self):
        return self.user.email if self.user else None

    async def login(self, email, password):
        user = await self.api.login(email, password)
        self._sign_in(user)
        log.info(f"[Session] {user.email} logged in.")
        return user

    async def register(self, display_name, email, password):
        user = await self.api.register(display_name, email, password)
        self._sign_in(user)
        log.info(f"[Session] {user.email} registered.")
        return user

    def _sign_in(self, user):
        self.storage.token = user.token
        self.user = user

    def logout(self):
        self.storage.token = None
        self.user = None

    def expire(self):
        """Unauthorized hook of the API client: the token is no longer valid."""
        if self.storage.token or self.user:
            log.warning("[Session] Session expired, clearing stored token.")
        self.logout()

    async def load_current_user(self):
        """
        Restores the user from a stored token. Without a token the session stays anonymous;
        a token the API rejects is discarded.
        """
        if not self.storage.token:
            self.user = None
            return None
        try:
            self.user = await self.api.get_current_user()
        except StorefrontError as e:
            log.warning(f"[Session] Could not restore user from stored token: {e}")
            self.logout()
        return self.user

    async def get_user_address(self):
        try:
            return await self.api.get_user_address()
        except StorefrontError as e:
            log.warning(f"[Session] Failed to get user address: {e}")
            return None

    async def update_user_address(self, address):
        return await self.api.update_user_address(address)

    async def check_email_exists(self, email):
        try:
            return await self.api.check_email_exists(email)
        except StorefrontError as e:
            log.warning(f"[Session] Failed to check email: {e}")
            return False
