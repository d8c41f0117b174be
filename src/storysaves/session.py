from __future__ import annotations

from typing import Callable, Optional

from .storage import KeyValueStore

UserProvider = Callable[[], Optional[str]]

DEFAULT_USER_KEY = "currentUser"


class StoredUserProvider:
    """Reads the logged-in username that the login page left in the key-value store."""

    def __init__(self, kv_store: KeyValueStore, key: str = DEFAULT_USER_KEY) -> None:
        self.kv_store = kv_store
        self.key = key

    def __call__(self) -> Optional[str]:
        return self.kv_store.get_item(self.key) or None

    def login(self, username: str) -> None:
        self.kv_store.set_item(self.key, username)

    def logout(self) -> None:
        self.kv_store.remove_item(self.key)


def static_user(username: Optional[str]) -> UserProvider:
    return lambda: username
