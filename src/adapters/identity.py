"""
Identity adapter (IdentityPort implementation).
"""

from __future__ import annotations


class StaticIdentity:
    """
    Identity with a settable user id.

    ``user_id`` starts as None until the host's sign-in completes.
    """

    def __init__(self, user_id: str | None = None) -> None:
        self.user_id = user_id

    def current_user_id(self) -> str | None:
        return self.user_id
