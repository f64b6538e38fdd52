"""Bearer credential sources."""

from __future__ import annotations

import os
from typing import Iterable

from .base import Credential


class StaticTokenProvider:
    """Hands out the first usable pre-fetched credential."""

    def __init__(self, credentials: Iterable[Credential] = ()) -> None:
        self._credentials = list(credentials)

    @classmethod
    def from_env(cls) -> "StaticTokenProvider":
        token = (os.getenv("QWEN_TOKEN") or "").strip()
        owner = (os.getenv("QWEN_TOKEN_OWNER") or "").strip() or None
        if not token:
            return cls([])
        return cls([Credential(token=token, owner=owner)])

    async def get_credential(self) -> Credential | None:
        for credential in self._credentials:
            if credential.token:
                return credential
        return None
