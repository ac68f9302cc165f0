"""
Credential service — внешний коллаборатор для паролей и токенов.

Сервисный слой зависит только от протокола CredentialService. Поставляемая
реализация Pbkdf2CredentialService:
- хеш пароля: PBKDF2-HMAC-SHA256, формат "pbkdf2_sha256$<iterations>$<salt>$<hash>"
- токены: непрозрачные secrets.token_urlsafe, хранятся в памяти с TTL
"""

import hashlib
import hmac
import secrets
import threading
import time
from typing import Callable, Optional, Protocol

from invoicegate.core.domain.identity import Identity

_ALGORITHM = "pbkdf2_sha256"


class CredentialService(Protocol):
    def hash_and_store(self, password: str) -> str:
        ...

    def verify(self, credential_ref: str, password: str) -> bool:
        ...

    def issue_token(self, identity: Identity) -> str:
        ...

    def resolve_token(self, token: str) -> Optional[str]:
        """id identity или None для невалидного/просроченного токена."""
        ...


class Pbkdf2CredentialService:
    """Stdlib реализация CredentialService."""

    def __init__(
        self,
        iterations: int = 240_000,
        token_ttl_seconds: int = 86_400,
        clock: Callable[[], float] = time.monotonic,
    ):
        if iterations < 1:
            raise ValueError(f"iterations must be positive, got {iterations}")
        self._iterations = iterations
        self._token_ttl_seconds = token_ttl_seconds
        self._clock = clock
        self._tokens: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def hash_and_store(self, password: str) -> str:
        salt = secrets.token_hex(16)
        digest = self._digest(password, salt, self._iterations)
        return f"{_ALGORITHM}${self._iterations}${salt}${digest}"

    def verify(self, credential_ref: str, password: str) -> bool:
        try:
            algorithm, iterations, salt, expected = credential_ref.split("$")
            iterations = int(iterations)
        except ValueError:
            return False
        if algorithm != _ALGORITHM:
            return False
        return hmac.compare_digest(self._digest(password, salt, iterations), expected)

    def issue_token(self, identity: Identity) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._tokens[token] = (identity.id, self._clock() + self._token_ttl_seconds)
        return token

    def resolve_token(self, token: str) -> Optional[str]:
        with self._lock:
            entry = self._tokens.get(token)
            if entry is None:
                return None
            identity_id, expires_at = entry
            if self._clock() >= expires_at:
                del self._tokens[token]
                return None
            return identity_id

    @staticmethod
    def _digest(password: str, salt: str, iterations: int) -> str:
        return hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
        ).hex()
