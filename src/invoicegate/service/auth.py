"""
AuthService — bootstrap-регистрация, вход и разрешение токена.

- register_superadmin: создает SUPERADMIN без создателя (bootstrap)
- login: email + пароль → непрозрачный токен
- authenticate: токен → актуальная identity из хранилища (requester для
  остальных сервисов)
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from invoicegate.config import AdminConfig
from invoicegate.core.contracts.validators import parse_registration_request
from invoicegate.core.domain.identity import Identity, RegistrationRequest
from invoicegate.core.domain.role import Role
from invoicegate.core.errors import (
    AuthenticationFailed,
    Conflict,
    PermissionDenied,
    ValidationError,
)
from invoicegate.credentials import CredentialService
from invoicegate.logging import get_logger
from invoicegate.sequencing.counter_store import CounterStore
from invoicegate.storage.base import AdminStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoginResult:
    token: str
    identity: Identity


class AuthService:
    def __init__(
        self,
        store: AdminStore,
        credentials: CredentialService,
        config: Optional[AdminConfig] = None,
        counters: Optional[CounterStore] = None,
    ):
        self._store = store
        self._credentials = credentials
        self._config = config or AdminConfig()
        self._counters = counters or CounterStore(store)

    def register_superadmin(
        self, payload: Union[RegistrationRequest, Mapping[str, Any]]
    ) -> Identity:
        request = (
            payload
            if isinstance(payload, RegistrationRequest)
            else parse_registration_request(payload)
        )

        if not self._config.allow_open_registration and any(
            identity.role == Role.SUPERADMIN for identity in self._store.directory_snapshot()
        ):
            raise PermissionDenied("registration is closed: a SUPERADMIN already exists")

        if self._store.find_identity_by_email(request.email) is not None:
            raise Conflict("Email already exists", reason="duplicate_email")

        identity = Identity(
            display_name=request.display_name,
            email=request.email,
            credential_ref=self._credentials.hash_and_store(request.credential),
            role=Role.SUPERADMIN,
            created_by=None,
            sequence_id=self._counters.next_sequence_id(Role.SUPERADMIN),
        )
        self._store.insert_identity(identity)
        logger.info("SUPERADMIN %s registered", identity.sequence_id)
        return identity

    def login(self, email: Optional[str], password: Optional[str]) -> LoginResult:
        if not email or not password:
            raise ValidationError("Email and password required")

        identity = self._store.find_identity_by_email(email)
        if identity is None or not self._credentials.verify(identity.credential_ref, password):
            logger.warning("failed login for %s", email)
            raise AuthenticationFailed("Invalid email or password")

        return LoginResult(token=self._credentials.issue_token(identity), identity=identity)

    def authenticate(self, token: Optional[str]) -> Identity:
        """Токен → identity. Роль берется из хранилища, а не из токена."""
        if not token:
            raise AuthenticationFailed("Unauthorized, token missing")
        identity_id = self._credentials.resolve_token(token)
        if identity_id is None:
            raise AuthenticationFailed("Unauthorized, invalid token")
        identity = self._store.get_identity(identity_id)
        if identity is None:
            raise AuthenticationFailed("Unauthorized, user not found")
        return identity
