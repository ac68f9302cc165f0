"""
Тесты AuthService и Pbkdf2CredentialService.

Проверяет:
1. Bootstrap-регистрацию SUPERADMIN (открытая и закрытая регистрация)
2. Вход по email/паролю и выдачу токена
3. Разрешение токена в актуальную identity (роль из хранилища)
4. Истечение токена
"""

import pytest

from invoicegate.config import AdminConfig
from invoicegate.core.domain import Role
from invoicegate.core.errors import (
    AuthenticationFailed,
    Conflict,
    PermissionDenied,
    ValidationError,
)
from invoicegate.credentials import Pbkdf2CredentialService
from invoicegate.service import AdminServices
from invoicegate.storage import InMemoryStore
from tests.helpers import identity_payload


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestRegistration:
    def test_bootstrap_superadmin(self, superadmin):
        assert superadmin.role == Role.SUPERADMIN
        assert superadmin.created_by is None
        assert superadmin.sequence_id == "SA1"

    def test_open_registration_allows_more(self, services, superadmin):
        second = services.auth.register_superadmin(
            {"displayName": "Root 2", "email": "root2@example.com", "credential": "pw"}
        )
        assert second.sequence_id == "SA2"

    def test_closed_registration(self, credentials):
        config = AdminConfig(allow_open_registration=False)
        services = AdminServices.build(InMemoryStore(), config, credentials)
        services.auth.register_superadmin(
            {"displayName": "Root", "email": "root@example.com", "credential": "pw"}
        )
        with pytest.raises(PermissionDenied):
            services.auth.register_superadmin(
                {"displayName": "Root 2", "email": "root2@example.com", "credential": "pw"}
            )

    def test_duplicate_email(self, services, superadmin):
        with pytest.raises(Conflict) as exc_info:
            services.auth.register_superadmin(
                {"displayName": "Again", "email": "Root@Example.com", "credential": "pw"}
            )
        assert exc_info.value.reason == "duplicate_email"

    def test_missing_field(self, services):
        with pytest.raises(ValidationError):
            services.auth.register_superadmin({"displayName": "Root", "credential": "pw"})


class TestLogin:
    def test_login_issues_token(self, services, superadmin):
        result = services.auth.login("root@example.com", "root-secret")
        assert result.identity.id == superadmin.id
        assert services.auth.authenticate(result.token).id == superadmin.id

    def test_email_case_insensitive(self, services, superadmin):
        assert services.auth.login("ROOT@example.com", "root-secret").identity.id == superadmin.id

    def test_wrong_password(self, services, superadmin):
        with pytest.raises(AuthenticationFailed, match="Invalid email or password"):
            services.auth.login("root@example.com", "wrong")

    def test_unknown_email(self, services):
        with pytest.raises(AuthenticationFailed):
            services.auth.login("nobody@example.com", "pw")

    @pytest.mark.parametrize("email, password", [("", "pw"), ("root@example.com", None)])
    def test_missing_credentials(self, services, email, password):
        with pytest.raises(ValidationError, match="Email and password required"):
            services.auth.login(email, password)

    def test_authentication_failed_is_permission_denied(self):
        assert issubclass(AuthenticationFailed, PermissionDenied)
        assert AuthenticationFailed("x").code == "authentication_failed"


class TestAuthenticate:
    def test_missing_token(self, services):
        with pytest.raises(AuthenticationFailed, match="token missing"):
            services.auth.authenticate(None)

    def test_invalid_token(self, services):
        with pytest.raises(AuthenticationFailed, match="invalid token"):
            services.auth.authenticate("forged")

    def test_deleted_identity(self, services, superadmin):
        admin = services.identities.create_identity(
            superadmin, identity_payload("Admin", Role.ADMIN)
        )
        token = services.auth.login("admin@example.com", "Admin-secret").token
        services.identities.delete_identity(superadmin, admin.id)
        with pytest.raises(AuthenticationFailed, match="user not found"):
            services.auth.authenticate(token)

    def test_role_read_from_store(self, services, superadmin):
        admin = services.identities.create_identity(
            superadmin, identity_payload("Admin", Role.ADMIN)
        )
        token = services.auth.login("admin@example.com", "Admin-secret").token
        services.identities.reassign_role(superadmin, admin.id, Role.USER)
        assert services.auth.authenticate(token).role == Role.USER

    def test_token_expiry(self, superadmin, store):
        clock = FakeClock()
        credentials = Pbkdf2CredentialService(iterations=1, token_ttl_seconds=60, clock=clock)
        token = credentials.issue_token(superadmin)

        clock.now += 59
        assert credentials.resolve_token(token) == superadmin.id
        clock.now += 1
        assert credentials.resolve_token(token) is None


class TestPbkdf2Credentials:
    def test_hash_format(self, credentials):
        ref = credentials.hash_and_store("secret")
        algorithm, iterations, salt, digest = ref.split("$")
        assert algorithm == "pbkdf2_sha256"
        assert iterations == "1"
        assert len(salt) == 32
        assert len(digest) == 64

    def test_salted(self, credentials):
        assert credentials.hash_and_store("secret") != credentials.hash_and_store("secret")

    def test_verify(self, credentials):
        ref = credentials.hash_and_store("secret")
        assert credentials.verify(ref, "secret")
        assert not credentials.verify(ref, "Secret")

    @pytest.mark.parametrize("ref", ["", "plain", "md5$1$salt$hash", "pbkdf2_sha256$x$s$h"])
    def test_malformed_reference(self, credentials, ref):
        assert not credentials.verify(ref, "secret")

    def test_iterations_must_be_positive(self):
        with pytest.raises(ValueError):
            Pbkdf2CredentialService(iterations=0)
