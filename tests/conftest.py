"""Общие fixtures: хранилище, быстрые credentials и построение директории."""

import pytest

from invoicegate.config import AdminConfig
from invoicegate.core.domain import Identity, Role
from invoicegate.credentials import Pbkdf2CredentialService
from invoicegate.service import AdminServices
from invoicegate.storage import InMemoryStore
from tests.helpers import identity_payload


@pytest.fixture
def config() -> AdminConfig:
    return AdminConfig(default_page_limit=10, max_page_limit=50)


@pytest.fixture
def credentials() -> Pbkdf2CredentialService:
    """Одна итерация PBKDF2 — тестам не нужна стоимость хеширования."""
    return Pbkdf2CredentialService(iterations=1)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def services(store, config, credentials) -> AdminServices:
    return AdminServices.build(store, config, credentials)


@pytest.fixture
def superadmin(services) -> Identity:
    return services.auth.register_superadmin(
        {"displayName": "Root", "email": "root@example.com", "credential": "root-secret"}
    )


@pytest.fixture
def directory(services, superadmin) -> dict[str, Identity]:
    """
    Директория для проверок видимости:

    SA ─┬─ A1 ─┬─ UM1 ─┬─ U1
        │      │       └─ U2
        │      └─ UM2 ─── U4
        ├─ A2 ─── UM3 ─── U3
        └─ A3 (admin_group = {A2, UM1, UM3})
    A1 ─── UM4 (unit_group = {U3})
    """
    ids = services.identities
    d = {"SA": superadmin}
    d["A1"] = ids.create_identity(superadmin, identity_payload("A1", Role.ADMIN))
    d["A2"] = ids.create_identity(superadmin, identity_payload("A2", Role.ADMIN))
    d["UM1"] = ids.create_identity(d["A1"], identity_payload("UM1", Role.UNIT_MANAGER))
    d["UM2"] = ids.create_identity(d["A1"], identity_payload("UM2", Role.UNIT_MANAGER))
    d["UM3"] = ids.create_identity(d["A2"], identity_payload("UM3", Role.UNIT_MANAGER))
    d["U1"] = ids.create_identity(d["UM1"], identity_payload("U1", Role.USER))
    d["U2"] = ids.create_identity(d["UM1"], identity_payload("U2", Role.USER))
    d["U3"] = ids.create_identity(d["UM3"], identity_payload("U3", Role.USER))
    d["U4"] = ids.create_identity(d["UM2"], identity_payload("U4", Role.USER))
    d["A3"] = ids.create_identity(
        superadmin,
        identity_payload("A3", Role.ADMIN, [d["A2"].id, d["UM1"].id, d["UM3"].id]),
    )
    d["UM4"] = ids.create_identity(
        d["A1"], identity_payload("UM4", Role.UNIT_MANAGER, [d["U3"].id])
    )
    return d
