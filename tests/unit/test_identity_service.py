"""
Тесты IdentityService.

Проверяет:
1. create_identity: правило parent → child, sequence id, группы, email
2. reassign_role: только SUPERADMIN, перевыпуск sequence id только при смене роли
3. delete_identity: права и NotFound
4. list_visible: пагинация видимого множества
"""

import pytest

from invoicegate.core.domain import Role
from invoicegate.core.errors import Conflict, NotFound, PermissionDenied, ValidationError
from tests.helpers import identity_payload


@pytest.fixture
def identities(services):
    return services.identities


@pytest.fixture
def admin(identities, superadmin):
    return identities.create_identity(superadmin, identity_payload("Admin", Role.ADMIN))


@pytest.fixture
def manager(identities, admin):
    return identities.create_identity(admin, identity_payload("Manager", Role.UNIT_MANAGER))


class TestCreateIdentity:
    def test_superadmin_creates_admin(self, identities, superadmin, credentials):
        admin = identities.create_identity(superadmin, identity_payload("Alice", Role.ADMIN))
        assert admin.role == Role.ADMIN
        assert admin.created_by == superadmin.id
        assert admin.sequence_id == "A1"
        assert admin.email == "alice@example.com"
        assert credentials.verify(admin.credential_ref, "Alice-secret")

    def test_sequence_ids_increase_per_role(self, identities, superadmin, admin):
        second = identities.create_identity(superadmin, identity_payload("Bob", Role.ADMIN))
        assert (admin.sequence_id, second.sequence_id) == ("A1", "A2")
        assert superadmin.sequence_id == "SA1"

    def test_admin_cannot_create_user(self, identities, admin, store):
        with pytest.raises(PermissionDenied, match="ADMIN can only create UNIT_MANAGER"):
            identities.create_identity(admin, identity_payload("Eve", Role.USER))
        assert store.find_identity_by_email("eve@example.com") is None
        assert store.counter_value("USER") == 0

    def test_superadmin_cannot_be_created(self, identities, superadmin):
        with pytest.raises(PermissionDenied):
            identities.create_identity(superadmin, identity_payload("Root2", Role.SUPERADMIN))

    def test_user_cannot_create(self, identities, manager):
        user = identities.create_identity(manager, identity_payload("Uma", Role.USER))
        with pytest.raises(PermissionDenied):
            identities.create_identity(user, identity_payload("Ulf", Role.USER))

    def test_duplicate_email_case_insensitive(self, identities, superadmin, admin):
        payload = identity_payload("Other", Role.ADMIN)
        payload["email"] = "ADMIN@Example.com"
        with pytest.raises(Conflict) as exc_info:
            identities.create_identity(superadmin, payload)
        assert exc_info.value.reason == "duplicate_email"

    def test_invalid_payload(self, identities, superadmin):
        payload = identity_payload("Alice", Role.ADMIN)
        payload["role"] = "OWNER"
        with pytest.raises(ValidationError):
            identities.create_identity(superadmin, payload)

    def test_admin_group_stored(self, identities, superadmin, admin, manager):
        peer = identities.create_identity(
            superadmin, identity_payload("Peer", Role.ADMIN, [admin.id, manager.id])
        )
        assert peer.admin_group == frozenset({admin.id, manager.id})
        assert peer.unit_group == frozenset()

    def test_unit_group_stored(self, identities, admin, manager):
        user = identities.create_identity(manager, identity_payload("Uma", Role.USER))
        other = identities.create_identity(
            admin, identity_payload("Other", Role.UNIT_MANAGER, [user.id])
        )
        assert other.unit_group == frozenset({user.id})
        assert other.admin_group == frozenset()

    def test_group_ids_ignored_for_users(self, identities, manager):
        user = identities.create_identity(
            manager, identity_payload("Uma", Role.USER, ["nonexistent"])
        )
        assert user.groups() == frozenset()

    def test_unknown_group_member(self, identities, superadmin):
        with pytest.raises(NotFound, match="nonexistent"):
            identities.create_identity(
                superadmin, identity_payload("Peer", Role.ADMIN, ["nonexistent"])
            )


class TestReassignRole:
    def test_role_change_regenerates_sequence_id(self, identities, superadmin, manager, store):
        new_id = identities.reassign_role(superadmin, manager.id, Role.ADMIN)
        assert new_id == "A2"
        stored = store.get_identity(manager.id)
        assert stored.role == Role.ADMIN
        assert stored.sequence_id == "A2"
        assert stored.created_by == manager.created_by

    def test_same_role_keeps_id_and_counter(self, identities, superadmin, manager, store):
        before = store.counter_value("UNIT_MANAGER")
        assert identities.reassign_role(superadmin, manager.id, "UNIT_MANAGER") == "UM1"
        assert store.counter_value("UNIT_MANAGER") == before
        assert store.get_identity(manager.id).sequence_id == "UM1"

    def test_only_superadmin(self, identities, admin, manager):
        with pytest.raises(PermissionDenied, match="Only SUPERADMIN can update user roles"):
            identities.reassign_role(admin, manager.id, Role.USER)

    def test_permission_before_existence(self, identities, admin):
        with pytest.raises(PermissionDenied):
            identities.reassign_role(admin, "missing", Role.USER)

    def test_unknown_target(self, identities, superadmin):
        with pytest.raises(NotFound):
            identities.reassign_role(superadmin, "missing", Role.USER)

    def test_invalid_role(self, identities, superadmin, manager):
        with pytest.raises(ValidationError):
            identities.reassign_role(superadmin, manager.id, "OWNER")
        with pytest.raises(ValidationError):
            identities.reassign_role(superadmin, manager.id, None)

    def test_bootstrap_superadmin_locked(self, identities, superadmin):
        with pytest.raises(PermissionDenied):
            identities.reassign_role(superadmin, superadmin.id, Role.ADMIN)


class TestDeleteIdentity:
    def test_admin_deletes(self, identities, admin, manager, store):
        identities.delete_identity(admin, manager.id)
        assert store.get_identity(manager.id) is None

    def test_manager_forbidden(self, identities, manager, store):
        user = identities.create_identity(manager, identity_payload("Uma", Role.USER))
        with pytest.raises(PermissionDenied):
            identities.delete_identity(manager, user.id)
        assert store.get_identity(user.id) is not None

    def test_unknown_target(self, identities, superadmin):
        with pytest.raises(NotFound):
            identities.delete_identity(superadmin, "missing")


class TestListVisible:
    def test_first_page(self, identities, directory):
        page = identities.list_visible(directory["SA"], page=1, limit=5)
        assert page.total == len(directory)
        assert page.limit == 5
        assert len(page.items) == 5
        assert page.pages == 3

    def test_last_page(self, identities, directory):
        page = identities.list_visible(directory["SA"], page=3, limit=5)
        assert len(page.items) == len(directory) - 10

    def test_default_limit(self, identities, directory, config):
        page = identities.list_visible(directory["SA"])
        assert page.limit == config.default_page_limit

    def test_pages_are_disjoint(self, identities, directory):
        first = identities.list_visible(directory["A3"], page=1, limit=4)
        second = identities.list_visible(directory["A3"], page=2, limit=4)
        ids = [i.id for i in first.items + second.items]
        assert len(ids) == len(set(ids)) == first.total == 6

    def test_user_page(self, identities, directory):
        page = identities.list_visible(directory["U1"])
        assert page.total == 1
        assert page.items[0].id == directory["U1"].id

    @pytest.mark.parametrize("page, limit", [(0, 5), (1, 0), ("x", 5), (1, 51)])
    def test_bad_paging(self, identities, directory, page, limit):
        with pytest.raises(ValidationError):
            identities.list_visible(directory["SA"], page=page, limit=limit)


class TestStaleRequester:
    """Права определяет текущая запись requester, а не переданный объект."""

    def test_demoted_admin_cannot_create(self, identities, superadmin, admin, store):
        identities.reassign_role(superadmin, admin.id, Role.USER)
        with pytest.raises(PermissionDenied):
            identities.create_identity(admin, identity_payload("Late", Role.UNIT_MANAGER))
        assert store.find_identity_by_email("late@example.com") is None

    def test_deleted_admin_cannot_create(self, identities, superadmin, admin, store):
        identities.delete_identity(superadmin, admin.id)
        with pytest.raises(PermissionDenied):
            identities.create_identity(admin, identity_payload("Orphan", Role.UNIT_MANAGER))
        assert store.counter_value("UNIT_MANAGER") == 0

    def test_promoted_manager_uses_new_role(self, identities, superadmin, manager):
        identities.reassign_role(superadmin, manager.id, Role.ADMIN)
        created = identities.create_identity(
            manager, identity_payload("Fresh", Role.UNIT_MANAGER)
        )
        assert created.created_by == manager.id
        with pytest.raises(PermissionDenied):
            identities.create_identity(manager, identity_payload("Uma", Role.USER))

    def test_demoted_admin_cannot_delete(self, identities, superadmin, admin, manager, store):
        identities.reassign_role(superadmin, admin.id, Role.UNIT_MANAGER)
        with pytest.raises(PermissionDenied):
            identities.delete_identity(admin, manager.id)
        assert store.get_identity(manager.id) is not None

    def test_deleted_superadmin_cannot_reassign(self, services, identities, superadmin, manager):
        second = services.auth.register_superadmin(
            {"displayName": "Root 2", "email": "root2@example.com", "credential": "pw"}
        )
        identities.delete_identity(superadmin, second.id)
        with pytest.raises(PermissionDenied):
            identities.reassign_role(second, manager.id, Role.ADMIN)
        assert identities.reassign_role(superadmin, manager.id, Role.UNIT_MANAGER) == "UM1"
