"""
Гейты иерархии ролей.

- IdentityCreationGate: requester.role должен быть ровно parent(requested_role)
  (SUPERADMIN создает только ADMIN, ADMIN только UNIT_MANAGER,
  UNIT_MANAGER только USER; SUPERADMIN через этот путь не создается)
- RoleChangeGate: смена роли только для SUPERADMIN; роль bootstrap identity
  (без создателя) не меняется
- DeletionGate: удалять могут SUPERADMIN и ADMIN

Гейты stateless и не выполняют I/O; сервисный слой превращает отказ в
PermissionDenied.
"""

from dataclasses import dataclass
from typing import Optional

from invoicegate.core.domain.identity import Identity
from invoicegate.core.domain.role import DELETING_ROLES, Role, child_role, parent_role


@dataclass(frozen=True)
class HierarchyCheckResult:
    """Результат проверки иерархии."""

    allowed: bool
    block_reason: str

    requester_role: Role
    requested_role: Optional[Role]

    details: str


class IdentityCreationGate:
    """Правило создания parent → child."""

    def evaluate(self, requester_role: Role, requested_role: Role) -> HierarchyCheckResult:
        expected_parent = parent_role(requested_role)
        if expected_parent is None or requester_role != expected_parent:
            allowed_child = child_role(requester_role)
            allowed_text = allowed_child.value if allowed_child else "nothing"
            return HierarchyCheckResult(
                allowed=False,
                block_reason="creator_role_mismatch",
                requester_role=requester_role,
                requested_role=requested_role,
                details=f"{requester_role.value} can only create {allowed_text}",
            )
        return HierarchyCheckResult(
            allowed=True,
            block_reason="",
            requester_role=requester_role,
            requested_role=requested_role,
            details=f"PASS: {requester_role.value} creates {requested_role.value}",
        )


class RoleChangeGate:
    """Смена роли: только SUPERADMIN, bootstrap identity заблокированы."""

    def evaluate(
        self, requester: Identity, target: Optional[Identity], new_role: Role
    ) -> HierarchyCheckResult:
        """target=None: проверяются только права requester (target не найден)."""
        if requester.role != Role.SUPERADMIN:
            return HierarchyCheckResult(
                allowed=False,
                block_reason="superadmin_only",
                requester_role=requester.role,
                requested_role=new_role,
                details="Only SUPERADMIN can update user roles",
            )
        if target is not None and target.created_by is None and new_role != target.role:
            return HierarchyCheckResult(
                allowed=False,
                block_reason="bootstrap_role_locked",
                requester_role=requester.role,
                requested_role=new_role,
                details=f"Bootstrap identity {target.sequence_id} has no creator and must stay SUPERADMIN",
            )
        return HierarchyCheckResult(
            allowed=True,
            block_reason="",
            requester_role=requester.role,
            requested_role=new_role,
            details=f"PASS: SUPERADMIN assigns {new_role.value}",
        )


class DeletionGate:
    def evaluate(self, requester: Identity) -> HierarchyCheckResult:
        if requester.role not in DELETING_ROLES:
            return HierarchyCheckResult(
                allowed=False,
                block_reason="forbidden_to_delete",
                requester_role=requester.role,
                requested_role=None,
                details=f"{requester.role.value} is forbidden to delete users",
            )
        return HierarchyCheckResult(
            allowed=True,
            block_reason="",
            requester_role=requester.role,
            requested_role=None,
            details=f"PASS: {requester.role.value} may delete users",
        )
