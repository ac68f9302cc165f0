"""
Role — закрытая иерархия ролей.

SUPERADMIN → ADMIN → UNIT_MANAGER → USER

Каждая роль (кроме SUPERADMIN) имеет ровно одну родительскую роль, и только
identity с родительской ролью может ее создать. Префиксы sequence id
фиксированы; для неизвестных ролей используется "X".
"""

from enum import Enum
from typing import Final, Optional, Union

from invoicegate.core.errors import ValidationError


class Role(str, Enum):
    """Роль identity (порядок = уровень иерархии)."""

    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    UNIT_MANAGER = "UNIT_MANAGER"
    USER = "USER"


# =============================================================================
# ТАБЛИЦЫ ИЕРАРХИИ
# =============================================================================

PARENT_ROLE: Final[dict[Role, Optional[Role]]] = {
    Role.SUPERADMIN: None,
    Role.ADMIN: Role.SUPERADMIN,
    Role.UNIT_MANAGER: Role.ADMIN,
    Role.USER: Role.UNIT_MANAGER,
}

SEQUENCE_PREFIX: Final[dict[Role, str]] = {
    Role.SUPERADMIN: "SA",
    Role.ADMIN: "A",
    Role.UNIT_MANAGER: "UM",
    Role.USER: "U",
}

UNKNOWN_ROLE_PREFIX: Final[str] = "X"

# Роли, которым разрешено удалять identity
DELETING_ROLES: Final[frozenset[Role]] = frozenset({Role.SUPERADMIN, Role.ADMIN})


def parent_role(role: Role) -> Optional[Role]:
    """Родительская роль (None для SUPERADMIN)."""
    return PARENT_ROLE[role]


def child_role(role: Role) -> Optional[Role]:
    """Единственная роль, которую может создавать identity с ролью role."""
    for child, parent in PARENT_ROLE.items():
        if parent == role:
            return child
    return None


def sequence_prefix(role: Union[Role, str]) -> str:
    """Префикс sequence id для роли; "X" для всего, что не входит в Role."""
    try:
        return SEQUENCE_PREFIX[Role(role)]
    except ValueError:
        return UNKNOWN_ROLE_PREFIX


def parse_role(value: Union[Role, str, None], field: str = "role") -> Role:
    """Строгий разбор роли из входных данных.

    Raises:
        ValidationError: если значение отсутствует или не является ролью
    """
    if value is None or value == "":
        raise ValidationError("role is required", field=field)
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(f"invalid role {value!r}", field=field) from None
