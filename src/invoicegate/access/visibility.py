"""
Visibility Resolver — множество identity, которое видит requester.

Правила по роли requester:
- SUPERADMIN:   вся директория
- ADMIN:        (i) члены admin_group
                (ii) UNIT_MANAGER, созданные requester или состоящие в admin_group
                (iii) USER, созданные любым UNIT_MANAGER из (ii)
                (двухшаговое транзитивное замыкание ADMIN → UM → USER)
- UNIT_MANAGER: USER, созданные requester или состоящие в unit_group
- USER:         только сам requester
- иначе:        пустое множество

Свойства:
1. Чистая функция одного DirectorySnapshot (read-only, без побочных эффектов)
2. Результат дедуплицирован по identity.id, порядок стабилен
3. Группы requester читаются из snapshot, если requester там есть, поэтому
   смена роли параллельно с разрешением не наблюдается наполовину
"""

from typing import Iterable

from invoicegate.core.domain.identity import Identity
from invoicegate.core.domain.role import Role
from invoicegate.storage.base import AdminStore, DirectorySnapshot


class VisibilityResolver:
    """Разрешение видимости поверх AdminStore."""

    def __init__(self, store: AdminStore):
        self._store = store

    def visible_to(self, requester: Identity) -> list[Identity]:
        return resolve_visible(self._store.directory_snapshot(), requester)

    def visible_ids(self, requester: Identity) -> frozenset[str]:
        return frozenset(identity.id for identity in self.visible_to(requester))

    def can_see(self, requester: Identity, target_id: str) -> bool:
        return target_id in self.visible_ids(requester)


def resolve_visible(snapshot: DirectorySnapshot, requester: Identity) -> list[Identity]:
    """Видимые identity для requester в пределах snapshot."""
    current = snapshot.get(requester.id) or requester

    match current.role:
        case Role.SUPERADMIN:
            return list(snapshot)
        case Role.ADMIN:
            return _admin_scope(snapshot, current)
        case Role.UNIT_MANAGER:
            return _unit_manager_scope(snapshot, current)
        case Role.USER:
            return [current]
        case _:
            return []


def _admin_scope(snapshot: DirectorySnapshot, admin: Identity) -> list[Identity]:
    group = admin.groups()

    in_group = [identity for identity in snapshot if identity.id in group]
    unit_managers = [
        identity
        for identity in snapshot
        if identity.role == Role.UNIT_MANAGER
        and (identity.created_by == admin.id or identity.id in group)
    ]
    unit_manager_ids = {um.id for um in unit_managers}
    users = [
        identity
        for identity in snapshot
        if identity.role == Role.USER and identity.created_by in unit_manager_ids
    ]
    return _unique(in_group, unit_managers, users)


def _unit_manager_scope(snapshot: DirectorySnapshot, manager: Identity) -> list[Identity]:
    return _unique(
        identity
        for identity in snapshot
        if identity.role == Role.USER
        and (identity.created_by == manager.id or identity.id in manager.groups())
    )


def _unique(*groups: Iterable[Identity]) -> list[Identity]:
    # Один и тот же identity может быть достижим несколькими путями
    seen: set[str] = set()
    result: list[Identity] = []
    for group in groups:
        for identity in group:
            if identity.id not in seen:
                seen.add(identity.id)
                result.append(identity)
    return result
