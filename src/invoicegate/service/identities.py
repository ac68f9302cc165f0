"""
IdentityService — операции над директорией для вызывающего слоя.

requester передается явно в каждую операцию; сервис не читает
request-scoped состояние.

Права requester проверяются по его текущей записи в директории: понижение
роли или удаление действует сразу, даже если вызывающий слой держит
устаревший объект.

Порядок create_identity:
1. Контракт payload (jsonschema + pydantic) → ValidationError
2. Актуальная запись requester, IdentityCreationGate → PermissionDenied
3. Уникальность email → Conflict(duplicate_email)
4. Существование group_ids → NotFound
5. Хеш пароля, новый sequence id, запись
"""

from typing import Any, Mapping, Optional, Union

from invoicegate.access.gates import DeletionGate, IdentityCreationGate, RoleChangeGate
from invoicegate.access.visibility import VisibilityResolver
from invoicegate.config import AdminConfig
from invoicegate.core.contracts.validators import parse_identity_request
from invoicegate.core.domain.identity import Identity, IdentityRequest
from invoicegate.core.domain.page import Page
from invoicegate.core.domain.role import Role, parse_role
from invoicegate.core.errors import Conflict, NotFound, PermissionDenied
from invoicegate.credentials import CredentialService
from invoicegate.logging import get_logger
from invoicegate.sequencing.counter_store import CounterStore
from invoicegate.storage.base import AdminStore

from .pagination import resolve_page

logger = get_logger(__name__)


class IdentityService:
    def __init__(
        self,
        store: AdminStore,
        credentials: CredentialService,
        config: Optional[AdminConfig] = None,
        counters: Optional[CounterStore] = None,
        resolver: Optional[VisibilityResolver] = None,
    ):
        self._store = store
        self._credentials = credentials
        self._config = config or AdminConfig()
        self._counters = counters or CounterStore(store)
        self._resolver = resolver or VisibilityResolver(store)
        self._creation_gate = IdentityCreationGate()
        self._role_change_gate = RoleChangeGate()
        self._deletion_gate = DeletionGate()

    def create_identity(
        self,
        requester: Identity,
        payload: Union[IdentityRequest, Mapping[str, Any]],
    ) -> Identity:
        """Создание identity с ролью, дочерней к роли requester."""
        request = payload if isinstance(payload, IdentityRequest) else parse_identity_request(payload)
        requester = self._current(requester)

        check = self._creation_gate.evaluate(requester.role, request.role)
        if not check.allowed:
            logger.warning(
                "create %s by %s denied: %s", request.role.value, requester.sequence_id, check.details
            )
            raise PermissionDenied(check.details)

        if self._store.find_identity_by_email(request.email) is not None:
            raise Conflict(f"Email {request.email} already exists", reason="duplicate_email")

        group = frozenset(request.group_ids)
        if group and request.role in (Role.ADMIN, Role.UNIT_MANAGER):
            snapshot = self._store.directory_snapshot()
            missing = sorted(gid for gid in group if snapshot.get(gid) is None)
            if missing:
                raise NotFound(f"group member(s) not found: {', '.join(missing)}")

        identity = Identity(
            display_name=request.display_name,
            email=request.email,
            credential_ref=self._credentials.hash_and_store(request.credential),
            role=request.role,
            created_by=requester.id,
            admin_group=group if request.role == Role.ADMIN else frozenset(),
            unit_group=group if request.role == Role.UNIT_MANAGER else frozenset(),
            sequence_id=self._counters.next_sequence_id(request.role),
        )
        self._store.insert_identity(identity)
        logger.info(
            "%s %s created by %s", identity.role.value, identity.sequence_id, requester.sequence_id
        )
        return identity

    def reassign_role(
        self,
        requester: Identity,
        target_id: str,
        new_role: Union[Role, str],
    ) -> str:
        """Смена роли (только SUPERADMIN).

        Sequence id перевыпускается тогда и только тогда, когда роль меняется;
        повторное назначение той же роли не трогает счетчик.

        Returns:
            Актуальный sequence id target
        """
        role = parse_role(new_role)
        requester = self._current(requester)
        target = self._store.get_identity(target_id)

        check = self._role_change_gate.evaluate(requester, target, role)
        if not check.allowed:
            raise PermissionDenied(check.details)
        if target is None:
            raise NotFound(f"User {target_id} not found")

        if target.role == role:
            return target.sequence_id

        updated = target.model_copy(
            update={"role": role, "sequence_id": self._counters.next_sequence_id(role)}
        )
        self._store.replace_identity(updated)
        logger.info(
            "role of %s changed %s -> %s, new id %s",
            target.sequence_id, target.role.value, role.value, updated.sequence_id,
        )
        return updated.sequence_id

    def delete_identity(self, requester: Identity, target_id: str) -> None:
        requester = self._current(requester)
        check = self._deletion_gate.evaluate(requester)
        if not check.allowed:
            raise PermissionDenied(check.details)
        if not self._store.delete_identity(target_id):
            raise NotFound(f"User {target_id} not found")
        logger.info("identity %s deleted by %s", target_id, requester.sequence_id)

    def _current(self, requester: Identity) -> Identity:
        """Актуальная запись requester: права определяет роль из директории."""
        current = self._store.get_identity(requester.id)
        if current is None:
            raise PermissionDenied(f"requester {requester.sequence_id} no longer exists")
        return current

    def list_visible(
        self,
        requester: Identity,
        page: Any = 1,
        limit: Optional[Any] = None,
    ) -> Page[Identity]:
        page, limit, offset = resolve_page(page, limit, self._config)
        visible = self._resolver.visible_to(requester)
        return Page[Identity](
            total=len(visible),
            page=page,
            limit=limit,
            items=visible[offset:offset + limit],
        )
