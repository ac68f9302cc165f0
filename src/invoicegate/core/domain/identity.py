"""
Identity — модель пользователя в директории.

Immutable Pydantic модель. Любое изменение (смена роли, новый sequence id)
создает новый экземпляр через model_copy(update=...).

Инварианты:
1. Ровно одна роль на identity
2. created_by равен None только у bootstrap SUPERADMIN
3. admin_group назначается только ADMIN, unit_group только UNIT_MANAGER
   (при смене роли группы сохраняются, но для видимости используется
   только группа текущей роли)
4. sequence_id = префикс роли + значение счетчика роли
"""

import re
from datetime import datetime, timezone
from typing import Final, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from .role import Role

SEQUENCE_ID_PATTERN: Final[str] = r"^(SA|A|UM|U|X)[1-9]\d*$"

_EMAIL_RE: Final[re.Pattern] = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def new_identity_id() -> str:
    return uuid4().hex


def normalize_email(email: str) -> str:
    """Email сравнивается без учета регистра и крайних пробелов."""
    return email.strip().lower()


def _validated_email(v: str) -> str:
    v = normalize_email(v)
    if not _EMAIL_RE.match(v):
        raise ValueError(f"malformed email {v!r}")
    return v


class Identity(BaseModel):
    """
    Запись директории.

    admin_group — peer-группа ADMIN уровня (id identity, которые видит ADMIN).
    unit_group — peer-группа UNIT_MANAGER уровня (id USER, которых видит UM).
    """

    id: str = Field(default_factory=new_identity_id, min_length=1, description="Уникальный id")
    display_name: str = Field(..., min_length=1, description="Отображаемое имя")
    email: str = Field(..., description="Email (уникален без учета регистра)")
    credential_ref: str = Field(..., min_length=1, description="Ссылка на учетные данные")
    role: Role = Field(..., description="Роль в иерархии")
    created_by: Optional[str] = Field(None, description="id создателя (None только для bootstrap)")
    admin_group: frozenset[str] = Field(default_factory=frozenset)
    unit_group: frozenset[str] = Field(default_factory=frozenset)
    sequence_id: str = Field(..., pattern=SEQUENCE_ID_PATTERN, description="Например 'A12'")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validated_email(v)

    @model_validator(mode="after")
    def validate_hierarchy(self) -> "Identity":
        if self.created_by is None and self.role != Role.SUPERADMIN:
            raise ValueError(f"{self.role.value} identity requires a creator")
        return self

    def groups(self) -> frozenset[str]:
        """Peer-группа, соответствующая роли (пустая для SUPERADMIN/USER)."""
        if self.role == Role.ADMIN:
            return self.admin_group
        if self.role == Role.UNIT_MANAGER:
            return self.unit_group
        return frozenset()


class IdentityRequest(BaseModel):
    """Запрос на создание identity (после проверки контракта)."""

    display_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    credential: str = Field(..., min_length=1, description="Пароль в открытом виде")
    role: Role
    group_ids: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validated_email(v)


class RegistrationRequest(BaseModel):
    """Запрос на bootstrap-регистрацию SUPERADMIN."""

    display_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    credential: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validated_email(v)
