"""Построители тестовых данных."""

from typing import Optional

from invoicegate.core.domain import Identity, Role


def identity_payload(name: str, role: Role, group_ids: Optional[list[str]] = None) -> dict:
    payload = {
        "displayName": name,
        "email": f"{name.lower()}@example.com",
        "credential": f"{name}-secret",
        "role": role.value,
    }
    if group_ids is not None:
        payload["groupIds"] = group_ids
    return payload


def make_identity(
    identity_id: str,
    role: Role,
    created_by: Optional[str] = None,
    admin_group=frozenset(),
    unit_group=frozenset(),
    seq: int = 1,
) -> Identity:
    """Identity напрямую, минуя сервисы (для чистых проверок resolve_visible)."""
    prefix = {"SUPERADMIN": "SA", "ADMIN": "A", "UNIT_MANAGER": "UM", "USER": "U"}[role.value]
    return Identity(
        id=identity_id,
        display_name=identity_id,
        email=f"{identity_id}@example.com",
        credential_ref="ref",
        role=role,
        created_by=created_by,
        admin_group=frozenset(admin_group),
        unit_group=frozenset(unit_group),
        sequence_id=f"{prefix}{seq}",
    )


def invoice_payload(number: int, invoice_date: str, amount: float = 100.0, **extra) -> dict:
    return {
        "invoiceNumber": number,
        "invoiceDate": invoice_date,
        "invoiceAmount": amount,
        **extra,
    }
