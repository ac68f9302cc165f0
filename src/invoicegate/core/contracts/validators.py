"""
JSON Schema Contract Validators

Модуль для валидации входящих payload (dict из HTTP-слоя) согласно JSON Schema
контрактам и преобразования их в доменные модели.
Использует библиотеку jsonschema для проверки соответствия данных схемам.

Схемы:
- identity_request.json     (создание identity)
- registration_request.json (bootstrap SUPERADMIN)
- invoice_draft.json        (создание счета)
- invoice_patch.json        (обновление счета)

Ошибки jsonschema и pydantic преобразуются в invoicegate ValidationError с
путем до поля.
"""

import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping

import jsonschema
from jsonschema import Draft202012Validator
from pydantic import ValidationError as PydanticValidationError

from invoicegate.core.domain.identity import IdentityRequest, RegistrationRequest
from invoicegate.core.domain.invoice import InvoiceDraft, InvoicePatch
from invoicegate.core.errors import ValidationError


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """
    Загрузчик JSON Schema файлов.

    Схемы поставляются вместе с пакетом в core/contracts/schema/.
    """

    def __init__(self, schema_dir: Path | None = None):
        self._schema_dir = schema_dir or Path(__file__).parent / "schema"
        if not self._schema_dir.exists():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")

        # Кэш загруженных схем
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Загрузка JSON Schema файла.

        Args:
            schema_name: Имя схемы без расширения (например, 'invoice_draft')

        Returns:
            Загруженная схема как dict

        Raises:
            FileNotFoundError: Если файл схемы не найден
            ValueError: Если схема не проходит meta-validation
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e}")

        self._schemas[schema_name] = schema
        return schema


# Глобальный экземпляр загрузчика
_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """
    Базовый класс для валидаторов контрактов.

    Инкапсулирует логику валидации данных против JSON Schema.
    """

    def __init__(self, schema_name: str):
        self.schema_name = schema_name
        self.schema = _SCHEMA_LOADER.load_schema(schema_name)
        self.validator = Draft202012Validator(self.schema)

    def validate(self, data: Mapping[str, Any]) -> None:
        """
        Валидация данных против схемы.

        Raises:
            ValidationError: первая ошибка (по пути до поля) с указанием поля
        """
        errors = sorted(self.validator.iter_errors(data), key=lambda e: list(e.path))
        if not errors:
            return
        first = errors[0]
        field = ".".join(str(p) for p in first.path) or None
        if field is None and first.validator == "required":
            # "'x' is a required property": поле известно только из сообщения
            field = first.message.split("'")[1] if "'" in first.message else None
        raise ValidationError(first.message, field=field)

    def is_valid(self, data: Mapping[str, Any]) -> bool:
        return self.validator.is_valid(data)

    def iter_errors(self, data: Mapping[str, Any]) -> Iterator[jsonschema.ValidationError]:
        return self.validator.iter_errors(data)


class IdentityRequestValidator(ContractValidator):
    def __init__(self):
        super().__init__("identity_request")


class RegistrationRequestValidator(ContractValidator):
    def __init__(self):
        super().__init__("registration_request")


class InvoiceDraftValidator(ContractValidator):
    def __init__(self):
        super().__init__("invoice_draft")


class InvoicePatchValidator(ContractValidator):
    def __init__(self):
        super().__init__("invoice_patch")


# =============================================================================
# PAYLOAD → DOMAIN
# =============================================================================


def _json_ready(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Python-вызовы могут передавать date вместо ISO-строки."""
    return {
        key: value.isoformat() if isinstance(value, date) else value
        for key, value in data.items()
    }


def _build(model, values: Dict[str, Any]):
    try:
        return model(**values)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or None
        raise ValidationError(first["msg"], field=field) from None


def _require_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError(f"payload must be an object, got {type(data).__name__}")
    return data


def parse_identity_request(data: Mapping[str, Any]) -> IdentityRequest:
    """Проверка payload создания identity и сборка IdentityRequest.

    Роль проверяется на принадлежность Role здесь же (pydantic enum).
    """
    data = _json_ready(_require_mapping(data))
    IdentityRequestValidator().validate(data)
    return _build(
        IdentityRequest,
        {
            "display_name": data["displayName"],
            "email": data["email"],
            "credential": data["credential"],
            "role": data["role"],
            "group_ids": list(data.get("groupIds") or []),
        },
    )


def parse_registration_request(data: Mapping[str, Any]) -> RegistrationRequest:
    data = _json_ready(_require_mapping(data))
    RegistrationRequestValidator().validate(data)
    return _build(
        RegistrationRequest,
        {
            "display_name": data["displayName"],
            "email": data["email"],
            "credential": data["credential"],
        },
    )


def parse_invoice_draft(data: Mapping[str, Any]) -> InvoiceDraft:
    """Проверка payload счета. fiscalYear из payload отбрасывается."""
    data = _json_ready(_require_mapping(data))
    InvoiceDraftValidator().validate(data)
    return _build(
        InvoiceDraft,
        {
            "number": data["invoiceNumber"],
            "invoice_date": data["invoiceDate"][:10],
            "amount": data["invoiceAmount"],
        },
    )


def parse_invoice_patch(data: Mapping[str, Any]) -> InvoicePatch:
    data = _json_ready(_require_mapping(data))
    InvoicePatchValidator().validate(data)
    values: Dict[str, Any] = {}
    if data.get("invoiceDate") is not None:
        values["invoice_date"] = data["invoiceDate"][:10]
    if data.get("invoiceAmount") is not None:
        values["amount"] = data["invoiceAmount"]
    return _build(InvoicePatch, values)
