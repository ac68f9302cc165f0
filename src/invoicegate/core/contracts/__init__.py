"""
Contract Validation Module

Модуль для валидации JSON payload вызывающего слоя.
"""

from .validators import (
    ContractValidator,
    IdentityRequestValidator,
    InvoiceDraftValidator,
    InvoicePatchValidator,
    RegistrationRequestValidator,
    SchemaLoader,
    parse_identity_request,
    parse_invoice_draft,
    parse_invoice_patch,
    parse_registration_request,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "IdentityRequestValidator",
    "RegistrationRequestValidator",
    "InvoiceDraftValidator",
    "InvoicePatchValidator",
    # Functions
    "parse_identity_request",
    "parse_registration_request",
    "parse_invoice_draft",
    "parse_invoice_patch",
]
