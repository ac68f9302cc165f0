"""
Domain models and value objects.

Contains Role hierarchy, Identity, Invoice, fiscal year derivation and Page.
"""

from invoicegate.core.domain.fiscal_year import (
    FISCAL_YEAR_START_MONTH,
    fiscal_year_for,
    is_fiscal_year_label,
)
from invoicegate.core.domain.identity import (
    Identity,
    IdentityRequest,
    RegistrationRequest,
    normalize_email,
)
from invoicegate.core.domain.invoice import Invoice, InvoiceDraft, InvoicePatch
from invoicegate.core.domain.page import Page
from invoicegate.core.domain.role import (
    PARENT_ROLE,
    SEQUENCE_PREFIX,
    UNKNOWN_ROLE_PREFIX,
    Role,
    child_role,
    parent_role,
    parse_role,
    sequence_prefix,
)

__all__ = [
    # Role module
    "Role",
    "PARENT_ROLE",
    "SEQUENCE_PREFIX",
    "UNKNOWN_ROLE_PREFIX",
    "parent_role",
    "child_role",
    "sequence_prefix",
    "parse_role",
    # Identity model
    "Identity",
    "IdentityRequest",
    "RegistrationRequest",
    "normalize_email",
    # Invoice model
    "Invoice",
    "InvoiceDraft",
    "InvoicePatch",
    # Fiscal year
    "FISCAL_YEAR_START_MONTH",
    "fiscal_year_for",
    "is_fiscal_year_label",
    # Pagination
    "Page",
]
