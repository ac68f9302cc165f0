"""
Access — иерархическое разграничение доступа.

- VisibilityResolver: кто кого видит
- IdentityCreationGate / RoleChangeGate / DeletionGate: правила записи
"""

from .gates import DeletionGate, HierarchyCheckResult, IdentityCreationGate, RoleChangeGate
from .visibility import VisibilityResolver, resolve_visible

__all__ = [
    "VisibilityResolver",
    "resolve_visible",
    "IdentityCreationGate",
    "RoleChangeGate",
    "DeletionGate",
    "HierarchyCheckResult",
]
