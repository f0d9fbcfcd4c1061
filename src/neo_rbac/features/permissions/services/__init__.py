"""Permission services.

Pure hierarchy, scope, condition and redaction rules, the permission
evaluator, and the AuthorizationEngine that orchestrates them.
"""

from .authorization_engine import AuthorizationEngine
from .condition_evaluator import CONDITION_HANDLERS, ConditionEvaluator
from .field_redaction import FieldRedactionFilter
from .hierarchy_resolver import RoleHierarchyResolver
from .permission_evaluator import PermissionEvaluator, guarded_store_call
from .scope_resolver import ScopeResolver

__all__ = [
    "AuthorizationEngine",
    "PermissionEvaluator",
    "RoleHierarchyResolver",
    "ScopeResolver",
    "ConditionEvaluator",
    "CONDITION_HANDLERS",
    "FieldRedactionFilter",
    "guarded_store_call",
]
