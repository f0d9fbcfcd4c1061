"""Permission catalog.

Static registry of permission identifiers grouped by category, plus the
resource field specifications used for field redaction. The catalog is
immutable after construction and safe to share across tasks and threads.

Permission identifiers are either dotted ``resource.action`` strings
(``users.read``) or uppercase capability flags (``ROLE_MANAGEMENT``).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from ....core.exceptions import UnknownPermissionError, UnknownResourceError, ValidationError
from .resource_fields import DEFAULT_RESOURCE_SPECS, ResourceFieldSpec


@dataclass(frozen=True)
class PermissionDefinition:
    """A registered permission identifier."""

    code: str
    category: str
    description: str = ""
    is_dangerous: bool = False

    def __post_init__(self):
        if not self.code or self.code != self.code.strip():
            raise ValidationError(f"Invalid permission code: {self.code!r}")

    @property
    def is_capability(self) -> bool:
        """Capability flags are uppercase identifiers without a resource part."""
        return "." not in self.code

    @property
    def resource(self) -> Optional[str]:
        return None if self.is_capability else self.code.split(".", 1)[0]

    @property
    def action(self) -> Optional[str]:
        return None if self.is_capability else self.code.split(".", 1)[1]


class PermissionCatalog:
    """Frozen lookup table of permissions and resource field specifications."""

    def __init__(
        self,
        definitions: Iterable[PermissionDefinition],
        resources: Iterable[ResourceFieldSpec] = ()
    ):
        permissions: Dict[str, PermissionDefinition] = {}
        for definition in definitions:
            if definition.code in permissions:
                raise ValidationError(f"Duplicate permission code: {definition.code}")
            permissions[definition.code] = definition

        specs: Dict[str, ResourceFieldSpec] = {}
        for spec in resources:
            if spec.resource in specs:
                raise ValidationError(f"Duplicate resource spec: {spec.resource}")
            specs[spec.resource] = spec

        self._permissions: Mapping[str, PermissionDefinition] = MappingProxyType(permissions)
        self._resources: Mapping[str, ResourceFieldSpec] = MappingProxyType(specs)
        self._permission_ids: FrozenSet[str] = frozenset(permissions)

    @property
    def permission_ids(self) -> FrozenSet[str]:
        return self._permission_ids

    def contains(self, code: str) -> bool:
        return code in self._permissions

    def get(self, code: str) -> PermissionDefinition:
        try:
            return self._permissions[code]
        except KeyError:
            raise UnknownPermissionError([code]) from None

    def validate(self, codes: Iterable[str]) -> FrozenSet[str]:
        """Validate a set of permission identifiers.

        Raises UnknownPermissionError naming every unknown identifier, so a
        caller can reject a whole batch before writing any of it.
        """
        codes = frozenset(codes)
        unknown = codes - self._permission_ids
        if unknown:
            raise UnknownPermissionError(unknown)
        return codes

    def categories(self) -> Dict[str, Tuple[str, ...]]:
        """Permission identifiers grouped by category."""
        grouped: Dict[str, list] = {}
        for definition in self._permissions.values():
            grouped.setdefault(definition.category, []).append(definition.code)
        return {category: tuple(sorted(codes)) for category, codes in sorted(grouped.items())}

    def by_category(self, category: str) -> Tuple[str, ...]:
        return self.categories().get(category, ())

    def dangerous_permissions(self) -> FrozenSet[str]:
        return frozenset(code for code, d in self._permissions.items() if d.is_dangerous)

    def has_resource(self, resource: str) -> bool:
        return resource in self._resources

    def resource_spec(self, resource: str) -> ResourceFieldSpec:
        try:
            return self._resources[resource]
        except KeyError:
            raise UnknownResourceError(resource) from None

    @property
    def resources(self) -> Tuple[str, ...]:
        return tuple(sorted(self._resources))

    def __len__(self) -> int:
        return len(self._permissions)

    def __contains__(self, code: object) -> bool:
        return code in self._permissions


def _crud(resource: str, *extra: str, dangerous: Iterable[str] = ("delete",)) -> Tuple[PermissionDefinition, ...]:
    dangerous = set(dangerous)
    actions = ("create", "read", "update", "delete") + extra
    return tuple(
        PermissionDefinition(
            code=f"{resource}.{action}",
            category=resource,
            description=f"{action.replace('_', ' ').capitalize()} {resource}",
            is_dangerous=action in dangerous,
        )
        for action in actions
    )


def _actions(category: str, resource: str, *actions: str, dangerous: Iterable[str] = ()) -> Tuple[PermissionDefinition, ...]:
    dangerous = set(dangerous)
    return tuple(
        PermissionDefinition(
            code=f"{resource}.{action}",
            category=category,
            description=f"{action.replace('_', ' ').capitalize()} {resource}",
            is_dangerous=action in dangerous,
        )
        for action in actions
    )


def _capability(code: str, category: str, description: str, is_dangerous: bool = False) -> PermissionDefinition:
    return PermissionDefinition(code=code, category=category, description=description, is_dangerous=is_dangerous)


DEFAULT_PERMISSIONS: Tuple[PermissionDefinition, ...] = (
    *_crud("users", "manage_roles", dangerous=("delete", "manage_roles")),
    *_crud("roles", "assign", dangerous=("delete", "assign")),
    *_crud("companies", "manage_settings"),
    *_crud("persons", "export", dangerous=("delete", "export")),
    *_crud("employees"),
    *_crud("trainers"),
    *_crud("courses", "assign"),
    *_crud("training", "conduct"),
    *_crud("documents", "download"),
    *_crud("sites"),
    *_crud("departments"),
    *_actions("gdpr", "gdpr", "read", "export", "delete", dangerous=("export", "delete")),
    *_actions("reports", "reports", "view", "export"),
    *_actions("analytics", "analytics", "view"),
    *_actions("system", "system", "settings", "billing", "audit", "backup",
              dangerous=("settings", "billing", "backup")),
    *_actions("hierarchy", "hierarchy", "read", "manage", dangerous=("manage",)),
    _capability("ROLE_MANAGEMENT", "capabilities", "Manage roles and role assignments", True),
    _capability("USER_MANAGEMENT", "capabilities", "Manage user accounts", True),
    _capability("TENANT_MANAGEMENT", "capabilities", "Manage tenants", True),
    _capability("HIERARCHY_MANAGEMENT", "capabilities", "Restructure the role hierarchy", True),
    _capability("ADMIN_PANEL", "capabilities", "Access the administration panel"),
    _capability("SYSTEM_SETTINGS", "capabilities", "Change system settings", True),
    _capability("VIEW_FORM_TEMPLATES", "forms", "View form templates"),
    _capability("MANAGE_FORM_TEMPLATES", "forms", "Create and edit form templates"),
    _capability("VIEW_FORM_SUBMISSIONS", "forms", "View form submissions"),
    _capability("VIEW_CMS", "cms", "View public CMS content"),
    _capability("MANAGE_CMS", "cms", "Publish public CMS content"),
)


DEFAULT_PERMISSION_CATALOG = PermissionCatalog(DEFAULT_PERMISSIONS, DEFAULT_RESOURCE_SPECS)
