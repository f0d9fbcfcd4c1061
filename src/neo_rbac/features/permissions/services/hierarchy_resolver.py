"""Role hierarchy resolution.

Pure functions over the role catalog: the effective highest role of a set of
assignments, and whether one role may assign, revoke or restructure another.
Lower level means higher privilege. Nothing here performs I/O.
"""

import logging
from typing import Iterable, Optional, Tuple, Union

from ....config.constants import HierarchyLevels
from ....core.exceptions import InvalidHierarchyLevelError
from ..entities.role_assignment import RoleAssignment
from ..entities.role_catalog import DEFAULT_ROLE_CATALOG, RoleCatalog
from ..entities.role_type import NO_ROLE, RoleType


logger = logging.getLogger(__name__)

RoleLike = Union[str, RoleType, RoleAssignment]


class RoleHierarchyResolver:
    """Hierarchy rules bound to one role catalog."""

    def __init__(
        self,
        role_catalog: RoleCatalog = DEFAULT_ROLE_CATALOG,
        min_movable_level: int = HierarchyLevels.MIN_MOVABLE,
        max_level: int = HierarchyLevels.MAX,
    ):
        self.role_catalog = role_catalog
        self.min_movable_level = min_movable_level
        self.max_level = max_level

    def with_catalog(self, role_catalog: RoleCatalog) -> "RoleHierarchyResolver":
        if role_catalog is self.role_catalog:
            return self
        return RoleHierarchyResolver(role_catalog, self.min_movable_level, self.max_level)

    def resolve(self, role: Union[str, RoleType]) -> RoleType:
        """Look a role up in this resolver's catalog (levels may be overridden)."""
        if isinstance(role, RoleType):
            return NO_ROLE if role.is_sentinel else self.role_catalog.get(role.code)
        return self.role_catalog.get(role)

    def level_of(self, role: Union[str, RoleType]) -> int:
        return self.resolve(role).level

    def highest_role(self, roles: Iterable[RoleLike]) -> RoleType:
        """Return the most privileged role of a set.

        Ties at the minimum level go to the single primary assignment if there
        is exactly one, otherwise to the lexicographically smallest code, so
        the result never depends on input order. An empty set yields NO_ROLE.
        """
        entries = []
        for item in roles:
            if isinstance(item, RoleAssignment):
                entries.append((self.resolve(item.role_type), item.is_primary))
            else:
                entries.append((self.resolve(item), False))

        entries = [(role_type, primary) for role_type, primary in entries if not role_type.is_sentinel]
        if not entries:
            return NO_ROLE

        min_level = min(role_type.level for role_type, _ in entries)
        tied = {role_type.code: role_type for role_type, _ in entries if role_type.level == min_level}
        if len(tied) == 1:
            return next(iter(tied.values()))

        primary_codes = {role_type.code for role_type, primary in entries if primary and role_type.code in tied}
        if len(primary_codes) == 1:
            return tied[primary_codes.pop()]
        return tied[min(tied)]

    def can_assign(self, assigner_highest: Union[str, RoleType], target_role: Union[str, RoleType]) -> bool:
        """Strict privilege monotonicity: only strictly less privileged roles may be assigned."""
        target = self.resolve(target_role)
        assigner = self.resolve(assigner_highest)
        if assigner.is_sentinel:
            return False
        return target.level > assigner.level

    def is_subordinate(self, role: Union[str, RoleType], other: Union[str, RoleType]) -> bool:
        """Whether ``role`` sits strictly below ``other`` in the hierarchy."""
        return self.level_of(role) > self.level_of(other)

    def can_manage_hierarchy(self, highest: Union[str, RoleType]) -> bool:
        role_type = self.resolve(highest)
        return not role_type.is_sentinel and role_type.level <= HierarchyLevels.MANAGE_HIERARCHY_MAX

    def assignable_roles(self, highest: Union[str, RoleType]) -> Tuple[RoleType, ...]:
        """Role types the holder of ``highest`` may assign, most privileged first."""
        assigner = self.resolve(highest)
        if assigner.is_sentinel:
            return ()
        return tuple(r for r in self.role_catalog.all_role_types() if r.level > assigner.level)

    def validate_level(self, new_level: int) -> None:
        """Level 0 is reserved for the super-admin tier and is never produced by a move."""
        if not isinstance(new_level, int) or isinstance(new_level, bool) or \
                not self.min_movable_level <= new_level <= self.max_level:
            raise InvalidHierarchyLevelError(new_level, self.min_movable_level, self.max_level)

    def can_move(self, mover_highest: Union[str, RoleType], role: Union[str, RoleType], new_level: int) -> bool:
        """Whether the mover may place ``role`` at ``new_level``.

        The mover must manage the hierarchy, and both the role's current level
        and its new level must sit strictly below the mover.
        """
        self.validate_level(new_level)
        mover = self.resolve(mover_highest)
        target = self.resolve(role)
        if not self.can_manage_hierarchy(mover):
            return False
        if target.level <= mover.level or new_level <= mover.level:
            logger.debug(
                f"Move of {target.code} to level {new_level} rejected for mover at level {mover.level}"
            )
            return False
        return True

    def explain_level(self, role: Optional[Union[str, RoleType]]) -> str:
        if role is None:
            return NO_ROLE.code
        role_type = self.resolve(role)
        return f"{role_type.code}@{role_type.level}"
