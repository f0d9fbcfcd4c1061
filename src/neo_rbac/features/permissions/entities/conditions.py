"""Advanced permission conditions.

Conditions are a closed vocabulary, parsed once into tagged values:

    ownedBy: "self"        target.ownerId must be the principal
    companyId: "same"      target.companyId must be the principal's company
    departmentId: "same"   target.departmentId must be the principal's department
    status: <value>        target.status must equal the value
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ....config.constants import ConditionKind
from ....core.exceptions import InvalidConditionError


_FIXED_VALUES = {
    ConditionKind.OWNED_BY: "self",
    ConditionKind.COMPANY_ID: "same",
    ConditionKind.DEPARTMENT_ID: "same",
}


@dataclass(frozen=True)
class Condition:
    """A single parsed condition."""

    kind: ConditionKind
    value: str

    def __post_init__(self):
        expected = _FIXED_VALUES.get(self.kind)
        if expected is not None and self.value != expected:
            raise InvalidConditionError(self.kind.value, self.value, f"expected {expected!r}")
        if self.kind is ConditionKind.STATUS and (not isinstance(self.value, str) or not self.value):
            raise InvalidConditionError(self.kind.value, self.value, "status must be a non-empty string")


def parse_conditions(raw: Optional[Mapping[str, Any]]) -> Tuple[Condition, ...]:
    """Parse a raw condition map; unknown keys raise InvalidConditionError."""
    if not raw:
        return ()
    conditions = []
    for key, value in raw.items():
        try:
            kind = ConditionKind(key)
        except ValueError:
            raise InvalidConditionError(key, value, "unknown condition key") from None
        conditions.append(Condition(kind=kind, value=value))
    return tuple(sorted(conditions, key=lambda c: c.kind.value))


def normalize_conditions(conditions: Any) -> Tuple[Condition, ...]:
    """Accept either a raw mapping or already-parsed conditions."""
    if conditions is None:
        return ()
    if isinstance(conditions, Mapping):
        return parse_conditions(conditions)
    conditions = tuple(conditions)
    for condition in conditions:
        if not isinstance(condition, Condition):
            raise InvalidConditionError(str(condition), condition, "not a Condition")
    return tuple(sorted(conditions, key=lambda c: c.kind.value))


def conditions_to_dict(conditions: Iterable[Condition]) -> Dict[str, str]:
    return {c.kind.value: c.value for c in conditions}
