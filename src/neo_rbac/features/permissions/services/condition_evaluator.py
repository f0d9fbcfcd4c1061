"""Evaluation of advanced permission conditions.

One evaluator function per condition kind; all conditions of a permission
must hold.
"""

from typing import Callable, Dict, Iterable

from ....config.constants import ConditionKind
from ..entities.authorization import PrincipalContext, TargetOwnership
from ..entities.conditions import Condition


def _owned_by(condition: Condition, principal: PrincipalContext, target: TargetOwnership) -> bool:
    return target.owner_id is not None and target.owner_id == principal.person_id


def _same_company(condition: Condition, principal: PrincipalContext, target: TargetOwnership) -> bool:
    return principal.company_id is not None and target.company_id == principal.company_id


def _same_department(condition: Condition, principal: PrincipalContext, target: TargetOwnership) -> bool:
    return principal.department_id is not None and target.department_id == principal.department_id


def _status_equals(condition: Condition, principal: PrincipalContext, target: TargetOwnership) -> bool:
    return target.status == condition.value


ConditionHandler = Callable[[Condition, PrincipalContext, TargetOwnership], bool]

CONDITION_HANDLERS: Dict[ConditionKind, ConditionHandler] = {
    ConditionKind.OWNED_BY: _owned_by,
    ConditionKind.COMPANY_ID: _same_company,
    ConditionKind.DEPARTMENT_ID: _same_department,
    ConditionKind.STATUS: _status_equals,
}


class ConditionEvaluator:
    """Evaluates a permission's conditions against a target record."""

    def __init__(self, handlers: Dict[ConditionKind, ConditionHandler] = None):
        self._handlers = dict(handlers or CONDITION_HANDLERS)

    def evaluate(
        self,
        conditions: Iterable[Condition],
        principal: PrincipalContext,
        target: TargetOwnership
    ) -> bool:
        return all(self._handlers[c.kind](c, principal, target) for c in conditions)
