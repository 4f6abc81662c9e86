"""Pure-function rules engine pattern.

Rules are stateless functions: (entity, context) -> RuleResult.
No database, no side effects. This makes them:
- Trivially testable (pure input/output)
- Composable (chain multiple rules)
- Auditable (deterministic, explainable)

Services evaluate rules against data they already loaded and turn a failed
result into a domain error with enforce().
"""

from dataclasses import dataclass, field
from typing import Any

from core.errors import TaskHubError, ValidationError


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class RuleSetResult:
    """Aggregate outcome of multiple rules."""

    all_passed: bool
    results: list[RuleResult]
    failed: list[RuleResult] = field(default_factory=list)

    def __post_init__(self):
        self.failed = [r for r in self.results if not r.passed]
        self.all_passed = len(self.failed) == 0


# ---------------------------------------------------------------------------
# Rule composition
# ---------------------------------------------------------------------------

def evaluate_rules(*rules: RuleResult) -> RuleSetResult:
    """Compose multiple rule results into a single aggregate.

    Example::

        result = evaluate_rules(
            check_parent_comment(parent, subtask_id),
            check_not_participant(task_participants, user_id),
        )
        if not result.all_passed:
            ...
    """
    return RuleSetResult(
        all_passed=all(r.passed for r in rules),
        results=list(rules),
    )


def enforce(
    result: RuleResult | RuleSetResult,
    error: type[TaskHubError] = ValidationError,
) -> None:
    """Raise `error` with the first failure message if a rule did not pass."""
    if isinstance(result, RuleSetResult):
        if not result.all_passed:
            raise error(result.failed[0].message)
        return
    if not result.passed:
        raise error(result.message)
