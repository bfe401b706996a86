"""
Condition evaluation engine for the decisioning core.
"""

import math
import time
from typing import Dict, Any, Optional, List, Tuple, Union

from shared.errors import MalformedConditionError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .models import (
    Condition, MatcherCondition, GroupCondition, MalformedCondition,
    MatcherOperator, GroupLogic, Rule, RuleSet,
    EvaluationContext, EvaluationResult, ConditionDiagnostic, DEFAULT_MAX_DEPTH,
    as_evaluation_context
)
from .parser import parse_condition


def _to_number(value: Any) -> Optional[float]:
    """Best-effort numeric coercion; None when the value is not numeric."""
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    return None if math.isnan(number) else number


def _to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        left, right = _to_bool(actual), _to_bool(expected)
        return left is not None and left == right

    left_number, right_number = _to_number(actual), _to_number(expected)
    if left_number is not None and right_number is not None:
        return left_number == right_number

    if isinstance(actual, str) and isinstance(expected, str):
        return actual.casefold() == expected.casefold()

    return actual == expected


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple, set)):
        return any(_equals(item, expected) for item in actual)
    if isinstance(actual, dict):
        # Unhashable matcher values can never be keys
        try:
            return expected in actual
        except TypeError:
            return False
    if isinstance(actual, str):
        return str(expected).casefold() in actual.casefold()
    return False


class ConditionEvaluator:
    """Recursive evaluator for condition trees.

    The evaluator keeps no state between calls. Children are visited in
    declared order; ``and`` stops at the first false child and ``or`` at the
    first true one. A node that cannot be evaluated makes the whole tree
    evaluate to false and is reported as a diagnostic.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH, metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("messaging.rules.evaluator")
        self.max_depth = max_depth
        self.metrics = metrics

    def evaluate(self, node: Union[Condition, Dict[str, Any], None], context: Any) -> bool:
        """Evaluate a condition against a context."""
        return self.evaluate_condition(node, context).matched

    def evaluate_condition(self, node: Union[Condition, Dict[str, Any], None], context: Any) -> EvaluationResult:
        """Evaluate a condition and collect diagnostics."""
        start_time = time.time()

        if isinstance(node, dict):
            node = parse_condition(node, max_depth=self.max_depth)

        if node is None:
            return EvaluationResult(
                matched=True,
                evaluation_time_ms=(time.time() - start_time) * 1000
            )

        evaluation_context = as_evaluation_context(context)
        diagnostics: List[ConditionDiagnostic] = []

        try:
            matched = self._evaluate_node(node, evaluation_context, 1, "$")
        except MalformedConditionError as e:
            matched = False
            diagnostic = ConditionDiagnostic(code=e.code, message=e.message, path=e.path)
            diagnostics.append(diagnostic)
            self._report(diagnostic)
        except RecursionError:
            matched = False
            diagnostic = ConditionDiagnostic(
                code="DEPTH_EXCEEDED",
                message="condition tree too deep to evaluate"
            )
            diagnostics.append(diagnostic)
            self._report(diagnostic)
        except Exception as e:
            matched = False
            diagnostic = ConditionDiagnostic(code="EVALUATION_ERROR", message=str(e))
            diagnostics.append(diagnostic)
            self._report(diagnostic)

        return EvaluationResult(
            matched=matched,
            diagnostics=diagnostics,
            evaluation_time_ms=(time.time() - start_time) * 1000
        )

    def evaluate_rule(self, rule: Rule, context: Any) -> EvaluationResult:
        """Evaluate a rule's condition. Rules without a condition always match."""
        return self.evaluate_condition(rule.condition, context)

    def matching_rules(self, ruleset: RuleSet, context: Any) -> Tuple[List[Rule], List[ConditionDiagnostic]]:
        """Rules of a ruleset whose condition holds, in declared order.

        Each rule is judged on its own, so a malformed rule never affects
        its siblings.
        """
        evaluation_context = as_evaluation_context(context)
        matched: List[Rule] = []
        diagnostics: List[ConditionDiagnostic] = []

        for rule in ruleset.rules:
            result = self.evaluate_rule(rule, evaluation_context)
            diagnostics.extend(result.diagnostics)
            if result.matched:
                matched.append(rule)

        return matched, diagnostics

    def _evaluate_node(self, node: Condition, context: EvaluationContext, depth: int, path: str) -> bool:
        if depth > self.max_depth:
            raise MalformedConditionError(
                f"condition nesting exceeds {self.max_depth} levels", path, code="DEPTH_EXCEEDED"
            )

        if isinstance(node, MatcherCondition):
            return self._evaluate_matcher(node, context, path)

        if isinstance(node, GroupCondition):
            return self._evaluate_group(node, context, depth, path)

        if isinstance(node, MalformedCondition):
            raise MalformedConditionError(node.reason, path)

        raise MalformedConditionError(
            f"unsupported condition node {type(node).__name__}", path
        )

    def _evaluate_group(self, group: GroupCondition, context: EvaluationContext, depth: int, path: str) -> bool:
        children = group.conditions

        if group.logic == GroupLogic.AND:
            for index, child in enumerate(children):
                if not self._evaluate_node(child, context, depth + 1, f"{path}.conditions[{index}]"):
                    return False
            return True

        if group.logic == GroupLogic.OR:
            for index, child in enumerate(children):
                if self._evaluate_node(child, context, depth + 1, f"{path}.conditions[{index}]"):
                    return True
            return False

        if group.logic == GroupLogic.NOT:
            if len(children) != 1:
                raise MalformedConditionError(
                    "'not' group needs exactly one condition", path
                )
            return not self._evaluate_node(children[0], context, depth + 1, f"{path}.conditions[0]")

        raise MalformedConditionError(f"unknown group logic {group.logic!r}", path)

    def _evaluate_matcher(self, matcher: MatcherCondition, context: EvaluationContext, path: str) -> bool:
        try:
            operator = MatcherOperator(matcher.operator)
        except ValueError:
            raise MalformedConditionError(
                f"unknown matcher {matcher.operator!r}", path
            )

        if not isinstance(matcher.key, str) or not matcher.key:
            raise MalformedConditionError("matcher is missing 'key'", path)

        found, actual = context.lookup(matcher.key)
        present = found and actual is not None

        if operator == MatcherOperator.EXISTS:
            return present

        if operator == MatcherOperator.NOT_EXISTS:
            return not present

        if not matcher.values:
            raise MalformedConditionError(
                f"matcher '{operator.value}' needs at least one value", path
            )

        # Absent keys never match a comparison
        if not present:
            return False

        if operator == MatcherOperator.NOT_EQUALS:
            return not any(_equals(actual, value) for value in matcher.values)

        if operator == MatcherOperator.NOT_CONTAINS:
            return not any(_contains(actual, value) for value in matcher.values)

        return any(self._compare(operator, actual, value) for value in matcher.values)

    def _compare(self, operator: MatcherOperator, actual: Any, expected: Any) -> bool:
        """Compare a context value against one matcher value."""
        if operator == MatcherOperator.EQUALS:
            return _equals(actual, expected)

        elif operator == MatcherOperator.CONTAINS:
            return _contains(actual, expected)

        elif operator == MatcherOperator.STARTS_WITH:
            return isinstance(actual, str) and actual.casefold().startswith(str(expected).casefold())

        elif operator == MatcherOperator.ENDS_WITH:
            return isinstance(actual, str) and actual.casefold().endswith(str(expected).casefold())

        left, right = _to_number(actual), _to_number(expected)
        if left is None or right is None:
            return False

        if operator == MatcherOperator.GREATER_THAN:
            return left > right

        elif operator == MatcherOperator.GREATER_EQUAL:
            return left >= right

        elif operator == MatcherOperator.LESS_THAN:
            return left < right

        elif operator == MatcherOperator.LESS_EQUAL:
            return left <= right

        return False

    def _report(self, diagnostic: ConditionDiagnostic):
        self.logger.warning(
            "Condition not evaluable, treating as non-match",
            code=diagnostic.code,
            reason=diagnostic.message,
            path=diagnostic.path
        )
        if self.metrics is not None:
            self.metrics.record_condition_diagnostic(diagnostic.code)
