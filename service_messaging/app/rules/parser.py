"""
Parse rules documents from their wire format.

Condition nodes that cannot be understood are kept in the tree as
``MalformedCondition`` so that evaluation can report them and fail
closed; parsing a condition never raises.
"""

import json
from typing import Dict, Any, Optional, List

from shared.logging import get_logger
from shared.errors import MalformedPayloadError
from .models import (
    Condition, ConditionType, MatcherCondition, GroupCondition, MalformedCondition,
    MatcherOperator, GroupLogic, Consequence, Rule, RuleSet, DEFAULT_MAX_DEPTH
)

logger = get_logger("messaging.rules.parser")

VALUELESS_OPERATORS = (MatcherOperator.EXISTS, MatcherOperator.NOT_EXISTS)


def _malformed(reason: str, definition: Any) -> MalformedCondition:
    logger.warning("Malformed condition", reason=reason)
    return MalformedCondition(reason=reason, definition=definition)


def _normalized(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _parse_matcher(definition: Dict[str, Any]) -> Condition:
    key = definition.get("key")
    if not isinstance(key, str) or not key:
        return _malformed("matcher is missing 'key'", definition)

    try:
        operator = MatcherOperator(_normalized(definition.get("matcher")))
    except ValueError:
        return _malformed(f"unknown matcher '{definition.get('matcher')}'", definition)

    values = definition.get("values")
    if values is None and operator in VALUELESS_OPERATORS:
        values = []
    if not isinstance(values, list):
        return _malformed("matcher is missing 'values'", definition)
    if not values and operator not in VALUELESS_OPERATORS:
        return _malformed(f"matcher '{operator.value}' needs at least one value", definition)

    return MatcherCondition(key=key, operator=operator, values=tuple(values))


def _parse_group(definition: Dict[str, Any], depth: int, max_depth: int) -> Condition:
    try:
        logic = GroupLogic(_normalized(definition.get("logic")))
    except ValueError:
        return _malformed(f"group has invalid 'logic' {definition.get('logic')!r}", definition)

    raw_children = definition.get("conditions")
    if not isinstance(raw_children, list):
        return _malformed("group is missing 'conditions'", definition)
    if logic == GroupLogic.NOT and len(raw_children) != 1:
        return _malformed("'not' group needs exactly one condition", definition)

    children: List[Condition] = []
    for raw_child in raw_children:
        child = parse_condition(raw_child, depth=depth + 1, max_depth=max_depth)
        if child is None:
            child = _malformed("group contains an empty condition", raw_child)
        children.append(child)

    return GroupCondition(logic=logic, conditions=tuple(children))


def parse_condition(raw: Any, depth: int = 1, max_depth: int = DEFAULT_MAX_DEPTH) -> Optional[Condition]:
    """Parse a condition node.

    Returns None for an empty condition, which always holds.
    """
    if raw is None or raw == {}:
        return None
    if not isinstance(raw, dict):
        return _malformed("condition is not an object", raw)
    if depth > max_depth:
        return _malformed(f"condition nesting exceeds {max_depth} levels", None)

    definition = raw.get("definition")
    if not isinstance(definition, dict):
        return _malformed("condition is missing 'definition'", raw)

    condition_type = raw.get("type")
    if condition_type == ConditionType.MATCHER:
        return _parse_matcher(definition)
    if condition_type == ConditionType.GROUP:
        return _parse_group(definition, depth, max_depth)

    return _malformed(f"unknown condition type {condition_type!r}", raw)


def parse_consequence(raw: Any) -> Optional[Consequence]:
    """Parse a consequence, or return None if it lacks required fields."""
    if not isinstance(raw, dict):
        return None

    detail = raw.get("detail")
    consequence_id = raw.get("id")
    if not isinstance(detail, dict) or not isinstance(consequence_id, str) or not consequence_id:
        logger.warning("Skipping consequence without id or detail", consequence_id=consequence_id)
        return None

    schema = detail.get("schema")
    data = detail.get("data")
    if not isinstance(schema, str) or not isinstance(data, dict):
        logger.warning("Skipping consequence without schema data", consequence_id=consequence_id)
        return None

    return Consequence(
        id=consequence_id,
        type=raw.get("type") if isinstance(raw.get("type"), str) else "schema",
        schema=schema,
        data=data,
    )


def parse_rule(raw: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> Optional[Rule]:
    """Parse one rule. Returns None if the rule is not an object."""
    if not isinstance(raw, dict):
        logger.warning("Skipping rule that is not an object")
        return None

    raw_consequences = raw.get("consequences")
    consequences = []
    if isinstance(raw_consequences, list):
        for raw_consequence in raw_consequences:
            consequence = parse_consequence(raw_consequence)
            if consequence is not None:
                consequences.append(consequence)

    return Rule(
        condition=parse_condition(raw.get("condition"), max_depth=max_depth),
        consequences=tuple(consequences),
    )


def _load_document(raw: Any) -> Any:
    if isinstance(raw, (str, bytes)):
        try:
            return json.loads(raw)
        except (ValueError, RecursionError) as e:
            raise MalformedPayloadError("Rules document is not valid JSON", {"error": str(e)})
    return raw


def parse_ruleset(raw: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> RuleSet:
    """Parse a rules document given as JSON text or a map."""
    document = _load_document(raw)
    if not isinstance(document, dict) or not isinstance(document.get("rules"), list):
        raise MalformedPayloadError("Rules document has no 'rules' list")

    version = document.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        version = 1

    rules = []
    for raw_rule in document["rules"]:
        rule = parse_rule(raw_rule, max_depth=max_depth)
        if rule is not None:
            rules.append(rule)

    return RuleSet(version=version, rules=tuple(rules))


def is_ruleset_document(raw: Any) -> bool:
    """Whether ``raw`` looks like a rules document (JSON text or map)."""
    if isinstance(raw, str):
        if '"rules"' not in raw:
            return False
        try:
            raw = json.loads(raw)
        except (ValueError, RecursionError):
            return False
    return isinstance(raw, dict) and isinstance(raw.get("rules"), list)


def extract_ruleset(raw: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> Optional[RuleSet]:
    """Parse ``raw`` as a rules document, or return None if it is not one."""
    if not is_ruleset_document(raw):
        return None
    return parse_ruleset(raw, max_depth=max_depth)
