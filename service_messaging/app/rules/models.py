"""
Rule data models for the decisioning core.
"""

from typing import Dict, Any, Optional, List, Tuple, Union
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


TIMESTAMP_UNIX_KEY = "~timestampu"
TIMESTAMP_ISO_KEY = "~timestampz"

DEFAULT_MAX_DEPTH = 32


class ConditionType(str, Enum):
    """Condition node types."""
    MATCHER = "matcher"
    GROUP = "group"


class MatcherOperator(str, Enum):
    """Matcher comparison operators."""
    EQUALS = "eq"
    NOT_EQUALS = "ne"
    GREATER_THAN = "gt"
    GREATER_EQUAL = "ge"
    LESS_THAN = "lt"
    LESS_EQUAL = "le"
    EXISTS = "ex"
    NOT_EXISTS = "nx"
    CONTAINS = "co"
    NOT_CONTAINS = "nc"
    STARTS_WITH = "sw"
    ENDS_WITH = "ew"


class GroupLogic(str, Enum):
    """Boolean logic joining the children of a group."""
    AND = "and"
    OR = "or"
    NOT = "not"


@dataclass(frozen=True)
class MatcherCondition:
    """Single comparison leaf."""
    key: str
    operator: MatcherOperator
    values: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class GroupCondition:
    """Group node combining child conditions."""
    logic: GroupLogic
    conditions: Tuple["Condition", ...] = ()


@dataclass(frozen=True)
class MalformedCondition:
    """Condition node that could not be understood. Never matches."""
    reason: str
    definition: Any = None


Condition = Union[MatcherCondition, GroupCondition, MalformedCondition]


@dataclass(frozen=True)
class Consequence:
    """Schema-tagged content released when a rule's condition holds."""
    id: str
    type: str
    schema: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "detail": {
                "schema": self.schema,
                "data": self.data,
                "id": self.id,
            },
        }


@dataclass(frozen=True)
class Rule:
    """Condition plus the consequences it gates. A missing condition always holds."""
    condition: Optional[Condition]
    consequences: Tuple[Consequence, ...] = ()


@dataclass(frozen=True)
class RuleSet:
    """Versioned rules document embedded in a proposition item."""
    version: int
    rules: Tuple[Rule, ...] = ()


@dataclass
class EvaluationContext:
    """Named values a condition tree is evaluated against."""
    values: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def current(cls, values: Optional[Dict[str, Any]] = None, now: Optional[datetime] = None) -> "EvaluationContext":
        """Context carrying the reserved timestamp tokens plus caller values."""
        now = now or datetime.now(timezone.utc)
        merged: Dict[str, Any] = {
            TIMESTAMP_UNIX_KEY: int(now.timestamp()),
            TIMESTAMP_ISO_KEY: now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        merged.update(values or {})
        return cls(values=merged)

    def lookup(self, key: str) -> Tuple[bool, Any]:
        """Resolve a key, walking dotted paths through nested maps."""
        if key in self.values:
            return True, self.values[key]

        if "." in key:
            value: Any = self.values
            for part in key.split("."):
                if isinstance(value, dict) and part in value:
                    value = value[part]
                else:
                    return False, None
            return True, value

        return False, None


@dataclass
class ConditionDiagnostic:
    """Report of a condition node that could not be evaluated."""
    code: str
    message: str
    path: str = "$"


@dataclass
class EvaluationResult:
    """Result of evaluating one condition tree."""
    matched: bool
    diagnostics: List[ConditionDiagnostic] = field(default_factory=list)
    evaluation_time_ms: float = 0.0


def as_evaluation_context(context: Any) -> EvaluationContext:
    """Accept a map, an EvaluationContext, or None for the current time only."""
    if isinstance(context, EvaluationContext):
        return context
    if context is None:
        return EvaluationContext.current()
    if isinstance(context, dict):
        return EvaluationContext(values=dict(context))
    raise TypeError(f"Unsupported evaluation context: {type(context).__name__}")
