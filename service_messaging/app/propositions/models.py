"""
Proposition data models.

A Proposition is a server decision for one surface (``scope``) and owns an
ordered, non-empty sequence of PropositionItems. Items do not hold a
pointer to their owner; they carry the owner's id and scope, and the owner
is resolved through the PropositionStore.
"""

import copy
from typing import Dict, Any, Optional, List, Tuple, Iterable
from dataclasses import dataclass, field, replace

from shared.logging import get_logger
from shared.errors import MalformedPayloadError, MissingRequiredFieldError
from ..schemas.models import SchemaType, ContentVariant
from ..schemas.decoder import decode
from ..rules.models import RuleSet, DEFAULT_MAX_DEPTH
from ..rules.parser import extract_ruleset

logger = get_logger("messaging.propositions")

ID_KEY = "id"
SCOPE_KEY = "scope"
SCOPE_DETAILS_KEY = "scopeDetails"
ITEMS_KEY = "items"
SCHEMA_KEY = "schema"
DATA_KEY = "data"
CONTENT_KEY = "content"
CORRELATION_ID_KEY = "correlationID"
ACTIVITY_KEY = "activity"


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


@dataclass(frozen=True)
class PropositionItem:
    """One piece of schema-tagged content inside a proposition."""
    unique_id: str
    schema_tag: str
    data: Dict[str, Any] = field(default_factory=dict)
    proposition_id: str = ""
    scope: str = ""

    @property
    def schema(self) -> SchemaType:
        return SchemaType.from_string(self.schema_tag)

    @classmethod
    def from_payload(cls, payload: Any, proposition_id: str = "", scope: str = "") -> "PropositionItem":
        """Create an item from its wire map."""
        if not isinstance(payload, dict):
            raise MissingRequiredFieldError(ID_KEY, "proposition item")
        if not _non_empty_str(payload.get(ID_KEY)):
            raise MissingRequiredFieldError(ID_KEY, "proposition item")
        if not isinstance(payload.get(SCHEMA_KEY), str):
            raise MissingRequiredFieldError(SCHEMA_KEY, "proposition item")
        if not isinstance(payload.get(DATA_KEY), dict):
            raise MissingRequiredFieldError(DATA_KEY, "proposition item")

        return cls(
            unique_id=payload[ID_KEY],
            schema_tag=payload[SCHEMA_KEY],
            data=copy.deepcopy(payload[DATA_KEY]),
            proposition_id=proposition_id,
            scope=scope,
        )

    def to_payload(self) -> Dict[str, Any]:
        # data is emitted as received so nested content strings stay byte-identical
        return {
            ID_KEY: self.unique_id,
            SCHEMA_KEY: self.schema_tag,
            DATA_KEY: copy.deepcopy(self.data),
        }

    def with_owner(self, proposition_id: str, scope: str) -> "PropositionItem":
        return replace(self, proposition_id=proposition_id, scope=scope)

    def decode_content(self, strict: bool = False) -> ContentVariant:
        """Decode this item's own data into a content variant."""
        return decode(self.schema_tag, self.data, strict=strict)

    def embedded_rules(self, max_depth: int = DEFAULT_MAX_DEPTH) -> Optional[RuleSet]:
        """Rules document embedded in ``data.content``, if any."""
        return extract_ruleset(self.data.get(CONTENT_KEY), max_depth=max_depth)


@dataclass(frozen=True)
class Proposition:
    """Decision for one surface holding one or more items."""
    unique_id: str
    scope: str
    scope_details: Dict[str, Any] = field(default_factory=dict)
    items: Tuple[PropositionItem, ...] = ()

    def __post_init__(self):
        if not _non_empty_str(self.unique_id):
            raise MissingRequiredFieldError(ID_KEY, "proposition")
        if not _non_empty_str(self.scope):
            raise MissingRequiredFieldError(SCOPE_KEY, "proposition")
        if not self.items:
            raise MissingRequiredFieldError(ITEMS_KEY, "proposition")

        object.__setattr__(self, "scope_details", dict(self.scope_details or {}))
        object.__setattr__(self, "items", tuple(
            item if item.proposition_id == self.unique_id and item.scope == self.scope
            else item.with_owner(self.unique_id, self.scope)
            for item in self.items
        ))

    @classmethod
    def from_payload(cls, payload: Any) -> "Proposition":
        """Create a proposition from its wire map.

        Items that cannot be read are skipped; a proposition left without
        items is rejected.
        """
        if not isinstance(payload, dict):
            raise MalformedPayloadError("Proposition payload is not an object")

        unique_id = payload.get(ID_KEY)
        scope = payload.get(SCOPE_KEY)
        if not _non_empty_str(unique_id):
            raise MissingRequiredFieldError(ID_KEY, "proposition")
        if not _non_empty_str(scope):
            raise MissingRequiredFieldError(SCOPE_KEY, "proposition")

        scope_details = payload.get(SCOPE_DETAILS_KEY)
        if not isinstance(scope_details, dict):
            scope_details = {}

        raw_items = payload.get(ITEMS_KEY)
        if not isinstance(raw_items, list):
            raise MissingRequiredFieldError(ITEMS_KEY, "proposition")

        items: List[PropositionItem] = []
        for raw_item in raw_items:
            try:
                items.append(PropositionItem.from_payload(raw_item, unique_id, scope))
            except MissingRequiredFieldError as e:
                logger.warning(
                    "Skipping proposition item",
                    proposition_id=unique_id,
                    scope=scope,
                    reason=e.message
                )

        return cls(
            unique_id=unique_id,
            scope=scope,
            scope_details=copy.deepcopy(scope_details),
            items=tuple(items),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            ID_KEY: self.unique_id,
            SCOPE_KEY: self.scope,
            SCOPE_DETAILS_KEY: copy.deepcopy(self.scope_details),
            ITEMS_KEY: [item.to_payload() for item in self.items],
        }

    def with_items(self, items: Iterable[PropositionItem]) -> "Proposition":
        """Copy of this proposition holding only ``items``."""
        return replace(self, items=tuple(items))

    def get_item(self, item_id: str) -> Optional[PropositionItem]:
        for item in self.items:
            if item.unique_id == item_id:
                return item
        return None

    def info(self) -> Optional["PropositionInfo"]:
        return PropositionInfo.create_from_proposition(self)


@dataclass(frozen=True)
class PropositionInfo:
    """Provenance needed to report interactions back to the origin."""
    id: str
    scope: str
    scope_details: Dict[str, Any]
    correlation_id: str = ""
    activity_id: str = ""

    @classmethod
    def _from_parts(cls, unique_id: Any, scope: Any, scope_details: Any) -> Optional["PropositionInfo"]:
        if not _non_empty_str(unique_id) or not _non_empty_str(scope):
            return None
        if not isinstance(scope_details, dict) or not scope_details:
            return None

        correlation_id = scope_details.get(CORRELATION_ID_KEY)
        activity = scope_details.get(ACTIVITY_KEY)
        activity_id = activity.get(ID_KEY) if isinstance(activity, dict) else None

        return cls(
            id=unique_id,
            scope=scope,
            scope_details=copy.deepcopy(scope_details),
            correlation_id=correlation_id if isinstance(correlation_id, str) else "",
            activity_id=activity_id if isinstance(activity_id, str) else "",
        )

    @classmethod
    def create(cls, payload: Any) -> Optional["PropositionInfo"]:
        """Create from a wire map; None when id, scope or scopeDetails is missing."""
        if not isinstance(payload, dict):
            return None
        return cls._from_parts(
            payload.get(ID_KEY),
            payload.get(SCOPE_KEY),
            payload.get(SCOPE_DETAILS_KEY),
        )

    @classmethod
    def create_from_proposition(cls, proposition: Optional[Proposition]) -> Optional["PropositionInfo"]:
        """Create from a proposition; None when it lacks provenance."""
        if proposition is None:
            return None
        return cls._from_parts(proposition.unique_id, proposition.scope, proposition.scope_details)

    def to_payload(self) -> Dict[str, Any]:
        return {
            ID_KEY: self.id,
            SCOPE_KEY: self.scope,
            SCOPE_DETAILS_KEY: copy.deepcopy(self.scope_details),
        }
