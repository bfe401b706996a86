"""
Decisioning pipeline result and request/response models.
"""

from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from ..schemas.models import ContentVariant
from ..propositions.models import Proposition, PropositionInfo
from ..rules.models import ConditionDiagnostic


@dataclass(frozen=True)
class QualifiedContent:
    """Renderable content released for a qualified proposition item."""
    proposition_id: str
    scope: str
    item_id: str
    schema: str
    content: ContentVariant
    info: Optional[PropositionInfo] = None
    consequence_id: Optional[str] = None


@dataclass
class DecisionResult:
    """Outcome of one decision batch.

    Unpacks as ``qualified, unqualified``.
    """
    qualified: List[Proposition] = field(default_factory=list)
    unqualified: List[Proposition] = field(default_factory=list)
    content: List[QualifiedContent] = field(default_factory=list)
    diagnostics: List[ConditionDiagnostic] = field(default_factory=list)
    skipped: int = 0
    evaluation_time_ms: float = 0.0

    def __iter__(self):
        return iter((self.qualified, self.unqualified))


class DecisionRequest(BaseModel):
    """Request model for processing a decision payload."""
    payload: Any = Field(..., description="Proposition map, list of maps, or event data with a 'payload' list")
    context: Dict[str, Any] = Field(default_factory=dict, description="Values the rules are evaluated against")
    requested_scopes: List[str] = Field(default_factory=list, description="Surfaces refreshed by this payload")


class DecisionResponse(BaseModel):
    """Response model for a processed decision payload."""
    qualified: List[Dict[str, Any]] = Field(default_factory=list, description="Qualified propositions")
    unqualified: List[Dict[str, Any]] = Field(default_factory=list, description="Propositions that did not qualify")
    diagnostics: List[Dict[str, Any]] = Field(default_factory=list, description="Malformed condition reports")
    skipped: int = Field(0, description="Entities dropped while decoding")
    evaluation_time_ms: float = Field(0.0, description="Processing time in milliseconds")


class PropositionListResponse(BaseModel):
    """Response model for stored propositions of one surface."""
    scope: str
    propositions: List[Dict[str, Any]]
    total: int
