"""
Interaction tracking payloads.

Builds the experience-event data that reports a display, interaction or
disqualification of proposition content back to the origin system.
"""

from typing import Dict, Any, Optional
from enum import Enum

from .models import PropositionInfo


class PropositionEventType(str, Enum):
    """Interaction kinds reported for proposition content."""
    DISMISS = "dismiss"
    INTERACT = "interact"
    TRIGGER = "trigger"
    DISPLAY = "display"
    DISQUALIFY = "disqualify"
    SUPPRESS_DISPLAY = "suppressDisplay"

    @property
    def experience_event_type(self) -> str:
        """Event type as sent to the origin, e.g. ``decisioning.propositionDisplay``."""
        return f"decisioning.proposition{self.value[0].upper()}{self.value[1:]}"


def build_interaction_xdm(
    info: PropositionInfo,
    event_type: PropositionEventType,
    item_id: Optional[str] = None,
    interaction: Optional[str] = None
) -> Dict[str, Any]:
    """Experience event data for one proposition interaction."""
    event_type = PropositionEventType(event_type)

    proposition: Dict[str, Any] = {
        "id": info.id,
        "scope": info.scope,
        "scopeDetails": info.scope_details,
    }
    if item_id:
        proposition["items"] = [{"id": item_id}]

    decisioning: Dict[str, Any] = {
        "propositionEventType": {event_type.value: 1},
        "propositions": [proposition],
    }
    if event_type == PropositionEventType.INTERACT and interaction:
        decisioning["propositionAction"] = {"id": interaction, "label": interaction}

    return {
        "eventType": event_type.experience_event_type,
        "_experience": {"decisioning": decisioning},
    }
